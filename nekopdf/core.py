"""Assembly of images and existing PDFs into one output PDF."""

from __future__ import annotations

import fnmatch
import io
import logging
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, List, Mapping, Optional, Sequence, Union

from PIL import Image, ImageOps, UnidentifiedImageError

try:
    from PyPDF2 import PdfReader
except Exception as exc:  # pragma: no cover - import guard kept for CLI compatibility
    raise RuntimeError(
        "PyPDF2 is required. Install with: python -m pip install PyPDF2"
    ) from exc

from .errors import EmptyInput, InvalidGeometry, SerializationFailed, UnreadableInput
from .layout import PageGeometry, compute_placement
from .writer import DocumentWriter, PdfDocumentWriter

logger = logging.getLogger(__name__)

ON_ERROR_ABORT = "abort"
ON_ERROR_SKIP = "skip"
ON_ERROR_CHOICES = (ON_ERROR_ABORT, ON_ERROR_SKIP)

PDF_EXTENSIONS = (".pdf",)
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp")


@dataclass
class PDFInput:
    """A PDF input stream with metadata for merging."""

    name: str
    stream: BinaryIO
    password: Optional[str] = None


@dataclass
class ImageInput:
    """An encoded image (PNG, JPEG, ...) that becomes one generated page."""

    name: str
    stream: BinaryIO


@dataclass
class RasterImage:
    """An image that is already decoded in memory."""

    name: str
    image: Image.Image

    @property
    def width(self) -> float:
        return self.image.size[0]

    @property
    def height(self) -> float:
        return self.image.size[1]


MergeItem = Union[ImageInput, RasterImage, PDFInput]


@dataclass
class AssemblyOutput:
    """Result from assembling items into one PDF."""

    buffer: Optional[bytes]
    page_count: int
    item_count: int
    skipped_count: int = 0
    skipped_items: List[str] = field(default_factory=list)

    @property
    def has_output(self) -> bool:
        return self.buffer is not None and self.page_count > 0

    @property
    def merged_count(self) -> int:
        return self.item_count - self.skipped_count

    def stream(self) -> io.BytesIO:
        """Return a fresh, rewound stream over the output bytes."""

        if self.buffer is None:
            raise ValueError("No output was produced")
        return io.BytesIO(self.buffer)


def natural_key(value: str) -> List[object]:
    """Sort helper that treats digits numerically: file2 < file10 < file100."""

    import re

    return [int(text) if text.isdigit() else text.lower() for text in re.split(r"(\d+)", value)]


def is_pdf_name(name: str) -> bool:
    return name.lower().endswith(PDF_EXTENSIONS)


def is_image_name(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def discover_inputs(folder: str, recursive: bool, pattern: str = "*") -> List[str]:
    """Return images and PDFs within *folder* that match *pattern*."""

    folder = os.path.abspath(folder)
    matches: List[str] = []

    def wanted(filename: str) -> bool:
        return (is_pdf_name(filename) or is_image_name(filename)) and fnmatch.fnmatch(filename, pattern)

    if recursive:
        for root, _, files in os.walk(folder):
            for filename in files:
                if wanted(filename):
                    matches.append(os.path.join(root, filename))
    else:
        for filename in os.listdir(folder):
            if wanted(filename) and os.path.isfile(os.path.join(folder, filename)):
                matches.append(os.path.join(folder, filename))

    return matches


def item_from_path(path: str, password: Optional[str] = None) -> MergeItem:
    """Read the file at *path* into memory as a PDF or image item, by extension."""

    with open(path, "rb") as handle:
        stream = io.BytesIO(handle.read())
    name = os.path.basename(path)
    if is_pdf_name(name):
        return PDFInput(name=name, stream=stream, password=password)
    return ImageInput(name=name, stream=stream)


def try_decrypt(reader: PdfReader, password: str) -> bool:
    """Attempt to decrypt *reader* with *password* across PyPDF2 versions."""

    try:
        result = reader.decrypt(password)  # type: ignore[attr-defined]
        if isinstance(result, bool):
            return result
        try:
            return bool(int(result))
        except Exception:
            return False
    except Exception:
        return False


def _passwords_to_try(pdf_input: PDFInput, default_password: Optional[str]) -> List[str]:
    passwords: List[str] = []
    if default_password:
        passwords.append(default_password)
    if pdf_input.password and pdf_input.password not in passwords:
        passwords.append(pdf_input.password)
    return passwords


def _seekable(stream: BinaryIO) -> BinaryIO:
    try:
        stream.seek(0)
    except Exception:
        # Some streams may be non-seekable; read them into memory instead.
        stream = io.BytesIO(stream.read())
    return stream


def load_image(image_input: ImageInput) -> RasterImage:
    """Decode *image_input* with Pillow, applying its EXIF orientation."""

    stream = _seekable(image_input.stream)
    try:
        with Image.open(stream) as opened:
            opened.load()
            image = ImageOps.exif_transpose(opened)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise UnreadableInput(image_input.name, str(exc)) from exc
    return RasterImage(name=image_input.name, image=image)


def open_pdf(pdf_input: PDFInput, default_password: Optional[str] = None) -> PdfReader:
    """Open *pdf_input* for reading, unlocking it if it is encrypted."""

    stream = _seekable(pdf_input.stream)
    try:
        reader = PdfReader(stream)
    except Exception as exc:
        raise UnreadableInput(pdf_input.name, str(exc)) from exc

    if getattr(reader, "is_encrypted", False):
        unlocked = False
        # An empty user password is common on files that only restrict editing.
        for password in _passwords_to_try(pdf_input, default_password) + [""]:
            if try_decrypt(reader, password):
                unlocked = True
                break
        if not unlocked:
            raise UnreadableInput(pdf_input.name, "encrypted and no working password was given")

    try:
        # Walk the page tree now so a broken file fails before any page is appended.
        len(reader.pages)
    except Exception as exc:
        raise UnreadableInput(pdf_input.name, str(exc)) from exc
    return reader


def _item_name(item: object) -> str:
    return getattr(item, "name", None) or type(item).__name__


def _append_image(writer: DocumentWriter, item: Union[ImageInput, RasterImage], geometry: PageGeometry) -> None:
    raster = item if isinstance(item, RasterImage) else load_image(item)
    try:
        placement = compute_placement(geometry, raster.width, raster.height)
        logger.debug("Drawing '%s' in %s", raster.name, placement)
        page = writer.begin_page(geometry)
        page.draw_image(raster.image, placement)
        writer.end_page(page)
    finally:
        if raster is not item:
            raster.image.close()


def _append_document(writer: DocumentWriter, item: PDFInput, default_password: Optional[str]) -> int:
    reader = open_pdf(item, default_password)
    added = writer.append_existing_pages(reader)
    logger.debug("Copied %d page(s) from '%s'", added, item.name)
    return added


def assemble(
    items: Iterable[MergeItem],
    geometry: Optional[PageGeometry] = None,
    *,
    on_error: str = ON_ERROR_ABORT,
    default_password: Optional[str] = None,
    writer: Optional[DocumentWriter] = None,
    metadata: Optional[Mapping[str, str]] = None,
) -> AssemblyOutput:
    """Concatenate *items* into one PDF, in order.

    Every image becomes one page of *geometry* with the image centered and
    scaled to fit inside the margins. Every PDF contributes all of its pages
    unmodified and in their own order.

    *on_error* decides what happens when an item fails with
    :class:`InvalidGeometry` or :class:`UnreadableInput`: ``"abort"`` raises
    the error, ``"skip"`` records the item in ``skipped_items`` and carries
    on. When every item is skipped the result has no buffer.

    Raises :class:`EmptyInput` for an empty item list and
    :class:`SerializationFailed` when the output cannot be written or does not
    re-parse with the expected page count.
    """

    if on_error not in ON_ERROR_CHOICES:
        raise ValueError(f"on_error must be one of {ON_ERROR_CHOICES}, got {on_error!r}")

    items = list(items)
    if not items:
        raise EmptyInput("Nothing to assemble: no items were given")

    if geometry is None:
        geometry = PageGeometry()
    if writer is None:
        writer = PdfDocumentWriter(metadata=metadata)

    skipped_items: List[str] = []

    for item in items:
        try:
            if isinstance(item, PDFInput):
                _append_document(writer, item, default_password)
            elif isinstance(item, (ImageInput, RasterImage)):
                _append_image(writer, item, geometry)
            else:
                raise TypeError(f"Cannot assemble an item of type {type(item).__name__}")
        except (InvalidGeometry, UnreadableInput) as exc:
            if on_error == ON_ERROR_ABORT:
                raise
            logger.debug("Skipping '%s': %s", _item_name(item), exc)
            skipped_items.append(_item_name(item))

    if len(skipped_items) == len(items):
        return AssemblyOutput(
            buffer=None,
            page_count=0,
            item_count=len(items),
            skipped_count=len(skipped_items),
            skipped_items=skipped_items,
        )

    expected = writer.page_count
    data = writer.finalize()
    try:
        parsed = writer.parse_page_count(data)
    except Exception as exc:
        raise SerializationFailed(f"The output PDF does not parse: {exc}") from exc
    if parsed != expected:
        raise SerializationFailed(f"The output PDF has {parsed} page(s), expected {expected}")

    return AssemblyOutput(
        buffer=data,
        page_count=expected,
        item_count=len(items),
        skipped_count=len(skipped_items),
        skipped_items=skipped_items,
    )


def assemble_from_images(
    images: Sequence[Union[ImageInput, RasterImage]],
    geometry: Optional[PageGeometry] = None,
    **options,
) -> AssemblyOutput:
    """Build a PDF with one page per image."""

    for image in images:
        if not isinstance(image, (ImageInput, RasterImage)):
            raise TypeError(f"Expected an image, got {type(image).__name__}")
    return assemble(images, geometry, **options)


def merge_pdf_streams(
    inputs: Iterable[PDFInput],
    default_password: Optional[str] = None,
    on_error: str = ON_ERROR_SKIP,
) -> AssemblyOutput:
    """Merge in-memory PDF streams and return an :class:`AssemblyOutput`."""

    inputs = list(inputs)
    for pdf_input in inputs:
        if not isinstance(pdf_input, PDFInput):
            raise TypeError(f"Expected a PDF input, got {type(pdf_input).__name__}")
    return assemble(inputs, on_error=on_error, default_password=default_password)
