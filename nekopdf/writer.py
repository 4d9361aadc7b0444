"""Output document writers used by the assembler.

The assembler only talks to a :class:`DocumentWriter`. Two implementations
ship here: :class:`PdfDocumentWriter`, which renders generated pages with
ReportLab and collects every page in a PyPDF2 ``PdfWriter``, and
:class:`RecordingWriter`, which keeps an in-memory log of what would have
been written.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from PIL import Image
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as rl_canvas

from .errors import SerializationFailed
from .layout import PageGeometry, Placement

logger = logging.getLogger(__name__)

DEFAULT_METADATA: Dict[str, str] = {
    "/Creator": "NekoPDF",
    "/Author": "NekoPDF User",
    "/Title": "Generated PDF",
}

# Modes ReportLab embeds without converting.
_DRAWABLE_MODES = ("RGB", "L", "CMYK")


def flatten_alpha(image: Image.Image) -> Image.Image:
    """Return *image* in a mode ReportLab embeds as is.

    Transparent pixels are composited onto white, the colour of the page
    underneath, instead of falling back to whatever RGB value they carry.
    """

    if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode not in _DRAWABLE_MODES:
        return image.convert("RGB")
    return image


class PageCanvas(Protocol):
    def draw_image(self, image: Image.Image, placement: Placement) -> None:
        ...


class DocumentWriter(Protocol):
    @property
    def page_count(self) -> int:
        ...

    def begin_page(self, geometry: PageGeometry) -> PageCanvas:
        ...

    def end_page(self, page: PageCanvas) -> None:
        ...

    def append_existing_pages(self, reader: PdfReader) -> int:
        ...

    def finalize(self) -> bytes:
        ...

    def parse_page_count(self, data: bytes) -> int:
        ...


class ReportLabPageCanvas:
    """One generated page, drawn with ReportLab into a single-page PDF."""

    def __init__(self, geometry: PageGeometry) -> None:
        self.geometry = geometry
        self._buffer = io.BytesIO()
        # invariant=1 keeps creation dates and random IDs out of the output.
        self._canvas = rl_canvas.Canvas(
            self._buffer,
            pagesize=(geometry.width, geometry.height),
            invariant=1,
        )

    def draw_image(self, image: Image.Image, placement: Placement) -> None:
        self._canvas.drawImage(
            ImageReader(flatten_alpha(image)),
            placement.x,
            placement.y,
            width=placement.width,
            height=placement.height,
        )

    def finish(self) -> bytes:
        self._canvas.showPage()
        self._canvas.save()
        return self._buffer.getvalue()


class PdfDocumentWriter:
    """Collect generated and copied pages into one PDF."""

    def __init__(self, metadata: Optional[Mapping[str, str]] = None) -> None:
        self._writer = PdfWriter()
        info = dict(DEFAULT_METADATA)
        if metadata:
            info.update(metadata)
        self._writer.add_metadata(info)
        self._finalized = False

    @property
    def page_count(self) -> int:
        return len(self._writer.pages)

    def begin_page(self, geometry: PageGeometry) -> ReportLabPageCanvas:
        self._check_open()
        return ReportLabPageCanvas(geometry)

    def end_page(self, page: ReportLabPageCanvas) -> None:
        self._check_open()
        rendered = PdfReader(io.BytesIO(page.finish()))
        self._writer.add_page(rendered.pages[0])

    def append_existing_pages(self, reader: PdfReader) -> int:
        self._check_open()
        added = 0
        for page in reader.pages:
            self._writer.add_page(page)
            added += 1
        return added

    def finalize(self) -> bytes:
        self._check_open()
        self._finalized = True
        output_buffer = io.BytesIO()
        try:
            self._writer.write(output_buffer)
        except Exception as exc:
            raise SerializationFailed(f"Could not write the output PDF: {exc}") from exc
        data = output_buffer.getvalue()
        logger.debug("Serialized %d page(s) into %d bytes", self.page_count, len(data))
        return data

    def parse_page_count(self, data: bytes) -> int:
        return len(PdfReader(io.BytesIO(data)).pages)

    def _check_open(self) -> None:
        if self._finalized:
            raise SerializationFailed("The output document has already been finalized")


@dataclass(eq=False)
class RecordedPage:
    """A page in a :class:`RecordingWriter`: either drawn images or a copied source page."""

    geometry: Optional[PageGeometry] = None
    draws: List[Tuple[Image.Image, Placement]] = field(default_factory=list)
    source_page: Any = None

    @property
    def is_generated(self) -> bool:
        return self.source_page is None


class RecordingCanvas:
    def __init__(self, page: RecordedPage) -> None:
        self.page = page

    def draw_image(self, image: Image.Image, placement: Placement) -> None:
        self.page.draws.append((image, placement))


class RecordingWriter:
    """Keep pages as plain records instead of producing a real PDF."""

    def __init__(self) -> None:
        self.pages: List[RecordedPage] = []
        self._open: List[RecordedPage] = []
        self.finalized = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def begin_page(self, geometry: PageGeometry) -> RecordingCanvas:
        self._check_open()
        page = RecordedPage(geometry=geometry)
        self._open.append(page)
        return RecordingCanvas(page)

    def end_page(self, page: RecordingCanvas) -> None:
        self._check_open()
        self._open.remove(page.page)
        self.pages.append(page.page)

    def append_existing_pages(self, reader: PdfReader) -> int:
        self._check_open()
        before = len(self.pages)
        for page in reader.pages:
            self.pages.append(RecordedPage(source_page=page))
        return len(self.pages) - before

    def finalize(self) -> bytes:
        self._check_open()
        self.finalized = True
        lines = []
        for index, page in enumerate(self.pages):
            kind = "generated" if page.is_generated else "copied"
            lines.append(f"{index}:{kind}:{len(page.draws)}")
        return "\n".join(lines).encode("utf-8")

    def parse_page_count(self, data: bytes) -> int:
        text = data.decode("utf-8")
        return len(text.splitlines()) if text else 0

    def _check_open(self) -> None:
        if self.finalized:
            raise SerializationFailed("The output document has already been finalized")
