"""Turn images into PDF pages and merge them with existing PDFs."""

from .core import (
    AssemblyOutput,
    ImageInput,
    MergeItem,
    ON_ERROR_ABORT,
    ON_ERROR_SKIP,
    PDFInput,
    RasterImage,
    assemble,
    assemble_from_images,
    discover_inputs,
    item_from_path,
    load_image,
    merge_pdf_streams,
    natural_key,
    open_pdf,
    try_decrypt,
)
from .errors import EmptyInput, InvalidGeometry, NekoPDFError, SerializationFailed, UnreadableInput
from .layout import PageGeometry, Placement, compute_placement
from .writer import PdfDocumentWriter, RecordingWriter

__all__ = [
    "AssemblyOutput",
    "EmptyInput",
    "ImageInput",
    "InvalidGeometry",
    "MergeItem",
    "NekoPDFError",
    "ON_ERROR_ABORT",
    "ON_ERROR_SKIP",
    "PDFInput",
    "PageGeometry",
    "PdfDocumentWriter",
    "Placement",
    "RasterImage",
    "RecordingWriter",
    "SerializationFailed",
    "UnreadableInput",
    "assemble",
    "assemble_from_images",
    "compute_placement",
    "discover_inputs",
    "item_from_path",
    "load_image",
    "merge_pdf_streams",
    "natural_key",
    "open_pdf",
    "try_decrypt",
]
