"""Web routes for the NekoPDF application."""

from __future__ import annotations

import io
import typing as t

from flask import Blueprint, Response, current_app, render_template, request, send_file
from werkzeug.datastructures import FileStorage

from nekopdf.core import (
    AssemblyOutput,
    ImageInput,
    MergeItem,
    PDFInput,
    assemble,
    assemble_from_images,
    is_pdf_name,
    merge_pdf_streams,
)
from nekopdf.errors import EmptyInput, InvalidGeometry, SerializationFailed, UnreadableInput
from nekopdf.layout import PageGeometry

bp = Blueprint("routes", __name__)


@bp.get("/")
def home() -> str:
    """Render the application home page."""

    return render_template("home.html")


@bp.get("/merge")
def merge_form() -> str:
    """Render the upload interface for merging PDFs."""

    return render_template("upload.html")


@bp.get("/images-to-pdf")
def images_to_pdf_form() -> str:
    """Render the interface for converting images to a PDF."""

    return render_template("images_to_pdf.html")


@bp.get("/assemble")
def assemble_form() -> str:
    """Render the interface for combining images and PDFs in upload order."""

    return render_template("assemble.html")


def _extract_per_file_passwords(form_data: t.Mapping[str, str]) -> dict[str, str]:
    """Parse per-file password entries from the submitted form."""

    passwords: dict[str, str] = {}
    prefix = "file_passwords["
    suffix = "]"
    for key, value in form_data.items():
        if key.startswith(prefix) and key.endswith(suffix):
            filename = key[len(prefix) : -len(suffix)]
            if value:
                passwords[filename] = value
    return passwords


def _upload_stream(storage: FileStorage) -> t.BinaryIO:
    stream = storage.stream
    try:
        stream.seek(0)
    except Exception:
        # Werkzeug's stream objects are typically seekable, but fall back to BytesIO if needed.
        stream = io.BytesIO(storage.read())
    return stream


def _is_pdf_upload(storage: FileStorage) -> bool:
    return is_pdf_name(storage.filename or "") or storage.mimetype == "application/pdf"


def _pdf_response(result: AssemblyOutput, download_name: str) -> Response:
    response = send_file(
        result.stream(),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=download_name,
    )

    response.headers["X-NekoPDF-Page-Count"] = str(result.page_count)
    response.headers["X-NekoPDF-Item-Count"] = str(result.item_count)
    if result.skipped_items:
        response.headers["X-NekoPDF-Skipped"] = ",".join(result.skipped_items)
        response.headers["X-NekoPDF-Skipped-Count"] = str(result.skipped_count)
    return response


def _no_output_message(prefix: str, result: AssemblyOutput) -> str:
    if result.skipped_items:
        skipped_list = ", ".join(result.skipped_items)
        return f"{prefix} Skipped: {skipped_list}."
    return prefix


@bp.post("/merge")
def merge() -> Response | tuple[str, int]:
    """Accept uploaded PDFs and return the merged output."""

    uploaded_files = request.files.getlist("files")
    if not uploaded_files:
        return "No PDF files were uploaded.", 400

    shared_password = request.form.get("shared_password") or None
    per_file_passwords = _extract_per_file_passwords(request.form)

    pdf_inputs: list[PDFInput] = []
    for storage in uploaded_files:
        if not storage.filename:
            continue
        pdf_inputs.append(
            PDFInput(
                name=storage.filename,
                stream=_upload_stream(storage),
                password=per_file_passwords.get(storage.filename),
            )
        )

    if not pdf_inputs:
        return "No valid PDF files were provided.", 400

    try:
        merge_result = merge_pdf_streams(pdf_inputs, default_password=shared_password)
    except SerializationFailed as exc:
        return str(exc), 500

    if not merge_result.has_output:
        return _no_output_message("Unable to merge the provided PDFs.", merge_result), 400

    return _pdf_response(merge_result, "merged.pdf")


@bp.post("/images-to-pdf")
def images_to_pdf() -> Response | tuple[str, int]:
    """Accept uploaded images and return a combined PDF."""

    uploaded_images = request.files.getlist("images")
    if not uploaded_images:
        return "No image files were uploaded.", 400

    image_inputs: list[ImageInput] = []
    for storage in uploaded_images:
        if not storage.filename:
            continue
        image_inputs.append(ImageInput(name=storage.filename, stream=_upload_stream(storage)))

    if not image_inputs:
        return "No valid image files were provided.", 400

    geometry: PageGeometry = current_app.config["PAGE_GEOMETRY"]
    on_error: str = current_app.config["ON_ERROR"]
    try:
        result = assemble_from_images(image_inputs, geometry, on_error=on_error)
    except (InvalidGeometry, UnreadableInput) as exc:
        return str(exc), 400
    except SerializationFailed as exc:
        return str(exc), 500

    if not result.has_output:
        return _no_output_message("Unable to convert the provided images to PDF.", result), 400

    return _pdf_response(result, "images.pdf")


@bp.post("/assemble")
def assemble_items() -> Response | tuple[str, int]:
    """Accept images and PDFs together and return them as one PDF, in upload order."""

    uploaded = request.files.getlist("items")
    if not uploaded:
        return "No files were uploaded.", 400

    shared_password = request.form.get("shared_password") or None
    per_file_passwords = _extract_per_file_passwords(request.form)

    items: list[MergeItem] = []
    for storage in uploaded:
        if not storage.filename:
            continue
        stream = _upload_stream(storage)
        if _is_pdf_upload(storage):
            items.append(
                PDFInput(
                    name=storage.filename,
                    stream=stream,
                    password=per_file_passwords.get(storage.filename),
                )
            )
        else:
            items.append(ImageInput(name=storage.filename, stream=stream))

    geometry: PageGeometry = current_app.config["PAGE_GEOMETRY"]
    on_error: str = current_app.config["ON_ERROR"]
    try:
        result = assemble(
            items,
            geometry,
            on_error=on_error,
            default_password=shared_password,
        )
    except EmptyInput:
        return "No valid files were provided.", 400
    except (InvalidGeometry, UnreadableInput) as exc:
        return str(exc), 400
    except SerializationFailed as exc:
        return str(exc), 500

    if not result.has_output:
        return _no_output_message("Unable to assemble the provided files.", result), 400

    return _pdf_response(result, "assembled.pdf")
