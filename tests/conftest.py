import io

import pytest
from PIL import Image
from PyPDF2 import PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from webapp import create_app


def make_png(width, height, color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, "PNG")
    return buffer.getvalue()


def make_pdf(pages):
    """Build a PDF with one page per ``(label, (width, height))`` entry, each page showing its label."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, invariant=1)
    for label, size in pages:
        pdf.setPageSize(size)
        pdf.drawString(20, 20, label)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def encrypt_pdf(data, password):
    writer = PdfWriter()
    for page in PdfReader(io.BytesIO(data)).pages:
        writer.add_page(page)
    writer.encrypt(password)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def three_page_pdf():
    return make_pdf([("D1-P1", (300, 400)), ("D1-P2", (310, 410)), ("D1-P3", (320, 420))])


@pytest.fixture
def two_page_pdf():
    return make_pdf([("D2-P1", (500, 250)), ("D2-P2", (510, 260))])


@pytest.fixture
def app():
    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()
