import io

import pytest
from PIL import Image
from PyPDF2 import PdfReader

from nekopdf.core import ImageInput, PDFInput, RasterImage, assemble, assemble_from_images
from nekopdf.errors import SerializationFailed
from nekopdf.layout import PageGeometry, Placement
from nekopdf.writer import PdfDocumentWriter, flatten_alpha


def _images_on(page):
    xobjects = page["/Resources"]["/XObject"]
    return [xobjects[name] for name in xobjects if xobjects[name]["/Subtype"] == "/Image"]


def _size(page):
    box = page.mediabox
    return float(box.width), float(box.height)


def test_images_become_one_page_each(png_factory):
    images = [
        ImageInput("a.png", io.BytesIO(png_factory(40, 20))),
        ImageInput("b.png", io.BytesIO(png_factory(30, 60))),
    ]

    result = assemble_from_images(images)

    reader = PdfReader(result.stream())
    assert len(reader.pages) == 2
    for page in reader.pages:
        assert _size(page) == (595, 842)

    first, second = (_images_on(page) for page in reader.pages)
    assert len(first) == 1
    assert len(second) == 1
    assert (first[0]["/Width"], first[0]["/Height"]) == (40, 20)
    assert (second[0]["/Width"], second[0]["/Height"]) == (30, 60)


def test_custom_geometry_sets_generated_page_size(png_factory):
    geometry = PageGeometry(width=612, height=792, margin=36)

    result = assemble([ImageInput("a.png", io.BytesIO(png_factory(10, 10)))], geometry)

    assert _size(PdfReader(result.stream()).pages[0]) == (612, 792)


def test_mixed_output_round_trips(png_factory, two_page_pdf):
    items = [
        ImageInput("a.png", io.BytesIO(png_factory(40, 20))),
        PDFInput("d.pdf", io.BytesIO(two_page_pdf)),
        RasterImage("b", Image.new("L", (30, 60), 128)),
    ]

    result = assemble(items)

    reader = PdfReader(result.stream())
    assert len(reader.pages) == result.page_count == 4
    assert [_size(page) for page in reader.pages] == [(595, 842), (500, 250), (510, 260), (595, 842)]
    assert reader.pages[1].extract_text().strip() == "D2-P1"
    assert reader.pages[2].extract_text().strip() == "D2-P2"


def test_copied_pages_keep_size_and_text(three_page_pdf, two_page_pdf):
    items = [PDFInput("d1.pdf", io.BytesIO(three_page_pdf)), PDFInput("d2.pdf", io.BytesIO(two_page_pdf))]

    result = assemble(items)

    reader = PdfReader(result.stream())
    sources = [page for data in (three_page_pdf, two_page_pdf) for page in PdfReader(io.BytesIO(data)).pages]
    assert len(reader.pages) == 5
    for copied, source in zip(reader.pages, sources):
        assert _size(copied) == _size(source)
        assert copied.extract_text() == source.extract_text()


def test_serialization_is_byte_identical(png_factory, two_page_pdf):
    png = png_factory(64, 48)

    def build():
        return assemble(
            [ImageInput("a.png", io.BytesIO(png)), PDFInput("d.pdf", io.BytesIO(two_page_pdf))]
        ).buffer

    assert build() == build()


def test_images_with_alpha_or_palette_are_drawn():
    items = [
        RasterImage("rgba", Image.new("RGBA", (20, 20), (255, 0, 0, 128))),
        RasterImage("palette", Image.new("P", (20, 10))),
    ]

    result = assemble(items)

    assert len(PdfReader(result.stream()).pages) == 2


def test_transparent_pixels_become_white():
    clear = flatten_alpha(Image.new("RGBA", (2, 2), (0, 0, 0, 0)))
    half_red = flatten_alpha(Image.new("RGBA", (1, 1), (255, 0, 0, 128)))
    gray_clear = flatten_alpha(Image.new("LA", (2, 2), (0, 0)))
    palette = Image.new("P", (2, 2), 0)
    palette.info["transparency"] = 0

    assert clear.mode == "RGB"
    assert set(clear.getdata()) == {(255, 255, 255)}
    red, green, blue = half_red.getpixel((0, 0))
    assert red == 255
    assert 120 <= green <= 135 and 120 <= blue <= 135
    assert set(gray_clear.getdata()) == {(255, 255, 255)}
    assert set(flatten_alpha(palette).getdata()) == {(255, 255, 255)}


def test_opaque_images_keep_their_colours():
    opaque = flatten_alpha(Image.new("RGBA", (1, 1), (10, 20, 30, 255)))
    gray = Image.new("L", (1, 1), 7)

    assert opaque.getpixel((0, 0)) == (10, 20, 30)
    assert flatten_alpha(gray) is gray


def test_transparent_image_is_embedded_as_white():
    result = assemble([RasterImage("clear", Image.new("RGBA", (4, 4), (0, 0, 0, 0)))])

    (xobject,) = _images_on(PdfReader(result.stream()).pages[0])
    assert xobject["/ColorSpace"] == "/DeviceRGB"
    assert set(xobject.get_data()) == {0xFF}


def test_document_info_is_fixed_and_overridable(png_factory):
    png = png_factory(5, 5)

    default = PdfReader(assemble([ImageInput("a.png", io.BytesIO(png))]).stream())
    assert default.metadata.title == "Generated PDF"
    assert default.metadata.author == "NekoPDF User"
    assert default.metadata.creator == "NekoPDF"

    custom = PdfReader(assemble([ImageInput("a.png", io.BytesIO(png))], metadata={"/Title": "Receipts"}).stream())
    assert custom.metadata.title == "Receipts"
    assert custom.metadata.creator == "NekoPDF"


def test_writer_cannot_be_used_after_finalize():
    writer = PdfDocumentWriter()
    page = writer.begin_page(PageGeometry())
    page.draw_image(Image.new("RGB", (4, 4)), Placement(40, 40, 100, 100))
    writer.end_page(page)
    assert writer.page_count == 1

    data = writer.finalize()

    assert writer.parse_page_count(data) == 1
    with pytest.raises(SerializationFailed):
        writer.finalize()
    with pytest.raises(SerializationFailed):
        writer.begin_page(PageGeometry())
