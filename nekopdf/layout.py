"""Page geometry and image placement for generated pages."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidGeometry

A4_WIDTH = 595.0
A4_HEIGHT = 842.0
DEFAULT_MARGIN = 40.0


@dataclass(frozen=True)
class PageGeometry:
    """Size of a generated page and the blank margin kept on every side, in points."""

    width: float = A4_WIDTH
    height: float = A4_HEIGHT
    margin: float = DEFAULT_MARGIN

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidGeometry(f"Page size must be positive, got {self.width} x {self.height}")
        if self.margin < 0:
            raise InvalidGeometry(f"Margin must not be negative, got {self.margin}")
        if self.margin * 2 >= self.width or self.margin * 2 >= self.height:
            raise InvalidGeometry(
                f"Margin {self.margin} leaves no printable area on a {self.width} x {self.height} page"
            )

    @property
    def printable_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def printable_height(self) -> float:
        return self.height - 2 * self.margin


@dataclass(frozen=True)
class Placement:
    """Rectangle an image is drawn into on a generated page."""

    x: float
    y: float
    width: float
    height: float


def compute_placement(geometry: PageGeometry, image_width: float, image_height: float) -> Placement:
    """Center an image in the printable area of *geometry*, scaled to fit.

    The image keeps its aspect ratio. It is scaled up or down until one side
    touches the printable area, so it is never cropped. The rectangle is
    centered on the page, which makes it valid for both top-left and
    bottom-left origins.
    """

    if image_width <= 0 or image_height <= 0:
        raise InvalidGeometry(f"Image size must be positive, got {image_width} x {image_height}")

    width_scale = geometry.printable_width / image_width
    height_scale = geometry.printable_height / image_height
    scale = min(width_scale, height_scale)

    new_width = image_width * scale
    new_height = image_height * scale
    x = (geometry.width - new_width) / 2
    y = (geometry.height - new_height) / 2
    return Placement(x=x, y=y, width=new_width, height=new_height)
