from __future__ import annotations

import typing as t

from flask import Flask

from nekopdf.core import ON_ERROR_CHOICES
from nekopdf.layout import A4_HEIGHT, A4_WIDTH, DEFAULT_MARGIN, PageGeometry

from .routes import bp as routes_bp


def _validate_settings(app: Flask) -> None:
    """Check page and failure-policy settings once, so a bad config fails at startup."""

    config = app.config
    if config["ON_ERROR"] not in ON_ERROR_CHOICES:
        raise ValueError(f"ON_ERROR must be one of {ON_ERROR_CHOICES}, got {config['ON_ERROR']!r}")
    config["PAGE_GEOMETRY"] = PageGeometry(
        width=float(config["PAGE_WIDTH"]),
        height=float(config["PAGE_HEIGHT"]),
        margin=float(config["PAGE_MARGIN"]),
    )


def create_app(test_config: t.Optional[t.Mapping[str, t.Any]] = None) -> Flask:
    """Application factory for the NekoPDF web interface."""

    app = Flask(
        __name__,
        static_folder="static",
        template_folder="templates",
    )

    app.config.from_mapping(
        PAGE_WIDTH=A4_WIDTH,
        PAGE_HEIGHT=A4_HEIGHT,
        PAGE_MARGIN=DEFAULT_MARGIN,
        ON_ERROR="abort",
        MAX_CONTENT_LENGTH=100 * 1024 * 1024,
    )
    app.config.from_prefixed_env("NEKOPDF")
    if test_config is not None:
        app.config.from_mapping(test_config)

    _validate_settings(app)

    app.register_blueprint(routes_bp)

    return app
