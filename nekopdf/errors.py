"""Errors raised while laying out and assembling PDF documents."""

from __future__ import annotations

from typing import Optional


class NekoPDFError(Exception):
    """Base class for every error raised by :mod:`nekopdf`."""


class InvalidGeometry(NekoPDFError, ValueError):
    """An image has a non-positive dimension or a page geometry is malformed."""


class UnreadableInput(NekoPDFError):
    """An item could not be decoded as an image or opened as a PDF."""

    def __init__(self, name: str, reason: Optional[str] = None) -> None:
        self.name = name
        self.reason = reason
        message = f"Could not read '{name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EmptyInput(NekoPDFError, ValueError):
    """Assembly was asked to run over zero items."""


class SerializationFailed(NekoPDFError, RuntimeError):
    """The output document could not be written or did not validate."""
