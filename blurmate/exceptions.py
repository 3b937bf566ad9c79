"""
Exception hierarchy for BlurMate.

Precondition failures (nothing to blur, export already running) are raised
synchronously from the session. Everything else is reported through the
export state machine as a failed export.
"""


class BlurMateError(Exception):
    """Base exception for BlurMate."""
    pass


class NothingToExportError(BlurMateError):
    """Raised when an export is requested but there is nothing to blur."""
    pass


class NoImageError(NothingToExportError):
    """Raised when an export is requested with no source image loaded."""

    def __init__(self, message: str = "Nothing to blur: no image is loaded"):
        super().__init__(message)


class NoStrokesError(NothingToExportError):
    """Raised when an export is requested with an empty stroke set."""

    def __init__(self, message: str = "Nothing to blur: no strokes have been drawn"):
        super().__init__(message)


class ExportInProgressError(BlurMateError):
    """Raised when an export is requested while another one is running."""
    pass


class CompositeError(BlurMateError):
    """Raised when the mapping/rasterize/blur/composite chain fails."""
    pass


class ExportTimeoutError(BlurMateError):
    """Reported when an export does not finish before its deadline."""
    pass


class ImageLoadError(BlurMateError):
    """Raised when an image file cannot be read."""
    pass
