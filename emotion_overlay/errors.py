"""
Error taxonomy for the live overlay.
"""


class OverlayError(RuntimeError):
    """Base class for overlay failures."""


class MediaAcquisitionError(OverlayError):
    """Camera unavailable, denied or failed to deliver frames."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ModelLoadError(OverlayError):
    """The inference models could not be loaded; the loop must not start."""


class InferenceError(OverlayError):
    """A single inference call failed or timed out."""
