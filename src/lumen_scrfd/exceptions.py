"""
Face Core Exception Definitions

Following Lumen's contract: each layer defines its own error types.
Engine/runtime errors live in `backends.backend_exceptions`.
"""


class FaceCoreError(Exception):
    """Base exception for detection decoding and alignment."""

    pass


class ConfigError(FaceCoreError):
    """
    Raised when configuration is invalid or malformed.

    @context: Configuration parsing and detector/aligner construction
    """

    pass


class DimensionMismatchError(FaceCoreError, ValueError):
    """
    Raised when an image does not match the fixed model input size and
    auto-resizing is disabled.

    @context: Detector input preparation
    """

    pass


class AlignmentError(FaceCoreError):
    """
    Raised when the landmark-to-reference transform cannot be estimated
    (collinear, coincident or non-finite landmark points).

    @context: Similarity transform estimation
    """

    pass


class NoFaceFoundError(FaceCoreError, ValueError):
    """Raised when an application needs at least one face and none was detected."""

    pass
