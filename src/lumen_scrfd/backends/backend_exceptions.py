"""
Errors raised at the inference engine boundary.

Detection code raises these for malformed inputs and engine outputs;
engines raise them for load and run failures.
"""


class BackendError(Exception):
    """Root of every engine-side error."""

    pass


class BackendNotInitializedError(BackendError):
    """An engine was run before `initialize()` completed."""

    pass


class InvalidInputError(BackendError):
    """The image or tensor handed to the detector cannot be used."""

    pass


class OutputShapeError(InvalidInputError):
    """A detector output tensor is missing or has an unexpected shape."""

    pass


class InferenceError(BackendError):
    """The engine failed while executing the detector graph."""

    pass


class ModelLoadingError(BackendError):
    """The detector model could not be found or loaded."""

    pass
