"""
Error taxonomy for detect_kit.

All errors are scoped to a single frame/call. Catching one never leaves a
pipeline or detector in a state that breaks the next call.
"""

from __future__ import annotations


class DetectKitError(Exception):
    """Base class for detect_kit errors."""


class ModelUnavailable(DetectKitError, RuntimeError):
    """
    The inference engine is not initialized or its model asset is missing.

    Non-fatal: callers fall back to the synthetic detector or to an empty
    result, depending on configuration.
    """


class InferenceFailure(DetectKitError, RuntimeError):
    """The inference call raised at runtime."""


class MalformedTensor(DetectKitError, ValueError):
    """The raw output tensor does not match the declared ModelLayout."""

    def __init__(self, message: str, *, shape: tuple = ()):
        super().__init__(message)
        self.shape = tuple(shape)
