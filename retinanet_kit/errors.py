from __future__ import annotations


class RetinaNetError(Exception):
    """
    Base class for errors raised by retinanet_kit.
    """


class ConfigurationError(RetinaNetError, ValueError):
    """
    Invalid construction parameters (preprocessing mode, input shape, anchors, backend).
    """


class InferenceError(RetinaNetError, RuntimeError):
    """
    Model execution failed or produced outputs that do not match the anchor set.
    """


class DetectorDisposedError(RetinaNetError, RuntimeError):
    """
    Raised when a disposed detector is used again.
    """
