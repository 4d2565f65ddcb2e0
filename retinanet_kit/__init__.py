"""
RetinaNet inference helpers.

Anchor generation, box decoding and class-agnostic NMS work on plain NumPy arrays.
OpenCV is used for resizing/padding, and model execution goes through an optional
backend (ONNX Runtime or TorchScript).
"""

from .types import Detection
from .errors import ConfigurationError, DetectorDisposedError, InferenceError, RetinaNetError
from .anchors import DEFAULT_ANCHOR_PARAMETERS, AnchorParameters, anchor_count, anchors_for_shape
from .decode import BoxDecodeConfig, decode_boxes
from .nms import NMSConfig, iou, nms
from .preprocess import PreprocessResult, prepare
from .image_source import ArrayImageSource, FileImageSource, ImageSource, as_image_source
from .runtime import DetectorConfig, RetinaNetDetector, find_project_root, load, resolve_path
from .metadata import load_class_names
from .visualize import draw_detections

__all__ = [
    "Detection",
    "RetinaNetError",
    "ConfigurationError",
    "InferenceError",
    "DetectorDisposedError",
    "AnchorParameters",
    "DEFAULT_ANCHOR_PARAMETERS",
    "anchors_for_shape",
    "anchor_count",
    "BoxDecodeConfig",
    "decode_boxes",
    "NMSConfig",
    "iou",
    "nms",
    "PreprocessResult",
    "prepare",
    "ImageSource",
    "ArrayImageSource",
    "FileImageSource",
    "as_image_source",
    "DetectorConfig",
    "RetinaNetDetector",
    "load",
    "find_project_root",
    "resolve_path",
    "load_class_names",
    "draw_detections",
]
