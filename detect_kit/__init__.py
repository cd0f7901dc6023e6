"""
Person detection post-processing: decode raw detector tensors, filter,
suppress overlaps and map boxes back to image and display space.

Framework-agnostic: works with NumPy arrays emitted by ONNX Runtime or
PyTorch tensors converted to NumPy. OpenCV is only needed for resizing and
drawing.
"""

from .decode import Candidates, decode_tensor
from .errors import DetectKitError, InferenceFailure, MalformedTensor, ModelUnavailable
from .filtering import filter_candidates
from .layout import BoxUnits, LayoutVariant, ModelLayout, infer_layout
from .mapping import display_transform, to_display_space, to_image_space
from .metadata import ClassTaxonomy, load_class_names, load_taxonomy
from .nms import NMSConfig, iou, nms, suppress
from .postprocess import DetectionPipeline, PostConfig
from .runtime import (
    EmptyDetector,
    LayoutOptions,
    ModelDetector,
    Ready,
    SyntheticDetector,
    Unavailable,
    Uninitialized,
    load_detector,
    preprocess,
    resolve_path,
    select_source,
)
from .types import CandidateDetection, Detection, NormalizedRect, Rect
from .visualize import draw_overlay

__all__ = [
    "Candidates",
    "decode_tensor",
    "DetectKitError",
    "InferenceFailure",
    "MalformedTensor",
    "ModelUnavailable",
    "filter_candidates",
    "BoxUnits",
    "LayoutVariant",
    "ModelLayout",
    "infer_layout",
    "display_transform",
    "to_display_space",
    "to_image_space",
    "ClassTaxonomy",
    "load_class_names",
    "load_taxonomy",
    "NMSConfig",
    "iou",
    "nms",
    "suppress",
    "DetectionPipeline",
    "PostConfig",
    "EmptyDetector",
    "LayoutOptions",
    "ModelDetector",
    "Ready",
    "SyntheticDetector",
    "Unavailable",
    "Uninitialized",
    "load_detector",
    "preprocess",
    "resolve_path",
    "select_source",
    "CandidateDetection",
    "Detection",
    "NormalizedRect",
    "Rect",
    "draw_overlay",
]
