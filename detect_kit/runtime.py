from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DetectKitError, InferenceFailure, ModelUnavailable
from .layout import BoxUnits, LayoutVariant, ModelLayout, infer_layout
from .metadata import ClassTaxonomy
from .postprocess import DetectionPipeline, PostConfig
from .types import Detection


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, so `models/...` resolves the same way
    no matter which directory a script is started from.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Absolute paths are returned as-is; relative ones resolve against `root`,
    or the project root when `root` is "auto"/None.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def preprocess(image_bgr: np.ndarray, input_size: Tuple[int, int], *, channels_last: bool = False) -> np.ndarray:
    """
    BGR image -> float32 RGB blob in [0, 1] with a batch dimension.

    The image is stretched to `input_size` without preserving aspect ratio;
    `to_image_space` undoes exactly this resize.
    """

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    in_w, in_h = input_size
    img = image_bgr
    if img.shape[:2] != (in_h, in_w):
        try:
            import cv2  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ImportError("OpenCV is required to resize frames. Install with `pip install opencv-python`.") from e
        img = cv2.resize(img, (in_w, in_h), interpolation=cv2.INTER_LINEAR)

    blob = img[:, :, ::-1].astype(np.float32) / 255.0
    if not channels_last:
        blob = np.transpose(blob, (2, 0, 1))
    return np.ascontiguousarray(blob[None, ...])


# ---------------------------------------------------------------------- #
# Detector lifecycle
# ---------------------------------------------------------------------- #
@dataclass(frozen=True)
class Uninitialized:
    pass


@dataclass(frozen=True)
class Ready:
    layout: ModelLayout


@dataclass(frozen=True)
class Unavailable:
    reason: str


DetectorState = Union[Uninitialized, Ready, Unavailable]


@dataclass(frozen=True)
class LayoutOptions:
    """
    Hints used to build a ModelLayout from the backend's reported output
    shape when no explicit layout is given.
    """

    input_size: Tuple[int, int] = (640, 640)
    variant: Optional[LayoutVariant] = None
    box_units: BoxUnits = BoxUnits.PIXELS
    has_objectness: Optional[bool] = None
    num_classes: Optional[int] = None


class ModelDetector:
    """
    Detection source backed by a real model: preprocess -> inference ->
    DetectionPipeline.

    `opener` creates the backend (anything with `.infer(blob)`); it is called
    once by `initialize()`. A missing model leaves the detector Unavailable
    instead of raising.
    """

    name = "model"

    def __init__(
        self,
        opener: Callable[[], Any],
        *,
        layout: Optional[ModelLayout] = None,
        layout_options: LayoutOptions = LayoutOptions(),
        post_cfg: PostConfig = PostConfig(),
        taxonomy: ClassTaxonomy = ClassTaxonomy(),
        backend_name: Optional[str] = None,
    ):
        self._opener = opener
        self._explicit_layout = layout
        self.layout_options = layout_options
        self.post_cfg = post_cfg
        self.taxonomy = taxonomy
        self.backend_name = backend_name
        self.backend: Any = None
        self._pipeline: Optional[DetectionPipeline] = None
        self._state: DetectorState = Uninitialized()

    @property
    def state(self) -> DetectorState:
        return self._state

    def initialize(self) -> DetectorState:
        if not isinstance(self._state, Uninitialized):
            return self._state
        try:
            backend = self._open_backend()
            layout = self._resolve_layout(backend)
        except ModelUnavailable as exc:
            logger.warning("Model unavailable: %s", exc)
            self._state = Unavailable(str(exc))
            return self._state

        self.backend = backend
        self._pipeline = DetectionPipeline(layout, self.post_cfg, self.taxonomy)
        self._state = Ready(layout)
        logger.info(
            "Detector ready: backend=%s variant=%s input=%s boxes=%d classes=%d",
            self.backend_name,
            layout.variant.value,
            layout.input_size,
            layout.num_boxes,
            layout.num_classes,
        )
        return self._state

    def _open_backend(self) -> Any:
        try:
            return self._opener()
        except ModelUnavailable:
            raise
        except Exception as exc:
            # A present but unreadable model (corrupt file, unsupported opset, ...).
            raise ModelUnavailable(f"Failed to load model: {exc}") from exc

    def _resolve_layout(self, backend: Any) -> ModelLayout:
        if self._explicit_layout is not None:
            return self._explicit_layout

        opts = self.layout_options
        input_size = getattr(backend, "input_size", None) or opts.input_size
        shape = getattr(backend, "output_shape", None)
        if not shape or any(d is None for d in shape):
            # Output shape not fully declared (dynamic axes or TorchScript): probe once.
            probe = np.zeros((input_size[1], input_size[0], 3), dtype=np.uint8)
            blob = preprocess(probe, input_size, channels_last=bool(getattr(backend, "channels_last", False)))
            try:
                shape = np.asarray(backend.infer(blob)).shape
            except Exception as exc:
                raise ModelUnavailable(f"Warmup inference failed: {exc}") from exc

        try:
            return infer_layout(
                shape,
                input_size,
                variant=opts.variant,
                box_units=opts.box_units,
                has_objectness=opts.has_objectness,
                num_classes=opts.num_classes,
            )
        except ValueError as exc:
            raise ModelUnavailable(f"Unsupported detector output: {exc}") from exc

    def detect(self, image_bgr: np.ndarray) -> List[Detection]:
        state = self._state
        if not isinstance(state, Ready) or self._pipeline is None:
            raise ModelUnavailable(f"Detector is not ready (state={state!r}).")

        orig_h, orig_w = image_bgr.shape[:2]
        blob = preprocess(
            image_bgr,
            state.layout.input_size,
            channels_last=bool(getattr(self.backend, "channels_last", False)),
        )
        try:
            preds = self.backend.infer(blob)
        except DetectKitError:
            raise
        except Exception as exc:
            raise InferenceFailure(f"{self.backend_name or 'backend'} inference failed: {exc}") from exc

        return self._pipeline.run(preds, (orig_w, orig_h))

    def close(self) -> None:
        self.backend = None
        self._pipeline = None
        self._state = Uninitialized()


class SyntheticDetector:
    """
    Deterministic stand-in used when no model is available.

    Always returns the same two person boxes at fixed fractions of the frame.
    Results from this source are demo data, never real detections.
    """

    name = "synthetic"

    BOXES: Tuple[Tuple[float, float, float, float, float], ...] = (
        (0.15, 0.30, 0.35, 0.70, 0.85),
        (0.60, 0.25, 0.80, 0.65, 0.75),
    )

    def __init__(self, taxonomy: ClassTaxonomy = ClassTaxonomy()):
        self.taxonomy = taxonomy

    def detect(self, image_bgr: np.ndarray) -> List[Detection]:
        h, w = image_bgr.shape[:2]
        return [
            Detection(
                x1=x1 * w,
                y1=y1 * h,
                x2=x2 * w,
                y2=y2 * h,
                confidence=conf,
                class_id=0,
                class_name=self.taxonomy.name_for(0),
            )
            for (x1, y1, x2, y2, conf) in self.BOXES
        ]


class EmptyDetector:
    """Source that never detects anything; the 'empty' fallback."""

    name = "empty"

    def detect(self, image_bgr: np.ndarray) -> List[Detection]:
        return []


FALLBACKS = ("synthetic", "empty", "error")


def select_source(detector: ModelDetector, fallback: str = "synthetic") -> Any:
    """
    Pick the detection source once, at composition time.

    Returns `detector` when it initializes, otherwise the configured
    fallback. `fallback="error"` re-raises ModelUnavailable.
    """

    if fallback not in FALLBACKS:
        raise ValueError(f"fallback must be one of {FALLBACKS}, got {fallback!r}")

    state = detector.initialize()
    if isinstance(state, Ready):
        return detector

    reason = state.reason if isinstance(state, Unavailable) else "not initialized"
    return fallback_source(fallback, reason=reason, taxonomy=detector.taxonomy)


def fallback_source(fallback: str, *, reason: str, taxonomy: ClassTaxonomy = ClassTaxonomy()) -> Any:
    if fallback not in FALLBACKS:
        raise ValueError(f"fallback must be one of {FALLBACKS}, got {fallback!r}")
    if fallback == "error":
        raise ModelUnavailable(reason)
    logger.warning("Falling back to %s detection source (%s)", fallback, reason)
    if fallback == "synthetic":
        return SyntheticDetector(taxonomy)
    return EmptyDetector()


def load_detector(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    layout: Optional[ModelLayout] = None,
    layout_options: LayoutOptions = LayoutOptions(),
    post_cfg: PostConfig = PostConfig(),
    taxonomy: ClassTaxonomy = ClassTaxonomy(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_threads: int = 0,
    torch_device: str = "cpu",
    torch_half: bool = False,
) -> ModelDetector:
    """
    Create an uninitialized ModelDetector for a model on disk.

    Args:
        model_path: path to the model file; relative paths resolve against the project root by default
        backend: "onnxruntime" / "torchscript", or None to infer from the extension
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        def opener() -> Any:
            return OnnxRuntimeBackend(
                resolved,
                OnnxRuntimeBackendConfig(providers=onnx_providers, num_threads=onnx_threads),
            )

    elif chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        def opener() -> Any:
            return TorchScriptBackend(
                resolved,
                TorchScriptBackendConfig(
                    device=torch_device,
                    half=torch_half,
                    input_size=layout_options.input_size,
                ),
            )

    else:
        raise ValueError(f"Unsupported backend: {backend!r}")

    return ModelDetector(
        opener,
        layout=layout,
        layout_options=layout_options,
        post_cfg=post_cfg,
        taxonomy=taxonomy,
        backend_name=chosen,
    )
