from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import ModelUnavailable


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    - num_threads: intra-op thread count; 0 lets ORT decide
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    num_threads: int = 0


def _static_dims(shape: Sequence[Any]) -> Tuple[Optional[int], ...]:
    # Dynamic axes come back as strings or None.
    return tuple(int(d) if isinstance(d, int) and d > 0 else None for d in shape)


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Expects a float32 blob, typically NCHW shaped (1, 3, H, W).
    Returns the primary output as a NumPy array.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ModelUnavailable(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise ModelUnavailable(f"Model file not found: {self.model_path}")

        sess_opts = ort.SessionOptions()
        if cfg.num_threads > 0:
            sess_opts.intra_op_num_threads = int(cfg.num_threads)
        providers = list(cfg.providers) if cfg.providers is not None else None
        try:
            self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        except Exception as e:
            # ORT raises its own Fail/InvalidProtobuf types for unreadable models.
            raise ModelUnavailable(f"Could not load ONNX model {self.model_path}: {e}") from e

        inputs = {i.name: i for i in self.session.get_inputs()}
        outputs = {o.name: o for o in self.session.get_outputs()}
        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        # If output_name not provided, pick first output.
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        self.input_shape = _static_dims(inputs[self.input_name].shape)
        self.output_shape = _static_dims(outputs[self.output_name].shape)

    @property
    def channels_last(self) -> bool:
        # (1, H, W, 3) vs (1, 3, H, W)
        return len(self.input_shape) == 4 and self.input_shape[-1] == 3 and self.input_shape[1] != 3

    @property
    def input_size(self) -> Optional[Tuple[int, int]]:
        """(w, h) when the model declares static spatial dims."""

        if len(self.input_shape) != 4:
            return None
        h, w = (self.input_shape[1], self.input_shape[2]) if self.channels_last else self.input_shape[2:4]
        if h is None or w is None:
            return None
        return int(w), int(h)

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> np.ndarray:
        inputs: Dict[str, Any] = {self.input_name: blob}
        if extra_inputs:
            inputs.update(extra_inputs)
        outputs = self.session.run([self.output_name], inputs)
        return outputs[0]
