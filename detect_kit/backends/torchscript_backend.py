from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple, Union

import numpy as np

from ..errors import ModelUnavailable


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    - device: "cpu" or "cuda"
    - half: run the model in float16 (CUDA only)
    - output_index: which element to use when the module returns a tuple/list
    - input_size: (w, h) the module was exported for; TorchScript does not record it
    """

    device: str = "cpu"
    half: bool = False
    output_index: int = 0
    input_size: Optional[Tuple[int, int]] = None


class TorchScriptBackend:
    """
    TorchScript detector loaded with `torch.jit.load`.

    The output shape is unknown until the module has run once; after the
    first `infer()` it is reported through `output_shape`, which is what
    ModelDetector's warmup relies on.
    """

    channels_last = False

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ModelUnavailable("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise ModelUnavailable(f"Model file not found: {self.model_path}")
        if cfg.half and not str(cfg.device).startswith("cuda"):
            raise ModelUnavailable("half precision needs a CUDA device")

        self._torch = torch
        self.device = torch.device(cfg.device)
        self.dtype = torch.float16 if cfg.half else torch.float32
        self.output_index = cfg.output_index
        self.input_size = cfg.input_size
        self.output_shape: Optional[Tuple[int, ...]] = None

        try:
            module = torch.jit.load(str(self.model_path), map_location=self.device)
        except RuntimeError as e:
            raise ModelUnavailable(f"Could not load TorchScript module {self.model_path}: {e}") from e
        self.model = module.to(dtype=self.dtype).eval()

    def _select_output(self, y: Any) -> Any:
        if isinstance(y, dict):
            y = next(iter(y.values()))
        if isinstance(y, (tuple, list)):
            y = y[self.output_index]
        return y

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.from_numpy(np.ascontiguousarray(blob)).to(device=self.device, dtype=self.dtype)

        with torch.inference_mode():
            y = self._select_output(self.model(x))

        out = y.detach().float().cpu().numpy()
        if self.output_shape is None:
            self.output_shape = tuple(int(d) for d in out.shape)
        return out
