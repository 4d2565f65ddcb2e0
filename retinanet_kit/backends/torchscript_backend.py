from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    - input_size: fixed (H, W) the model was traced with; TorchScript does not record it
    """

    device: str = "cpu"
    half: bool = False
    input_size: Optional[Tuple[int, int]] = None


class TorchScriptBackend:
    """
    TorchScript backend using `torch.jit.load`.

    The scripted module must take an NHWC (1, H, W, 3) tensor and return
    (box_deltas, class_scores).
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.half = cfg.half
        self._input_size = cfg.input_size

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    @property
    def input_hw(self) -> Tuple[Optional[int], Optional[int]]:
        if self._input_size is None:
            return None, None
        h, w = self._input_size
        return int(h), int(w)

    def infer(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device)
        if self.half:
            x = x.half()
        else:
            x = x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        if not isinstance(y, (tuple, list)) or len(y) < 2:
            raise RuntimeError("TorchScript model must return (box_deltas, class_scores).")

        deltas, scores = y[0], y[1]
        # Host copies; device buffers are freed with the tensors.
        return deltas.detach().float().to("cpu").numpy(), scores.detach().float().to("cpu").numpy()

    def close(self) -> None:
        self.model = None
        if self.device.type == "cuda":
            self._torch.cuda.empty_cache()
