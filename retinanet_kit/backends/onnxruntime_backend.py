from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import ConfigurationError


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name: override the auto-selected input name
    - output_names: (box deltas, class scores) names; defaults to the first two outputs
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_names: Optional[Tuple[str, str]] = None


def _fixed_dim(value: Any) -> Optional[int]:
    # Dynamic ORT dims come back as strings ("height") or None.
    if isinstance(value, (int, np.integer)) and int(value) > 0:
        return int(value)
    return None


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for exported RetinaNet models.

    Expects an NHWC float32 blob shaped (1, H, W, 3).
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        model_input = self.session.get_inputs()[0]
        self.input_name = cfg.input_name or model_input.name
        if cfg.output_names is not None:
            self.output_names = tuple(cfg.output_names)
        else:
            outputs = self.session.get_outputs()
            if len(outputs) < 2:
                raise ConfigurationError(
                    f"Expected two model outputs (box deltas, class scores), got {len(outputs)}."
                )
            self.output_names = (outputs[0].name, outputs[1].name)

        shape = list(model_input.shape)
        if len(shape) != 4:
            raise ConfigurationError(f"Expected a 4D NHWC input, got shape {shape}.")
        self._input_shape = shape

    @property
    def input_hw(self) -> Tuple[Optional[int], Optional[int]]:
        return _fixed_dim(self._input_shape[1]), _fixed_dim(self._input_shape[2])

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> Tuple[np.ndarray, np.ndarray]:
        inputs: Dict[str, Any] = {self.input_name: blob.astype(np.float32, copy=False)}
        if extra_inputs:
            inputs.update(extra_inputs)
        deltas, scores = self.session.run(list(self.output_names), inputs)
        return deltas, scores

    def close(self) -> None:
        # ORT sessions have no explicit release; dropping the reference frees the model.
        self.session = None
