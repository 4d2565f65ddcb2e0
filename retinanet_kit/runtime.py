from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

import httpx
import numpy as np

from .anchors import DEFAULT_ANCHOR_PARAMETERS, AnchorParameters, anchors_for_shape
from .decode import BoxDecodeConfig, decode_with_config
from .errors import ConfigurationError, DetectorDisposedError, InferenceError
from .image_source import ImageSource, PathLike, as_image_source
from .metadata import load_class_names
from .nms import NMSConfig, nms
from .preprocess import check_mode, prepare
from .types import Detection

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]
ImageInput = Union[ImageSource, np.ndarray, str, Path]

DOWNLOAD_PROGRESS_SHARE = 0.9
BUILDING_PROGRESS = 0.92
WARMUP_IMAGE_SHAPE = (100, 100, 3)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when `retinanet_kit` is vendored as `A/retinanet_kit` and models live in `A/models`.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, the project root otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def is_remote(location: PathLike) -> bool:
    return isinstance(location, str) and urlparse(location).scheme in ("http", "https")


def download_model(
    url: str,
    cache_dir: Optional[PathLike] = None,
    on_progress: Optional[Callable[[float], None]] = None,
    timeout: float = 60.0,
) -> Path:
    """
    Stream a model file into `cache_dir` (a temp directory by default) and return its path.

    Files land in a per-URL subdirectory, so URLs sharing a basename do not collide.
    Data is written to a temporary file and renamed into place once the download
    completes; a failed download leaves nothing behind.

    `on_progress` receives the downloaded fraction in [0, 1] when the server sends a
    Content-Length.
    """

    base_dir = Path(cache_dir) if cache_dir is not None else Path(tempfile.gettempdir()) / "retinanet_kit"
    dest_dir = base_dir / hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
    dest_dir.mkdir(parents=True, exist_ok=True)
    name = Path(urlparse(url).path).name or "model.onnx"
    dest = dest_dir / name

    logger.info("downloading model %s -> %s", url, dest)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".part", dir=dest_dir)
    try:
        with os.fdopen(fd, "wb") as fh:
            with httpx.stream("GET", url, timeout=timeout, follow_redirects=True) as response:
                response.raise_for_status()
                total = int(response.headers.get("content-length") or 0)
                received = 0
                for chunk in response.iter_bytes():
                    if not chunk:
                        continue
                    fh.write(chunk)
                    received += len(chunk)
                    if on_progress is not None and total > 0:
                        on_progress(min(received / total, 1.0))
        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    if on_progress is not None:
        on_progress(1.0)
    return dest


@dataclass(frozen=True)
class DetectorConfig:
    score_threshold: float = 0.5
    nms_threshold: float = 0.5
    max_detections: int = 300


class RetinaNetDetector:
    """
    Preprocess -> inference -> anchor decoding -> class-agnostic NMS.

    `backend` must expose `input_hw`, `infer(blob) -> (deltas, scores)` and `close()`.
    Boxes are returned as fractions of the original image size.

    The anchor set is built once here and is read-only afterwards, so overlapping
    `detect` calls only share immutable state. Whether they can overlap at all is up
    to the backend.
    """

    def __init__(
        self,
        backend: Any,
        classes: Sequence[str],
        preprocessing_mode: str,
        anchor_params: AnchorParameters = DEFAULT_ANCHOR_PARAMETERS,
        *,
        decode_cfg: BoxDecodeConfig = BoxDecodeConfig(),
        config: DetectorConfig = DetectorConfig(),
    ):
        height, width = backend.input_hw
        if not isinstance(height, int) or not isinstance(width, int) or height <= 0 or width <= 0:
            raise ConfigurationError(
                f"Only fixed input sizes are supported, model input is {(height, width)}."
            )
        check_mode(preprocessing_mode)

        self.backend = backend
        self.classes: List[str] = list(classes)
        self.preprocessing_mode = preprocessing_mode
        self.anchor_params = anchor_params
        self.decode_cfg = decode_cfg
        self.config = config
        self.height = height
        self.width = width
        self.anchors = anchors_for_shape((height, width), anchor_params)
        self.warmup: Optional[Future] = None
        self._disposed = False

    @property
    def input_hw(self) -> Tuple[int, int]:
        return self.height, self.width

    @property
    def disposed(self) -> bool:
        return self._disposed

    def detect(
        self,
        image: ImageInput,
        score_threshold: Optional[float] = None,
        nms_threshold: Optional[float] = None,
        max_detections: Optional[int] = None,
    ) -> List[Detection]:
        """
        Run detection on one image. Suppression ignores classes.

        Args:
            image: HxWx3 array, image path, or any `ImageSource`
            score_threshold: minimum confidence (inclusive)
            nms_threshold: IoU above which the lower-scoring box is dropped
            max_detections: cap on returned detections
        """

        if self._disposed:
            raise DetectorDisposedError("Detector has been disposed; load a new one.")

        nms_cfg = NMSConfig(
            iou_threshold=self.config.nms_threshold if nms_threshold is None else nms_threshold,
            score_threshold=self.config.score_threshold if score_threshold is None else score_threshold,
            max_detections=self.config.max_detections if max_detections is None else max_detections,
        )

        pixels = as_image_source(image).to_pixel_array()
        prep = prepare(pixels, (self.height, self.width), self.preprocessing_mode)
        deltas, scores = self._infer(prep.blob)

        boxes = decode_with_config(self.anchors, deltas, self.decode_cfg)
        confidences = scores.max(axis=1)
        keep = nms(boxes, confidences, nms_cfg)
        logger.debug(
            "detect: %d of %d anchors >= %.3f, %d kept",
            int((confidences >= nms_cfg.score_threshold).sum()),
            len(confidences),
            nms_cfg.score_threshold,
            len(keep),
        )

        if keep.size == 0:
            return []

        kept_boxes = boxes[keep] / np.array(
            [self.width - prep.pad_x, self.height - prep.pad_y, self.width - prep.pad_x, self.height - prep.pad_y],
            dtype=np.float32,
        )
        kept_scores = scores[keep]
        class_ids = kept_scores.argmax(axis=1)

        return [
            Detection(
                label=self._label(int(cls_id)),
                score=float(row[cls_id]),
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                class_id=int(cls_id),
            )
            for (x1, y1, x2, y2), row, cls_id in zip(kept_boxes, kept_scores, class_ids)
        ]

    def dispose(self) -> None:
        """
        Release the model. Further `detect` calls raise `DetectorDisposedError`.
        """

        if self._disposed:
            return
        self._disposed = True
        self.backend.close()
        logger.info("detector disposed")

    def __enter__(self) -> "RetinaNetDetector":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _infer(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        try:
            deltas, scores = self.backend.infer(blob)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Model inference failed: {e}") from e

        deltas = np.asarray(deltas, dtype=np.float32)
        scores = np.asarray(scores, dtype=np.float32)
        if deltas.ndim == 3:
            deltas = deltas[0]
        if scores.ndim == 3:
            scores = scores[0]

        n = self.anchors.shape[0]
        if deltas.shape != (n, 4):
            raise InferenceError(f"Expected box deltas of shape ({n}, 4), got {deltas.shape}.")
        if scores.ndim != 2 or scores.shape[0] != n:
            raise InferenceError(f"Expected class scores of shape ({n}, C), got {scores.shape}.")
        return deltas, scores

    def _label(self, class_id: int) -> str:
        if 0 <= class_id < len(self.classes):
            return self.classes[class_id]
        return str(class_id)


def start_warmup(detector: RetinaNetDetector, on_progress: Optional[ProgressCallback] = None) -> Future:
    """
    Run one inference on a blank image in a background thread to trigger lazy
    initialization in the runtime. The returned future completes when it is done.
    """

    def _run() -> None:
        detector.detect(np.ones(WARMUP_IMAGE_SHAPE, dtype=np.float32))
        logger.info("warm-up inference finished")
        if on_progress is not None:
            on_progress(1.0, "Finished")

    def _log_failure(f: Future) -> None:
        exc = f.exception()
        if exc is not None:
            logger.warning("warm-up inference failed: %s", exc)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="retinanet-warmup")
    future = executor.submit(_run)
    executor.shutdown(wait=False)

    future.add_done_callback(_log_failure)
    detector.warmup = future
    return future


def _make_backend(
    path: Path,
    backend: Optional[str],
    onnx_providers: Optional[Sequence[str]],
    torch_device: str,
    torch_half: bool,
    input_size: Optional[Tuple[int, int]],
) -> Any:
    chosen = backend
    if chosen is None:
        suffix = path.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ConfigurationError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        return OnnxRuntimeBackend(path, OnnxRuntimeBackendConfig(providers=onnx_providers))

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        return TorchScriptBackend(
            path,
            TorchScriptBackendConfig(device=torch_device, half=torch_half, input_size=input_size),
        )

    raise ConfigurationError(f"Unsupported backend: {backend!r}")


def load(
    model_location: PathLike,
    classes: Union[Sequence[str], PathLike],
    preprocessing_mode: str,
    on_progress: Optional[ProgressCallback] = None,
    anchor_params: AnchorParameters = DEFAULT_ANCHOR_PARAMETERS,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    cache_dir: Optional[PathLike] = None,
    decode_cfg: BoxDecodeConfig = BoxDecodeConfig(),
    config: DetectorConfig = DetectorConfig(),
    warmup: bool = True,
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
    input_size: Optional[Tuple[int, int]] = None,
) -> RetinaNetDetector:
    """
    Load a RetinaNet model and wrap it in a detector.

    Typical usage:
        detector = load("models/resnet50_coco.onnx", "models/classes.txt", "caffe")
        detector.warmup.result()  # optional
        detections = detector.detect(image_bgr)

    Args:
        model_location: local path (relative paths resolve against the project root) or http(s) URL
        classes: ordered class labels, or a path to a labels file
        preprocessing_mode: `tf` or `caffe`, as used by the backbone during training
        on_progress: called with (fraction, stage) while loading
        anchor_params: anchor layout used when training the model
        warmup: submit a background warm-up inference; its future is `detector.warmup`
        input_size: fixed (H, W) for TorchScript models
    """

    check_mode(preprocessing_mode)

    if is_remote(model_location):
        download_progress = None
        if on_progress is not None:
            download_progress = lambda fraction: on_progress(DOWNLOAD_PROGRESS_SHARE * fraction, "Downloading")  # noqa: E731
        path = download_model(str(model_location), cache_dir=cache_dir, on_progress=download_progress)
    else:
        path = resolve_path(model_location, root=root)
        if on_progress is not None:
            on_progress(DOWNLOAD_PROGRESS_SHARE, "Downloading")

    if isinstance(classes, (str, Path)):
        labels = load_class_names(str(resolve_path(classes, root=root)))
    else:
        labels = list(classes)

    model = _make_backend(path, backend, onnx_providers, torch_device, torch_half, input_size)
    try:
        detector = RetinaNetDetector(
            model,
            labels,
            preprocessing_mode,
            anchor_params,
            decode_cfg=decode_cfg,
            config=config,
        )
    except Exception:
        model.close()
        raise
    logger.info("loaded %s (input %dx%d, %d anchors)", path.name, detector.height, detector.width, len(detector.anchors))

    if on_progress is not None:
        on_progress(BUILDING_PROGRESS, "Building")

    if warmup:
        start_warmup(detector, on_progress)
    return detector
