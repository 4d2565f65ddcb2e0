from dataclasses import dataclass
import numpy as np


@dataclass
class NMSConfig:
    iou_threshold: float = 0.5
    score_threshold: float = 0.5
    max_detections: int = 300


def iou(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    """
    IoU between one xyxy box and an (N,4) array of xyxy boxes.
    """

    xx1 = np.maximum(box[0], boxes[:, 0])
    yy1 = np.maximum(box[1], boxes[:, 1])
    xx2 = np.minimum(box[2], boxes[:, 2])
    yy2 = np.minimum(box[3], boxes[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    area = max(0.0, float(box[2] - box[0])) * max(0.0, float(box[3] - box[1]))
    areas = np.maximum(0.0, boxes[:, 2] - boxes[:, 0]) * np.maximum(0.0, boxes[:, 3] - boxes[:, 1])
    union = area + areas - inter
    return inter / np.maximum(union, 1e-9)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy class-agnostic NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).

    Boxes scoring below `score_threshold` are never selected (the threshold itself passes).
    Equal scores keep the lower index first. Returns kept indices, best score first.
    """

    boxes = np.asarray(boxes, dtype=np.float32).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float32).reshape(-1)
    if boxes.shape[0] == 0 or cfg.max_detections <= 0:
        return np.empty((0,), dtype=np.int64)

    candidates = np.flatnonzero(scores >= cfg.score_threshold)
    # Stable sort on the negated scores keeps anchor order among ties.
    order = candidates[np.argsort(-scores[candidates], kind="stable")]
    keep = []

    while order.size > 0 and len(keep) < cfg.max_detections:
        i = order[0]
        keep.append(i)

        overlaps = iou(boxes[i], boxes[order[1:]])
        inds = np.where(overlaps <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int64)
