"""
Optional inference backends for retinanet_kit.

Backends are kept in a separate module so core functionality (anchors, decoding, NMS)
stays lightweight and can be used without installing inference runtimes.

Every backend exposes:
- input_hw: fixed (H, W) of the NHWC network input
- infer(blob): returns (box_deltas [1, N, 4], class_scores [1, N, C])
- close(): releases the model
"""

from __future__ import annotations

__all__ = []
