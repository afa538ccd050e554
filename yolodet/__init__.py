"""Preparation, decoding, non-maximum suppression and drawing of YOLO detections from int8-quantised outputs."""

__version__ = "0.1.0"

__all__ = ["attrs", "model", "postprocess", "preprocess", "tensor"]