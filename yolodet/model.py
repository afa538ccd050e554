"""Running a detection model through an inference backend and decoding its outputs."""

from __future__ import annotations

import threading
from os import PathLike
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from .attrs import InputSpec, TensorAttr
from .postprocess import (
    BOX_THRESH,
    NMS_THRESH,
    DetectResultsGroup,
    ModelType,
    post_process,
)
from .preprocess import BoxRect, resize_image
from .tensor import TensorFormat, TensorType


@runtime_checkable
class InferenceBackend(Protocol):
    """What a detector needs from the runtime that executes the model."""

    def input_attrs(self) -> Sequence[TensorAttr]:
        """Attributes of the model inputs, in index order."""
        ...

    def output_attrs(self) -> Sequence[TensorAttr]:
        """Attributes of the model outputs, in index order."""
        ...

    def run(self, data: Sequence[InputSpec]) -> Sequence[object]:
        """Run the model on ``data`` and return the raw buffer of every output."""
        ...


def load_model(path: str | PathLike[str]) -> bytes:
    """Read a model file into memory."""
    return Path(path).read_bytes()


def input_geometry(attr: TensorAttr) -> tuple[int, int, int]:
    """Return ``(height, width, channel)`` of a four-dimensional input tensor."""
    if len(attr.dims) < 4:
        raise ValueError(f"input tensor needs 4 dimensions, got {len(attr.dims)}")
    if attr.fmt == TensorFormat.NCHW:
        _, channel, height, width = attr.dims[:4]
    else:
        _, height, width, channel = attr.dims[:4]
    return height, width, channel


def quant_params(output_attrs: Sequence[TensorAttr]) -> tuple[list[int], list[float]]:
    """Zero points and scales of the 8-bit quantised outputs, in order."""
    quantised = [attr for attr in output_attrs if attr.is_quantized_int()]
    return [attr.zp for attr in quantised], [attr.scale for attr in quantised]


class Detector:
    """Object detector bound to one model and one inference backend."""

    def __init__(
        self,
        model_path: str | PathLike[str],
        backend: InferenceBackend,
        model_type: ModelType = ModelType.MATERIAL,
    ) -> None:
        if not isinstance(backend, InferenceBackend):
            raise TypeError("backend must provide input_attrs, output_attrs and run")
        self.model_path = Path(model_path)
        self.model_data = load_model(self.model_path)
        self.backend = backend
        self.model_type = ModelType(model_type)
        self.nms_threshold = NMS_THRESH
        self.box_conf_threshold = BOX_THRESH
        self._lock = threading.Lock()

        self.input_attrs = list(backend.input_attrs())
        self.output_attrs = list(backend.output_attrs())
        if not self.input_attrs:
            raise ValueError("the model has no inputs")
        self.height, self.width, self.channel = input_geometry(self.input_attrs[0])

    def infer(self, image: np.ndarray, frame_id: int = 0) -> DetectResultsGroup:
        """Detect objects in a BGR ``image`` and return them with a copy of the frame."""
        array = np.asarray(image)
        if array.dtype != np.uint8 or array.ndim != 3 or array.shape[2] != 3:
            raise ValueError(f"image must be uint8 BGR with 3 channels, got {array.dtype} {array.shape}")

        with self._lock:
            rgb = np.ascontiguousarray(array[:, :, ::-1])
            img_height, img_width = rgb.shape[:2]
            scale_w = self.width / img_width
            scale_h = self.height / img_height

            if img_width != self.width or img_height != self.height:
                model_input = resize_image(rgb, (self.width, self.height))
            else:
                model_input = rgb

            spec = InputSpec(
                index=0,
                buf=np.ascontiguousarray(model_input).tobytes(),
                type=TensorType.UINT8,
                fmt=TensorFormat.NHWC,
                pass_through=False,
            )
            outputs = list(self.backend.run([spec]))

            zps, scales = quant_params(self.output_attrs)
            group = post_process(
                outputs[:3],
                self.height,
                self.width,
                self.box_conf_threshold,
                self.nms_threshold,
                BoxRect(),
                scale_w,
                scale_h,
                zps,
                scales,
            )

        group.cur_frame_id = frame_id
        group.cur_img = array.copy()
        for det in group.dets:
            det.model_type = self.model_type
        return group