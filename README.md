# yolodet

Turns the three int8-quantised output layers of a YOLO-style detector into a
list of labelled boxes, with the image preparation and drawing helpers around
it.

The package does not execute a network. You hand a `Detector` an object that
satisfies the `InferenceBackend` protocol, and it does the rest: colour
conversion, resizing to the model input, dequantisation, anchor decoding,
per-class non-maximum suppression and scaling the boxes back to the frame.

## Modules

- `yolodet.tensor` – the enumerations `TensorType`, `QuantType`,
  `TensorFormat`, `CoreMask`, `QueryCommand`, `InitFlag` and `ErrorCode`;
  `type_string`, `qnt_type_string` and `format_string` (which give `"UNKNOW"`
  for values they do not know); and `check_status`, which returns a status
  code unchanged or raises `RuntimeError_` when it is negative.
- `yolodet.attrs` – dataclasses describing a model: `TensorAttr` (with
  `shape_string()`, `describe()` and `is_quantized_int()`),
  `InputOutputNum`, `SdkVersion`, `InputSpec` and `OutputSpec`.
- `yolodet.preprocess` – `letterbox(image, scale, target_size, pad_color)`
  scales a uint8 image and pads it evenly, returning the padded image and a
  `BoxRect` of the padding; `resize_image(image, target_size)` bilinearly
  resizes a three-channel uint8 image. Sizes are `(width, height)`.
- `yolodet.postprocess` – `qnt_f32_to_affine` and `deqnt_affine_to_f32`;
  `decode_layer` for one output layer; `calculate_overlap` (IoU with
  inclusive corners); `sort_indices_descending`; `nms`; and `post_process`,
  which returns a `DetectResultsGroup` of `DetectionBox` items.
  `draw_results(group)` draws boxes, names and red centre dots onto the
  group's BGR frame in place and returns it; `draw_image_detect(image,
  results, frame_id, directory)` draws boxes and names and saves the frame as
  `detect_NNNN.jpg` in `directory`, returning the path.
- `yolodet.model` – `load_model(path)`, `input_geometry(attr)` (height, width
  and channels of an NCHW or NHWC input), `quant_params(output_attrs)`, the
  `InferenceBackend` protocol and the `Detector` class.

## Installation

```
pip install .
```

For the test suite:

```
pip install .[test]
pytest
```

## Usage

```python
import numpy as np
from yolodet.attrs import TensorAttr
from yolodet.model import Detector
from yolodet.postprocess import ModelType
from yolodet.tensor import QuantType, TensorFormat, TensorType


class MyBackend:
    def input_attrs(self):
        return [TensorAttr(index=0, dims=(1, 640, 640, 3), fmt=TensorFormat.NHWC)]

    def output_attrs(self):
        return [
            TensorAttr(index=i, type=TensorType.INT8,
                       qnt_type=QuantType.AFFINE_ASYMMETRIC, zp=-128, scale=0.004)
            for i in range(3)
        ]

    def run(self, data):
        ...  # run the network on data[0].buf and return the three int8 outputs


detector = Detector("model.bin", MyBackend(), ModelType.MATERIAL)
frame = np.zeros((480, 640, 3), dtype=np.uint8)  # BGR
group = detector.infer(frame, frame_id=0)
for det in group.dets:
    print(det.det_name, det.score, det.box)  # box is (x, y, width, height)
```

`Detector` reads the model file into `model_data` when it is created, takes
the input geometry from the backend's first input, and serialises calls to
`infer` with a lock. Frames whose size differs from the model input are
resized without letterboxing. Each output layer must hold
`3 × 30 × grid_h × grid_w` int8 values for strides 8, 16 and 32, and
`post_process` raises `ValueError` unless three layers and three sets of
quantisation parameters are given.

Both thresholds default to 0.45 (`BOX_THRESH`, `NMS_THRESH`). The class set
has 25 ids: fifteen material classes (`MATERIAL_LABELS`, ids 0–14) followed
by ten digit classes (`DIGIT_LABELS`). A box's `det_name` is the material
label for ids below 15 and `"unknown"` otherwise; the `model_type` set by the
detector tells which label set the id belongs to.

## What it does not do

- There is no binding to any NPU runtime: the enumerations and attribute
  classes only describe one, and running the network is left to your
  `InferenceBackend`.
- There is no command-line program, camera capture or message publishing;
  the package is a library to be called from your own code.