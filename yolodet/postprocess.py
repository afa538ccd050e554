"""Decoding of quantised detector outputs, non-maximum suppression and drawing."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Sequence

import numpy as np
from PIL import Image, ImageDraw

from .preprocess import BoxRect

log = logging.getLogger(__name__)

OBJ_MATERIAL_CLASS_NUM = 15
OBJ_DIGIT_CLASS_NUM = 10
OBJ_CLASS_NUM = OBJ_MATERIAL_CLASS_NUM + OBJ_DIGIT_CLASS_NUM
PROP_BOX_SIZE = 5 + OBJ_CLASS_NUM
NMS_THRESH = 0.45
BOX_THRESH = 0.45

MATERIAL_LABELS = (
    "wrench", "soldering_iron", "electrodrill",
    "tape_measure", "screwdriver", "pliers",
    "oscilograph", "multimeter", "printer",
    "keyboard", "mobile_phone", "mouse",
    "headphones", "monitor", "speaker",
)
DIGIT_LABELS = (
    "one", "two", "three", "four", "five",
    "six", "seven", "eight", "nine", "zero",
)
LABELS = MATERIAL_LABELS + DIGIT_LABELS

ANCHOR0 = (10, 13, 16, 30, 33, 23)
ANCHOR1 = (30, 61, 62, 45, 59, 119)
ANCHOR2 = (116, 90, 156, 198, 373, 326)
_LAYERS = ((8, ANCHOR0), (16, ANCHOR1), (32, ANCHOR2))

Box = tuple[float, float, float, float]
Candidate = tuple[Box, float, int]


class ModelType(IntEnum):
    """Which model produced a detection."""

    MATERIAL = 0
    DIGIT = 1


@dataclass
class DetectionBox:
    """One detected object; ``box`` is ``(x, y, width, height)`` in image pixels."""

    box: tuple[int, int, int, int]
    score: float
    obj_id: int
    det_name: str = "unknown"
    model_type: ModelType = ModelType.MATERIAL


@dataclass
class DetectResultsGroup:
    """All detections of one frame together with the frame itself."""

    dets: list[DetectionBox] = field(default_factory=list)
    cur_frame_id: int = 0
    cur_img: np.ndarray | None = None


def calculate_overlap(xmin0, ymin0, xmax0, ymax0, xmin1, ymin1, xmax1, ymax1) -> float:
    """Intersection over union of two boxes given by inclusive corner coordinates."""
    w = max(0.0, min(xmax0, xmax1) - max(xmin0, xmin1) + 1.0)
    h = max(0.0, min(ymax0, ymax1) - max(ymin0, ymin1) + 1.0)
    inter = w * h
    union = (
        (xmax0 - xmin0 + 1.0) * (ymax0 - ymin0 + 1.0)
        + (xmax1 - xmin1 + 1.0) * (ymax1 - ymin1 + 1.0)
        - inter
    )
    return 0.0 if union <= 0.0 else inter / union


def nms(
    boxes: Sequence[Box],
    class_ids: Sequence[int],
    order: list[int],
    filter_id: int,
    threshold: float,
) -> list[int]:
    """Suppress, in place, boxes of class ``filter_id`` overlapping a better one.

    ``order`` holds box indices sorted by descending score; suppressed
    entries are set to -1. The class of a slot is read from ``class_ids``
    at the slot's position in ``order``. Returns ``order``.
    """
    for i, n in enumerate(order):
        if n == -1 or class_ids[i] != filter_id:
            continue
        x0, y0, w0, h0 = boxes[n]
        for j, m in enumerate(order[i + 1 :], start=i + 1):
            if m == -1 or class_ids[j] != filter_id:
                continue
            x1, y1, w1, h1 = boxes[m]
            iou = calculate_overlap(x0, y0, x0 + w0, y0 + h0, x1, y1, x1 + w1, y1 + h1)
            if iou > threshold:
                order[j] = -1
    return order


def sort_indices_descending(values: Sequence[float]) -> list[int]:
    """Indices of ``values`` ordered by descending value (quicksort partitioning)."""
    keys = [float(v) for v in values]
    indices = list(range(len(keys)))
    pending = [(0, len(keys) - 1)]
    while pending:
        left, right = pending.pop()
        if left >= right:
            continue
        key, key_index = keys[left], indices[left]
        low, high = left, right
        while low < high:
            while low < high and keys[high] <= key:
                high -= 1
            keys[low], indices[low] = keys[high], indices[high]
            while low < high and keys[low] >= key:
                low += 1
            keys[high], indices[high] = keys[low], indices[low]
        keys[low], indices[low] = key, key_index
        pending.append((low + 1, right))
        pending.append((left, low - 1))
    return indices


def qnt_f32_to_affine(value: float, zp: int, scale: float) -> int:
    """Quantise a float to int8 with an affine zero point and scale."""
    quantised = value / scale + zp
    return int(min(max(quantised, -128.0), 127.0))


def deqnt_affine_to_f32(qnt: int, zp: int, scale: float) -> float:
    """Turn an affine-quantised int8 value back into a float."""
    return (float(qnt) - float(zp)) * scale


def _as_int8(data) -> np.ndarray:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return np.frombuffer(data, dtype=np.int8)
    return np.asarray(data).reshape(-1).astype(np.int8, copy=False)


def decode_layer(data, anchor, grid_h, grid_w, stride, threshold, zp, scale) -> list[Candidate]:
    """Decode one output layer into ``(box, score, class_id)`` candidates.

    Boxes are ``(x, y, width, height)`` in model input pixels.
    """
    grid_len = grid_h * grid_w
    needed = 3 * PROP_BOX_SIZE * grid_len
    flat = _as_int8(data)
    if flat.size < needed:
        raise ValueError(f"layer holds {flat.size} values, {needed} are needed")
    layer = flat[:needed].reshape(3, PROP_BOX_SIZE, grid_h, grid_w).astype(np.int32)
    thres = qnt_f32_to_affine(threshold, zp, scale)

    def deq(value) -> float:
        return deqnt_affine_to_f32(int(value), zp, scale)

    candidates: list[Candidate] = []
    for a in range(3):
        rows, cols = np.nonzero(layer[a, 4] >= thres)
        for i, j in zip(rows.tolist(), cols.tolist()):
            cell = layer[a, :, i, j]
            class_probs = cell[5 : 5 + OBJ_CLASS_NUM]
            class_id = int(np.argmax(class_probs))
            max_prob = int(class_probs[class_id])
            if max_prob <= thres:
                continue
            box_w = (deq(cell[2]) * 2.0) ** 2 * anchor[a * 2]
            box_h = (deq(cell[3]) * 2.0) ** 2 * anchor[a * 2 + 1]
            box_x = (deq(cell[0]) * 2.0 - 0.5 + j) * stride - box_w / 2.0
            box_y = (deq(cell[1]) * 2.0 - 0.5 + i) * stride - box_h / 2.0
            score = deq(max_prob) * deq(cell[4])
            candidates.append(((box_x, box_y, box_w, box_h), score, class_id))
    return candidates


def _clamp(value: float, low: int, high: int) -> int:
    return int(value if low < value < high else (high if value >= high else low))


def post_process(
    outputs,
    model_in_h: int,
    model_in_w: int,
    conf_threshold: float,
    nms_threshold: float,
    pads: BoxRect,
    scale_w: float,
    scale_h: float,
    qnt_zps: Sequence[int],
    qnt_scales: Sequence[float],
) -> DetectResultsGroup:
    """Turn the three quantised output layers into a group of detections."""
    if len(outputs) < 3 or len(qnt_zps) < 3 or len(qnt_scales) < 3:
        raise ValueError("three output layers with quantisation parameters are required")

    candidates: list[Candidate] = []
    for data, (stride, anchor), zp, scale in zip(outputs, _LAYERS, qnt_zps, qnt_scales):
        candidates.extend(
            decode_layer(
                data, anchor, model_in_h // stride, model_in_w // stride,
                stride, conf_threshold, zp, scale,
            )
        )

    group = DetectResultsGroup()
    if not candidates:
        return group

    boxes = [c[0] for c in candidates]
    probs = [c[1] for c in candidates]
    class_ids = [c[2] for c in candidates]
    order = sort_indices_descending(probs)
    sorted_probs = sorted(probs, reverse=True)

    for class_id in sorted(set(class_ids)):
        nms(boxes, class_ids, order, class_id, nms_threshold)

    for position, n in enumerate(order):
        if n == -1:
            continue
        x, y, w, h = boxes[n]
        x1 = x - pads.left
        y1 = y - pads.top
        x2 = x1 + w
        y2 = y1 + h
        class_id = class_ids[n]
        score = sorted_probs[position]

        left = int(_clamp(x1, 0, model_in_w) / scale_w)
        top = int(_clamp(y1, 0, model_in_h) / scale_h)
        right = int(_clamp(x2, 0, model_in_w) / scale_w)
        bottom = int(_clamp(y2, 0, model_in_h) / scale_h)

        det = DetectionBox(
            box=(left, top, right - left, bottom - top),
            score=score,
            obj_id=class_id,
        )
        if class_id >= 0:
            if class_id < OBJ_MATERIAL_CLASS_NUM:
                det.det_name = MATERIAL_LABELS[class_id]
                log.debug("potential material object: %s (id: %d), score: %.2f",
                          det.det_name, class_id, score)
            if class_id < OBJ_DIGIT_CLASS_NUM:
                log.debug("potential digit: %s (id: %d), score: %.2f",
                          DIGIT_LABELS[class_id], class_id, score)
        else:
            log.warning("invalid class id: %d", class_id)
        group.dets.append(det)
    return group


_rng = random.Random(0xFFFFFFFF)
_RAND_COLORS = tuple(tuple(_rng.randrange(256) for _ in range(4)) for _ in range(2))


def _check_image(image) -> np.ndarray:
    if not isinstance(image, np.ndarray) or image.dtype != np.uint8:
        raise ValueError("image must be a uint8 numpy array")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError("image must have three (BGR) channels")
    return image


def _rgb(bgr: Sequence[int]) -> tuple[int, int, int]:
    b, g, r = (min(255, max(0, int(c))) for c in bgr[:3])
    return (r, g, b)


def _rect_corners(box) -> list[int]:
    x, y, w, h = box
    return [x, y, max(x, x + w - 1), max(y, y + h - 1)]


def _text_origin(box) -> tuple[int, int]:
    x, y = box[0], box[1]
    return (x, max(0, y + 2))


def draw_image_detect(image: np.ndarray, results, frame_id: int, directory=".") -> Path:
    """Draw boxes and names on ``image`` and save it as ``detect_NNNN.jpg``."""
    bgr = _check_image(image)
    canvas = Image.fromarray(np.ascontiguousarray(bgr[:, :, ::-1]))
    draw = ImageDraw.Draw(canvas)
    for res in results:
        draw.rectangle(_rect_corners(res.box), outline=_rgb((256, 0, 0)), width=3)
        draw.text(_text_origin(res.box), res.det_name, fill=(255, 255, 255))
    bgr[...] = np.asarray(canvas)[:, :, ::-1]
    path = Path(directory) / f"detect_{frame_id:04d}.jpg"
    canvas.save(path)
    return path


def draw_results(group: DetectResultsGroup) -> np.ndarray:
    """Draw every detection of ``group`` onto its frame, marking box centres in red."""
    if group.cur_img is None:
        raise ValueError("the group holds no image")
    bgr = _check_image(group.cur_img)
    canvas = Image.fromarray(np.ascontiguousarray(bgr[:, :, ::-1]))
    draw = ImageDraw.Draw(canvas)
    for res in group.dets:
        x, y, w, h = res.box
        draw.rectangle(_rect_corners(res.box), outline=_rgb(_RAND_COLORS[1]), width=2)
        draw.text(_text_origin(res.box), res.det_name, fill=(255, 255, 255))
        cx = x + w // 2
        cy = y + h // 2
        draw.ellipse([cx - 10, cy - 10, cx + 10, cy + 10], fill=_rgb((0, 0, 255)))
    bgr[...] = np.asarray(canvas)[:, :, ::-1]
    return bgr