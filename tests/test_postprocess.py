import numpy as np
import pytest
from PIL import Image

from yolodet.postprocess import (
    ANCHOR1,
    PROP_BOX_SIZE,
    DetectionBox,
    DetectResultsGroup,
    ModelType,
    calculate_overlap,
    decode_layer,
    deqnt_affine_to_f32,
    draw_image_detect,
    draw_results,
    nms,
    post_process,
    qnt_f32_to_affine,
    sort_indices_descending,
)
from yolodet.preprocess import BoxRect

SCALE = 0.01


def _layer(grid):
    return np.zeros((3, PROP_BOX_SIZE, grid, grid), dtype=np.int8)


def _set_cell(layer, a, i, j, cls, conf=100, prob=90):
    layer[a, 0, i, j] = 25
    layer[a, 1, i, j] = 25
    layer[a, 2, i, j] = 50
    layer[a, 3, i, j] = 50
    layer[a, 4, i, j] = conf
    layer[a, 5 + cls, i, j] = prob


def _run(layers, nms_threshold=0.45):
    return post_process(
        [layer.reshape(-1) for layer in layers], 64, 64, 0.5, nms_threshold,
        BoxRect(), 1.0, 1.0, [0, 0, 0], [SCALE, SCALE, SCALE],
    )


def test_overlap_identical_and_disjoint():
    assert calculate_overlap(0, 0, 9, 9, 0, 0, 9, 9) == pytest.approx(1.0)
    assert calculate_overlap(0, 0, 9, 9, 50, 50, 60, 60) == 0.0


def test_overlap_worked_example_and_symmetry():
    a = (0, 0, 9, 9)
    b = (5, 0, 14, 9)
    assert calculate_overlap(*a, *b) == pytest.approx(1 / 3)
    assert calculate_overlap(*a, *b) == pytest.approx(calculate_overlap(*b, *a))


def test_quantise_clips_to_int8_range():
    assert qnt_f32_to_affine(1000.0, 0, 1.0) == 127
    assert qnt_f32_to_affine(-1000.0, 0, 1.0) == -128


@pytest.mark.parametrize("value", [-1.0, -0.3, 0.0, 0.42, 1.0])
def test_quantise_round_trip_within_one_step(value):
    restored = deqnt_affine_to_f32(qnt_f32_to_affine(value, 5, SCALE), 5, SCALE)
    assert abs(restored - value) <= SCALE + 1e-9


def test_dequantise_zero_point_is_zero():
    assert deqnt_affine_to_f32(-7, -7, 0.3) == 0.0


def test_sort_indices_descending_is_sorted_permutation():
    values = [0.2, 0.9, 0.5, 0.9, 0.1, 0.7]
    order = sort_indices_descending(values)
    assert sorted(order) == list(range(len(values)))
    ranked = [values[k] for k in order]
    assert ranked == sorted(values, reverse=True)


def test_sort_indices_descending_empty():
    assert sort_indices_descending([]) == []


def test_nms_suppresses_overlapping_box_of_same_class():
    boxes = [(0, 0, 10, 10), (1, 1, 10, 10)]
    order = [0, 1]
    result = nms(boxes, [2, 2], order, 2, 0.45)
    assert result == [0, -1]
    assert order == [0, -1]


def test_nms_leaves_other_classes_and_distant_boxes():
    boxes = [(0, 0, 10, 10), (1, 1, 10, 10), (100, 100, 10, 10)]
    assert nms(boxes, [1, 1, 1], [0, 1, 2], 3, 0.45) == [0, 1, 2]
    assert nms(boxes, [1, 1, 1], [0, 2], 1, 0.45) == [0, 2]


def test_decode_layer_finds_single_cell():
    layer = _layer(2)
    _set_cell(layer, 1, 1, 0, 7)
    found = decode_layer(layer.reshape(-1), ANCHOR1, 2, 2, 16, 0.5, 0, SCALE)
    assert len(found) == 1
    (x, y, w, h), score, cls = found[0]
    assert cls == 7
    assert w == pytest.approx(ANCHOR1[2])
    assert h == pytest.approx(ANCHOR1[3])
    assert x + w / 2 == pytest.approx(0 * 16)
    assert y + h / 2 == pytest.approx(1 * 16)
    assert score == pytest.approx(0.9 * 1.0)


def test_decode_layer_ignores_low_confidence_and_low_class_prob():
    layer = _layer(2)
    _set_cell(layer, 0, 0, 0, 1, conf=10)
    _set_cell(layer, 0, 1, 1, 1, prob=20)
    assert decode_layer(layer.tobytes(), ANCHOR1, 2, 2, 16, 0.5, 0, SCALE) == []


def test_decode_layer_rejects_short_data():
    with pytest.raises(ValueError):
        decode_layer(np.zeros(10, dtype=np.int8), ANCHOR1, 2, 2, 16, 0.5, 0, SCALE)


def test_post_process_no_detections():
    group = _run([_layer(8), _layer(4), _layer(2)])
    assert group.dets == []


def test_post_process_single_material_detection():
    first = _layer(8)
    _set_cell(first, 0, 4, 4, 3)
    group = _run([first, _layer(4), _layer(2)])
    assert len(group.dets) == 1
    det = group.dets[0]
    assert det.obj_id == 3
    assert det.det_name == "tape_measure"
    assert det.model_type == ModelType.MATERIAL
    assert det.score == pytest.approx(0.9)
    x, y, w, h = det.box
    assert 0 <= x and 0 <= y and x + w <= 64 and y + h <= 64


def test_post_process_digit_range_id_is_unknown():
    first = _layer(8)
    _set_cell(first, 0, 2, 2, 20)
    group = _run([first, _layer(4), _layer(2)])
    assert [d.obj_id for d in group.dets] == [20]
    assert group.dets[0].det_name == "unknown"


def test_post_process_nms_keeps_best_box():
    first = _layer(8)
    _set_cell(first, 0, 4, 4, 3, prob=80)
    _set_cell(first, 1, 4, 4, 3, prob=90)
    suppressed = _run([first, _layer(4), _layer(2)], nms_threshold=0.1)
    assert len(suppressed.dets) == 1
    assert suppressed.dets[0].score == pytest.approx(0.9)

    kept = _run([first, _layer(4), _layer(2)], nms_threshold=0.9)
    scores = [d.score for d in kept.dets]
    assert len(scores) == 2
    assert scores == sorted(scores, reverse=True)


def test_post_process_requires_three_layers():
    with pytest.raises(ValueError):
        post_process([b"", b""], 64, 64, 0.5, 0.45, BoxRect(), 1.0, 1.0, [0, 0], [SCALE, SCALE])


def test_draw_image_detect_writes_numbered_file(tmp_path):
    image = np.zeros((60, 60, 3), dtype=np.uint8)
    det = DetectionBox(box=(10, 10, 30, 30), score=0.8, obj_id=0, det_name="wrench")
    path = draw_image_detect(image, [det], 7, tmp_path)
    assert path.name == "detect_0007.jpg"
    assert path.exists()
    with Image.open(path) as saved:
        assert saved.size == (60, 60)
    assert image[10, 20].tolist() == [255, 0, 0]


def test_draw_results_marks_center_red():
    image = np.zeros((80, 80, 3), dtype=np.uint8)
    det = DetectionBox(box=(10, 10, 40, 40), score=0.8, obj_id=0, det_name="wrench")
    group = DetectResultsGroup(dets=[det], cur_frame_id=1, cur_img=image)
    drawn = draw_results(group)
    assert drawn[30, 30].tolist() == [0, 0, 255]
    assert group.cur_img[30, 30].tolist() == [0, 0, 255]


def test_draw_results_requires_image():
    with pytest.raises(ValueError):
        draw_results(DetectResultsGroup())