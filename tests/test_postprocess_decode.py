import unittest

import numpy as np

from yolo_heat.errors import InvalidInput, ModelContractViolation
from yolo_heat.labels import HOME_CLASS_IDS
from yolo_heat.postprocess import DecoderConfig, DetectionDecoder


def _decoder(**kwargs) -> DetectionDecoder:
    return DetectionDecoder(DecoderConfig(**kwargs))


class TestDetectionDecoder(unittest.TestCase):
    def test_decode_1xnx6_identity_mapping(self) -> None:
        p = np.array(
            [
                [
                    [50, 60, 20, 40, 0.9, 56],
                    [100, 100, 10, 10, 0.8, 62],
                ]
            ],
            dtype=np.float32,
        )
        dets = _decoder(conf_threshold=0.5).process(p, orig_size=(640, 640))
        self.assertEqual(len(dets), 2)
        self.assertEqual(dets[0].class_id, 56)
        self.assertAlmostEqual(dets[0].score, 0.9, places=5)
        self.assertEqual(dets[0].as_xyxy(), (40.0, 40.0, 60.0, 80.0))
        self.assertEqual(dets[1].class_id, 62)

    def test_threshold_drops_low_scores_and_padding_rows(self) -> None:
        p = np.zeros((1, 100, 6), dtype=np.float32)
        p[0, 0] = [10, 10, 4, 4, 0.5, 60]
        p[0, 1] = [10, 10, 4, 4, 0.49, 60]
        p[0, 2] = [10, 10, 4, 4, 0.7, 61]
        dets = _decoder(conf_threshold=0.5).process(p, orig_size=(640, 640))
        self.assertEqual(len(dets), 2)
        self.assertTrue(np.allclose([d.score for d in dets], [0.5, 0.7]))
        self.assertEqual([d.class_id for d in dets], [60, 61])
        self.assertTrue(all(d.score >= 0.5 for d in dets))

    def test_allow_set_filter(self) -> None:
        p = np.array(
            [
                [10, 10, 4, 4, 0.9, 0],  # person
                [10, 10, 4, 4, 0.9, 56],  # chair
                [10, 10, 4, 4, 0.9, 75],  # vase
                [10, 10, 4, 4, 0.9, 76],
            ],
            dtype=np.float32,
        )
        restricted = _decoder(restrict_to_allow_set=True).process(p, orig_size=(100, 100))
        self.assertEqual([d.class_id for d in restricted], [56, 75])
        self.assertTrue(all(d.class_id in HOME_CLASS_IDS for d in restricted))

        unrestricted = _decoder(restrict_to_allow_set=False).process(p, orig_size=(100, 100))
        self.assertEqual([d.class_id for d in unrestricted], [0, 56, 75, 76])

    def test_class_id_is_truncated(self) -> None:
        p = np.array([[10, 10, 4, 4, 0.9, 57.9]], dtype=np.float32)
        dets = _decoder().process(p, orig_size=(100, 100))
        self.assertEqual(dets[0].class_id, 57)

    def test_output_keeps_row_order(self) -> None:
        p = np.array(
            [
                [10, 10, 4, 4, 0.4, 60],
                [20, 20, 4, 4, 0.95, 60],
                [30, 30, 4, 4, 0.6, 60],
            ],
            dtype=np.float32,
        )
        dets = _decoder(conf_threshold=0.1).process(p, orig_size=(100, 100))
        self.assertEqual([round(d.center[0]) for d in dets], [10, 20, 30])

    def test_letterbox_inverse_mapping(self) -> None:
        # 1280x720 letterboxed to 640: scale 0.5, pad (0, 140).
        p = np.array([[[320, 320, 100, 100, 0.9, 60]]], dtype=np.float32)
        dets = _decoder().process(p, orig_size=(1280, 720), pad=(0.0, 140.0), scale=0.5)
        self.assertEqual(len(dets), 1)
        cx, cy = dets[0].center
        self.assertLessEqual(abs(cx - 640), 1.0)
        self.assertLessEqual(abs(cy - 360), 1.0)
        self.assertAlmostEqual(dets[0].width, 200.0, places=4)
        self.assertAlmostEqual(dets[0].height, 200.0, places=4)

    def test_partially_outside_boxes_are_clipped_not_dropped(self) -> None:
        p = np.array(
            [
                [0, 0, 40, 40, 0.9, 60],
                [100, 50, 40, 200, 0.9, 60],
            ],
            dtype=np.float32,
        )
        dets = _decoder().process(p, orig_size=(100, 80))
        self.assertEqual(len(dets), 2)
        self.assertEqual(dets[0].as_xyxy(), (0.0, 0.0, 20.0, 20.0))
        self.assertEqual(dets[1].as_xyxy(), (80.0, 0.0, 100.0, 80.0))
        for d in dets:
            self.assertLessEqual(d.x1, d.x2)
            self.assertLessEqual(d.y1, d.y2)

    def test_non_finite_rows_dropped(self) -> None:
        p = np.array(
            [
                [10, 10, 4, 4, np.nan, 60],
                [np.inf, 10, 4, 4, 0.9, 60],
                [10, 10, 4, 4, 0.9, 60],
            ],
            dtype=np.float32,
        )
        dets = _decoder().process(p, orig_size=(100, 100))
        self.assertEqual(len(dets), 1)

    def test_empty_output(self) -> None:
        self.assertEqual(_decoder().process(np.zeros((1, 0, 6), dtype=np.float32), orig_size=(10, 10)), [])

    def test_contract_violations(self) -> None:
        with self.assertRaises(ModelContractViolation):
            _decoder().process(np.zeros((1, 10, 84), dtype=np.float32), orig_size=(10, 10))
        with self.assertRaises(InvalidInput):
            _decoder().process(np.zeros((2, 10, 6), dtype=np.float32), orig_size=(10, 10))
        with self.assertRaises(InvalidInput):
            _decoder().process(np.zeros((6,), dtype=np.float32), orig_size=(10, 10))
        with self.assertRaises(InvalidInput):
            _decoder().process(np.zeros((1, 1, 6), dtype=np.float32), orig_size=(0, 10))


if __name__ == "__main__":
    unittest.main()
