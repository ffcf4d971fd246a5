import unittest

import numpy as np

from yolo_heat.errors import InvalidInput, ModelContractViolation
from yolo_heat.labels import LabelTable
from yolo_heat.postprocess import DecoderConfig
from yolo_heat.runtime import LetterboxConfig, YoloPipeline, _check_model_io, load_pipeline


class _FakeBackend:
    def __init__(self, rows: np.ndarray):
        self.rows = rows
        self.blobs = []
        self.closed = 0

    def infer(self, blob: np.ndarray) -> np.ndarray:
        self.blobs.append(blob)
        return self.rows

    def close(self) -> None:
        self.closed += 1


def _padded_output(*rows, n: int = 100) -> np.ndarray:
    out = np.zeros((1, n, 6), dtype=np.float32)
    for i, row in enumerate(rows):
        out[0, i] = row
    return out


class TestYoloPipeline(unittest.TestCase):
    def _pipeline(self, backend: _FakeBackend, **kwargs) -> YoloPipeline:
        return YoloPipeline(backend.infer, backend=backend, backend_name="fake", **kwargs)

    def test_end_to_end_hd_frame(self) -> None:
        backend = _FakeBackend(_padded_output([320, 320, 100, 100, 0.9, 60]))
        pipe = self._pipeline(backend)
        frame = np.zeros((720, 1280, 3), dtype=np.uint8)
        frame[:, :] = (255, 0, 0)  # BGR blue

        dets = pipe(frame)

        blob = backend.blobs[0]
        self.assertEqual(blob.shape, (1, 640, 640, 3))
        self.assertEqual(blob.dtype, np.float32)
        self.assertTrue(np.allclose(blob[0, 320, 320], [0.0, 0.0, 1.0]))
        self.assertTrue(np.allclose(blob[0, 10, 320], [0.0, 0.0, 0.0]))

        self.assertEqual(len(dets), 1)
        cx, cy = dets[0].center
        self.assertLessEqual(abs(cx - 640), 1.0)
        self.assertLessEqual(abs(cy - 360), 1.0)
        self.assertEqual(dets[0].class_id, 60)

    def test_row_count_read_from_output(self) -> None:
        rows = _padded_output(*([[50, 50, 10, 10, 0.9, 57]] * 7), n=7)
        pipe = self._pipeline(_FakeBackend(rows), letterbox_cfg=LetterboxConfig(size=128))
        dets = pipe(np.zeros((128, 128, 3), dtype=np.uint8))
        self.assertEqual(len(dets), 7)

    def test_decoder_config_applied(self) -> None:
        rows = _padded_output([50, 50, 10, 10, 0.3, 0], [60, 60, 10, 10, 0.9, 0])
        pipe = self._pipeline(
            _FakeBackend(rows),
            letterbox_cfg=LetterboxConfig(size=128),
            decoder_cfg=DecoderConfig(conf_threshold=0.5, restrict_to_allow_set=False),
        )
        dets = pipe(np.zeros((128, 128, 3), dtype=np.uint8))
        self.assertEqual([d.class_id for d in dets], [0])

    def test_bad_frame_rejected(self) -> None:
        pipe = self._pipeline(_FakeBackend(_padded_output()))
        with self.assertRaises(InvalidInput):
            pipe(np.zeros((0, 10, 3), dtype=np.uint8))
        with self.assertRaises(InvalidInput):
            pipe(np.zeros((10, 10), dtype=np.uint8))

    def test_contract_violation_from_model_output(self) -> None:
        pipe = self._pipeline(_FakeBackend(np.zeros((1, 8400, 84), dtype=np.float32)))
        with self.assertRaises(ModelContractViolation):
            pipe(np.zeros((64, 64, 3), dtype=np.uint8))

    def test_labeled_boxes_and_heatmap(self) -> None:
        backend = _FakeBackend(_padded_output([320, 320, 100, 100, 0.9, 62], [320, 320, 50, 50, 0.8, 75]))
        pipe = self._pipeline(backend, labels=LabelTable(names=("a", "b")), decoder_cfg=DecoderConfig())
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        dets = pipe(frame)
        labeled = pipe.labeled(dets)
        self.assertEqual([b.label for b in labeled], ["cls 62", "cls 75"])
        heat = pipe.heatmap((640, 480), dets)
        self.assertEqual(heat.shape, (480, 640, 4))

    def test_close_releases_backend_once(self) -> None:
        backend = _FakeBackend(_padded_output())
        with self._pipeline(backend) as pipe:
            pipe(np.zeros((32, 32, 3), dtype=np.uint8))
        self.assertEqual(backend.closed, 1)
        pipe.close()
        self.assertEqual(backend.closed, 1)
        with self.assertRaises(RuntimeError):
            pipe(np.zeros((32, 32, 3), dtype=np.uint8))


class TestModelIoCheck(unittest.TestCase):
    def test_accepts_contract_shapes(self) -> None:
        _check_model_io((1, 640, 640, 3), (1, 100, 6), 640)
        _check_model_io((1, -1, -1, 3), (1, -1, -1), 320)

    def test_rejects_wrong_output(self) -> None:
        with self.assertRaises(ModelContractViolation):
            _check_model_io((1, 640, 640, 3), (1, 84, 8400), 640)

    def test_rejects_wrong_input_size(self) -> None:
        with self.assertRaises(InvalidInput):
            _check_model_io((1, 320, 320, 3), (1, 100, 6), 640)
        with self.assertRaises(InvalidInput):
            _check_model_io((640, 640, 3), (1, 100, 6), 640)

    def test_unknown_extension(self) -> None:
        with self.assertRaises(ValueError):
            load_pipeline("/tmp/model.bin")


if __name__ == "__main__":
    unittest.main()
