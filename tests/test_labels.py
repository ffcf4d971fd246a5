import tempfile
import unittest
from pathlib import Path

from yolo_heat.labels import COCO_NAMES, HOME_CLASS_IDS, LabelTable, load_labels


class TestLabels(unittest.TestCase):
    def _write(self, name: str, text: str) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_default_table(self) -> None:
        table = LabelTable()
        self.assertEqual(len(table), 80)
        self.assertTrue(table.is_default)
        self.assertEqual(table.name_for(0), "person")
        self.assertEqual(table.name_for(56), "chair")
        self.assertEqual(table.name_for(79), "toothbrush")

    def test_out_of_range_ids_get_placeholder(self) -> None:
        table = LabelTable()
        self.assertEqual(table.name_for(80), "cls 80")
        self.assertEqual(table.name_for(-3), "cls -3")

    def test_home_allow_set(self) -> None:
        self.assertEqual(len(HOME_CLASS_IDS), 20)
        self.assertEqual(COCO_NAMES[min(HOME_CLASS_IDS)], "chair")
        self.assertEqual(COCO_NAMES[max(HOME_CLASS_IDS)], "vase")

    def test_load_text_file_skips_blank_lines(self) -> None:
        path = self._write("labels.txt", "cup\n\n  sofa \nlamp\n")
        table = load_labels(path)
        self.assertEqual(table.names, ("cup", "sofa", "lamp"))
        self.assertFalse(table.is_default)
        self.assertEqual(table.name_for(3), "cls 3")

    def test_load_yaml_names_mapping(self) -> None:
        path = self._write("metadata.yaml", "task: detect\nnames:\n  0: person\n  2: 'helmet'\n")
        table = load_labels(path)
        self.assertEqual(table.names, ("person", "cls 1", "helmet"))

    def test_missing_file_falls_back(self) -> None:
        with self.assertLogs("yolo_heat.labels", level="WARNING"):
            table = load_labels(Path(tempfile.gettempdir()) / "does-not-exist-labels.txt")
        self.assertTrue(table.is_default)
        self.assertEqual(table.names, COCO_NAMES)

    def test_empty_file_falls_back(self) -> None:
        path = self._write("labels.txt", "\n   \n")
        with self.assertLogs("yolo_heat.labels", level="WARNING"):
            table = load_labels(path)
        self.assertTrue(table.is_default)

    def test_none_path_uses_default(self) -> None:
        self.assertEqual(load_labels(None).names, COCO_NAMES)


if __name__ == "__main__":
    unittest.main()
