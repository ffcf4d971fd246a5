from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

COCO_NAMES: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat", "traffic light",
    "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat", "dog", "horse", "sheep", "cow",
    "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella", "handbag", "tie", "suitcase", "frisbee",
    "skis", "snowboard", "sports ball", "kite", "baseball bat", "baseball glove", "skateboard", "surfboard",
    "tennis racket", "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch",
    "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse", "remote", "keyboard",
    "cell phone", "microwave", "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase", "scissors",
    "teddy bear", "hair drier", "toothbrush",
)

# COCO "chair" (56) through "vase" (75): furniture, appliances, household items.
HOME_CLASS_IDS: FrozenSet[int] = frozenset(range(56, 76))


def placeholder_name(class_id: int) -> str:
    return f"cls {class_id}"


@dataclass(frozen=True)
class LabelTable:
    """
    Ordered class names indexed by class id. Lookups never raise.
    """

    names: Tuple[str, ...] = COCO_NAMES
    source: Optional[str] = None

    def __len__(self) -> int:
        return len(self.names)

    @property
    def is_default(self) -> bool:
        return self.source is None

    def name_for(self, class_id: int) -> str:
        if 0 <= class_id < len(self.names):
            return self.names[class_id]
        return placeholder_name(class_id)

    def as_dict(self) -> Dict[int, str]:
        return dict(enumerate(self.names))


def _parse_names_mapping(text: str) -> Dict[int, str]:
    """
    Parse the lightweight `metadata.yaml` layout:

        names:
          0: person
          1: bicycle

    No PyYAML dependency; anything outside the `names:` block is ignored.
    """

    names: Dict[int, str] = {}
    in_names = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names or ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        if not left.isdigit():
            continue
        names[int(left)] = right.strip().strip("'").strip('"')
    return names


def _names_from_mapping(mapping: Dict[int, str]) -> Tuple[str, ...]:
    # Gaps in the id range get placeholders so the index stays the class id.
    count = max(mapping) + 1
    return tuple(mapping.get(i, placeholder_name(i)) for i in range(count))


def _parse_lines(text: str) -> Tuple[str, ...]:
    return tuple(line.strip() for line in text.splitlines() if line.strip())


def load_labels(path: Optional[PathLike]) -> LabelTable:
    """
    Load a label table from a text file (one name per line) or a `names:` YAML mapping.

    Falls back to the built-in 80-name COCO table when the path is None, missing,
    unreadable or yields no names. Every fallback is logged.
    """

    if path is None:
        return LabelTable()

    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Label file %s unavailable (%s); using built-in COCO names.", p, exc)
        return LabelTable()

    if p.suffix.lower() in {".yaml", ".yml"}:
        mapping = _parse_names_mapping(text)
        names: Sequence[str] = _names_from_mapping(mapping) if mapping else ()
    else:
        names = _parse_lines(text)

    if not names:
        logger.warning("Label file %s has no class names; using built-in COCO names.", p)
        return LabelTable()

    logger.debug("Loaded %d class names from %s", len(names), p)
    return LabelTable(names=tuple(names), source=str(p))
