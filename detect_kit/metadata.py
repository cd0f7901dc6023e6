from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple


UNKNOWN_CLASS_NAME = "unknown"

COCO_CLASS_NAMES: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat",
    "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack",
    "umbrella", "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball",
    "kite", "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair",
    "couch", "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear", "hair drier",
    "toothbrush",
)


@dataclass(frozen=True)
class ClassTaxonomy:
    """
    Ordered class names indexed by class id. Ids without a name map to
    "unknown" instead of failing.
    """

    names: Tuple[str, ...] = COCO_CLASS_NAMES

    @classmethod
    def from_mapping(cls, mapping: Mapping[int, str]) -> "ClassTaxonomy":
        if not mapping:
            return cls(names=())
        size = max(int(k) for k in mapping) + 1
        names = [UNKNOWN_CLASS_NAME] * size
        for k, v in mapping.items():
            names[int(k)] = str(v)
        return cls(names=tuple(names))

    def name_for(self, class_id: int) -> str:
        if 0 <= class_id < len(self.names):
            return self.names[class_id]
        return UNKNOWN_CLASS_NAME


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Load class names from the lightweight `metadata.yaml` format exported
    next to the model:

        names:
          0: person
          1: bicycle
          ...

    Only the `names:` block is read, so no YAML parser is needed.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            # A new top-level key ends the names block.
            if not raw[:1].isspace() and not line[:1].isdigit():
                break

            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return names


def load_taxonomy(metadata_path: str) -> ClassTaxonomy:
    return ClassTaxonomy.from_mapping(load_class_names(metadata_path))
