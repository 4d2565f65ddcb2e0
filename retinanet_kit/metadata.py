from __future__ import annotations

from typing import Dict, List


def _parse_names_mapping(lines: List[str]) -> Dict[int, str]:
    names: Dict[int, str] = {}
    in_names = False

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right

    return names


def load_class_names(metadata_path: str) -> List[str]:
    """
    Load the ordered class labels of a model.

    Two formats are accepted. A `metadata.yaml` style mapping:

        names:
          0: person
          1: bicycle
          ...

    or a plain text file with one label per line, in class-index order.

    Class ids missing from a mapping are filled with their index as label so positions
    keep matching the network's score columns.
    """

    with open(metadata_path, "r", encoding="utf-8") as f:
        lines = f.read().splitlines()

    if any(line.strip() == "names:" for line in lines):
        mapping = _parse_names_mapping(lines)
        if not mapping:
            return []
        return [mapping.get(i, str(i)) for i in range(max(mapping) + 1)]

    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]
