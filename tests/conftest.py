from __future__ import annotations

import logging
import sys
from pathlib import Path


def _ensure_repo_root_on_syspath() -> None:
    # `detect_kit` and `Zone_Occupancy` live at the repo root and are imported
    # without installing the project.
    repo_root = str(Path(__file__).resolve().parents[1])
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


_ensure_repo_root_on_syspath()

# Frame failures are logged at WARNING on purpose; keep test output readable.
logging.getLogger("Zone_Occupancy").setLevel(logging.ERROR)
logging.getLogger("detect_kit").setLevel(logging.ERROR)
