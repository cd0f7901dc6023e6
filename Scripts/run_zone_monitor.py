from __future__ import annotations

import sys
from pathlib import Path

# Allow running as `python Scripts/run_zone_monitor.py` from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from Zone_Occupancy.runner import main


if __name__ == "__main__":
    raise SystemExit(main())
