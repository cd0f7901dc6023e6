from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from .decode import Candidates


def filter_candidates(
    candidates: Candidates,
    threshold: float,
    allowed_class_ids: Optional[Iterable[int]] = None,
) -> Candidates:
    """
    Keep candidates with confidence strictly above `threshold` and, if given,
    a class id in `allowed_class_ids`. Order is preserved.
    """

    if len(candidates) == 0:
        return candidates

    conf = candidates.confidence
    # Compare in the tensor's own precision so a score equal to the threshold is excluded.
    keep = conf > conf.dtype.type(threshold)
    if allowed_class_ids is not None:
        allowed = np.array(sorted({int(c) for c in allowed_class_ids}), dtype=np.int64)
        keep &= np.isin(candidates.class_ids, allowed)
    return candidates.select(keep)
