"""Choose which pages of a plan are exposed as the pre-purchase preview."""

import math
import random
from typing import Optional, Sequence, List

from planmarket.core.errors import InvalidPageRangeError


def sample_size(total_pages: int) -> int:
    return math.ceil(total_pages / 2)


def select_preview_pages(
    total_pages: int,
    explicit_pages: Optional[Sequence[int]] = None,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """
    Return the pages to include in a preview.

    An author-curated list wins and is returned in its own order. Otherwise
    half the pages (rounded up) are drawn without replacement and sorted.
    The draw is a partial Fisher-Yates shuffle, so it always finishes after
    sample_size(total_pages) swaps.
    """
    if explicit_pages:
        return list(explicit_pages)

    if total_pages < 1:
        raise InvalidPageRangeError("Cannot select preview pages from an empty document")

    rng = rng or random.Random()
    candidates = list(range(1, total_pages + 1))
    count = sample_size(total_pages)
    for i in range(count):
        j = rng.randrange(i, total_pages)
        candidates[i], candidates[j] = candidates[j], candidates[i]
    return sorted(candidates[:count])
