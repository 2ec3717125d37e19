from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable

from .types import MappedHand, Point2
from .utils import distance

logger = logging.getLogger(__name__)

DEFAULT_RATIO = 0.10


def is_engaged(point: Point2, width: int, height: int, ratio: float = DEFAULT_RATIO) -> bool:
    """
    True when `point` lies strictly inside the centre zone.

    The radius is `ratio * width` for both axes: the zone is tied to the
    surface width, not its height.
    """
    center = (width / 2.0, height / 2.0)
    return distance(point, center) < ratio * width


def evaluate_engagement(
    hands: Iterable[MappedHand], width: int, height: int, ratio: float = DEFAULT_RATIO
) -> FrozenSet[int]:
    """Indices of the hands whose index fingertip is in the centre zone. Recomputed from scratch."""
    engaged = set()
    for hand in hands:
        tip = hand.fingertip_px
        if tip is None:
            continue
        logger.debug("hand %d index tip at x=%.1f y=%.1f", hand.index, tip[0], tip[1])
        if is_engaged(tip, width, height, ratio):
            engaged.add(hand.index)
    return frozenset(engaged)


class EngagementHysteresis:
    """
    Optional debounce on top of the raw predicate (off unless configured).

    An index stays engaged for `release_frames` further updates after the raw
    predicate last reported it, which suppresses flicker at the boundary.
    """

    def __init__(self, release_frames: int = 2):
        self.release_frames = int(release_frames)
        self._remaining: Dict[int, int] = {}

    def step(self, raw: FrozenSet[int]) -> FrozenSet[int]:
        for idx in list(self._remaining):
            if idx not in raw:
                self._remaining[idx] -= 1
                if self._remaining[idx] < 0:
                    del self._remaining[idx]
        for idx in raw:
            self._remaining[idx] = self.release_frames
        return frozenset(self._remaining)
