from liveoverlay.interaction import EngagementHysteresis, evaluate_engagement, is_engaged
from liveoverlay.types import MappedHand


def _hand(index, tip):
    points = [(0.0, 0.0)] * 21
    points[8] = tip
    return MappedHand(index=index, points_px=tuple(points))


def test_center_is_engaged():
    assert is_engaged((320, 240), 640, 480)


def test_origin_is_not_engaged():
    assert not is_engaged((0, 0), 640, 480)


def test_boundary_is_exclusive():
    # radius = 0.10 * 640 = 64
    assert not is_engaged((320 + 64, 240), 640, 480)
    assert is_engaged((320 + 63.999, 240), 640, 480)


def test_threshold_is_tied_to_width():
    # 200x1000: radius 20 even though the surface is tall
    assert not is_engaged((100, 500 + 25), 200, 1000)
    assert is_engaged((100, 500 + 15), 200, 1000)


def test_evaluate_engagement_returns_engaged_indices():
    hands = [_hand(0, (0, 0)), _hand(1, (330, 250)), MappedHand(index=2, points_px=((320, 240),))]
    assert evaluate_engagement(hands, 640, 480) == frozenset({1})


def test_hysteresis_holds_then_releases():
    h = EngagementHysteresis(release_frames=2)
    assert h.step(frozenset({0})) == {0}
    assert h.step(frozenset()) == {0}
    assert h.step(frozenset()) == {0}
    assert h.step(frozenset()) == frozenset()


def test_hysteresis_rearms_on_reengage():
    h = EngagementHysteresis(release_frames=1)
    h.step(frozenset({0}))
    h.step(frozenset())
    assert h.step(frozenset({0})) == {0}
    assert h.step(frozenset()) == {0}
    assert h.step(frozenset()) == frozenset()
