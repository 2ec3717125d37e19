import pytest

from conftest import make_hand, make_objects
from liveoverlay.config import PipelineConfig
from liveoverlay.strategies import BoxInterpretation, LandmarkInterpretation, strategy_for
from liveoverlay.types import BoxOverlay, HandOverlay, LandmarkSet, Mode

CENTER = LandmarkSet(hands=(make_hand((0.5, 0.5)),))
CORNER = LandmarkSet(hands=(make_hand((0.0, 0.0)),))


def test_strategy_follows_mode():
    assert isinstance(strategy_for(PipelineConfig(mode=Mode.HAND_TRACKING)), LandmarkInterpretation)
    assert isinstance(strategy_for(PipelineConfig(mode=Mode.OBJECT_DETECTION)), BoxInterpretation)


def test_engagement_is_raw_by_default():
    strategy = strategy_for(PipelineConfig(mode=Mode.HAND_TRACKING))
    assert strategy.interpret(CENTER, 640, 480).engaged == frozenset({0})
    assert strategy.interpret(CORNER, 640, 480).engaged == frozenset()


def test_release_frames_hold_engagement_through_the_config():
    strategy = strategy_for(PipelineConfig(mode=Mode.HAND_TRACKING, engage_release_frames=1))

    overlays = [strategy.interpret(result, 640, 480) for result in (CENTER, CORNER, CORNER)]

    assert all(isinstance(o, HandOverlay) for o in overlays)
    assert [o.engaged for o in overlays] == [frozenset({0}), frozenset({0}), frozenset()]
    assert overlays[1].hands[0].fingertip_px == (0.0, 0.0)


def test_wrong_result_type_raises():
    with pytest.raises(TypeError):
        strategy_for(PipelineConfig(mode=Mode.HAND_TRACKING)).interpret(make_objects(), 640, 480)
    with pytest.raises(TypeError):
        strategy_for(PipelineConfig(mode=Mode.OBJECT_DETECTION)).interpret(CENTER, 640, 480)


def test_boxes_are_mapped_for_the_surface(cat_box):
    overlay = BoxInterpretation().interpret(cat_box, 640, 480)
    assert isinstance(overlay, BoxOverlay)
    assert [(b.label, b.box.origin_x) for b in overlay.boxes] == [("cat", 100)]
