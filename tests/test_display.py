from liveoverlay import display
from liveoverlay.drawing import RenderSurface
from liveoverlay.display import WindowPresenter, hud_text
from liveoverlay.types import BoxOverlay, HandOverlay


def test_hud_text():
    assert hud_text(HandOverlay(engaged=frozenset({0}))) == "hands: 0 | ENGAGED | press q to quit"
    assert hud_text(BoxOverlay()) == "objects: 0 | press q to quit"


def test_presenter_reads_surface_and_handles_quit(monkeypatch):
    shown = []
    monkeypatch.setattr(display.cv2, "imshow", lambda title, img: shown.append(img))
    keys = iter([-1, ord("q")])
    monkeypatch.setattr(display.cv2, "waitKey", lambda d: next(keys))

    surface = RenderSurface(64, 48)
    before = surface.snapshot()
    presenter = WindowPresenter()

    assert presenter.present(surface, BoxOverlay()) is True
    assert presenter.present(surface, BoxOverlay()) is False
    assert len(shown) == 2
    assert (surface.canvas == before).all()
