import time

import numpy as np
import pytest

import liveoverlay.source as source_mod
from liveoverlay.errors import DeviceUnavailable, NotReady, PermissionDenied
from liveoverlay.source import CameraDevice, Facing, FrameSource, select_device


def _devices(*labels):
    return [CameraDevice(index=i, label=label, device_id=f"cam{i}") for i, label in enumerate(labels)]


class DummyCap:
    def __init__(self, opened=True, image=None, fail_reads=0):
        self.opened = opened
        self.image = image if image is not None else np.zeros((48, 64, 3), dtype=np.uint8)
        self.fail_reads = fail_reads
        self.reads = 0
        self.released = 0
        self.props = {}

    def isOpened(self):
        return self.opened

    def read(self):
        self.reads += 1
        time.sleep(0.001)
        if self.reads <= self.fail_reads:
            return False, None
        return True, self.image.copy()

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def release(self):
        self.released += 1


def _wait_for_frame(src, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        try:
            return src.current_frame()
        except NotReady:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.005)


def test_select_prefers_rear_camera():
    assert select_device(_devices("Front Camera", "Back Camera")).label == "Back Camera"


def test_select_falls_back_to_front_camera():
    assert select_device(_devices("Front Camera")).label == "Front Camera"


def test_select_unlabeled_picks_first_enumerated():
    assert select_device(_devices("", "")).index == 0


def test_select_user_facing_prefers_front():
    chosen = select_device(_devices("Back Camera", "FRONT camera"), Facing.USER)
    assert chosen.label == "FRONT camera"


def test_select_without_devices_fails():
    with pytest.raises(DeviceUnavailable):
        select_device([])


def test_select_ignores_non_video_devices():
    devices = [CameraDevice(0, "Mic", "mic0", kind="audioinput")] + _devices("Back Camera")
    assert select_device(devices).kind == "videoinput"


def test_sysfs_enumeration_skips_metadata_nodes(tmp_path):
    for node, name, index in (("video0", "Integrated Camera", "0"), ("video1", "Integrated Camera", "1"), ("video2", "USB Cam", "0")):
        d = tmp_path / node
        d.mkdir()
        (d / "name").write_text(name + "\n")
        (d / "index").write_text(index + "\n")

    devices = source_mod._sysfs_devices(str(tmp_path))

    assert [(d.index, d.label, d.device_id) for d in devices] == [
        (0, "Integrated Camera", "/dev/video0"),
        (2, "USB Cam", "/dev/video2"),
    ]


def test_frame_source_serves_latest_frame_and_closes_once():
    cap = DummyCap()
    src = FrameSource(width=64, height=48, capture_factory=lambda idx: cap, enumerator=lambda: _devices("Back Camera"))

    with pytest.raises(NotReady):
        src.current_frame()

    device = src.open()
    frame = _wait_for_frame(src)

    assert device.label == "Back Camera"
    assert (frame.width, frame.height) == (64, 48)
    assert not frame.image.flags.writeable
    assert cap.props[source_mod.cv2.CAP_PROP_FRAME_WIDTH] == 64

    src.close()
    src.close()
    assert cap.released == 1
    with pytest.raises(NotReady):
        src.current_frame()


def test_frame_source_not_ready_until_stream_decodes():
    cap = DummyCap(fail_reads=10**9)
    src = FrameSource(capture_factory=lambda idx: cap, enumerator=lambda: _devices("Back Camera"))
    src.open()
    time.sleep(0.02)
    with pytest.raises(NotReady):
        src.current_frame()
    src.close()


def test_frame_source_mirrors_frames():
    image = np.zeros((4, 8, 3), dtype=np.uint8)
    image[:, :4] = 255
    cap = DummyCap(image=image)
    src = FrameSource(mirror=True, capture_factory=lambda idx: cap, enumerator=lambda: _devices(""))
    src.open()
    frame = _wait_for_frame(src)
    src.close()

    assert frame.image[0, 0].tolist() == [0, 0, 0]
    assert frame.image[0, 7].tolist() == [255, 255, 255]


def test_open_explicit_device_id():
    opened = []
    src = FrameSource(
        capture_factory=lambda idx: opened.append(idx) or DummyCap(),
        enumerator=lambda: _devices("Front Camera", "Back Camera"),
    )
    device = src.open(device_id="cam0")
    src.close()
    assert device.label == "Front Camera"
    assert opened == [0]


def test_open_unknown_device_id_fails():
    src = FrameSource(capture_factory=lambda idx: DummyCap(), enumerator=lambda: _devices("Back Camera"))
    with pytest.raises(DeviceUnavailable):
        src.open(device_id="nope")


def test_open_without_cameras_fails():
    src = FrameSource(capture_factory=lambda idx: DummyCap(), enumerator=lambda: [])
    with pytest.raises(DeviceUnavailable):
        src.open()


def test_open_unopenable_capture_fails_and_releases():
    cap = DummyCap(opened=False)
    src = FrameSource(capture_factory=lambda idx: cap, enumerator=lambda: _devices("Back Camera"))
    with pytest.raises(DeviceUnavailable):
        src.open()
    assert cap.released == 1


def test_open_refused_device_raises_permission_denied(monkeypatch):
    monkeypatch.setattr(source_mod.os, "access", lambda path, mode: False)
    devices = [CameraDevice(index=0, label="Back Camera", device_id="/dev/null")]
    src = FrameSource(capture_factory=lambda idx: DummyCap(), enumerator=lambda: devices)
    with pytest.raises(PermissionDenied):
        src.open()


def test_open_accepts_bare_index_for_path_style_ids():
    devices = [
        CameraDevice(index=0, label="Integrated Camera", device_id="/dev/video0"),
        CameraDevice(index=2, label="USB Cam", device_id="/dev/video2"),
    ]
    opened = []
    src = FrameSource(capture_factory=lambda idx: opened.append(idx) or DummyCap(), enumerator=lambda: devices)
    device = src.open(device_id="2")
    src.close()
    assert device.label == "USB Cam"
    assert opened == [2]


class BlockingCap(DummyCap):
    """A capture whose `read` blocks like a stalled camera driver."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.in_read = False
        self.released_while_reading = False

    def read(self):
        self.in_read = True
        time.sleep(self.delay)
        self.in_read = False
        return super().read()

    def release(self):
        self.released_while_reading = self.released_while_reading or self.in_read
        super().release()


def test_close_never_releases_capture_during_a_blocked_read():
    cap = BlockingCap(delay=0.3)
    src = FrameSource(capture_factory=lambda idx: cap, enumerator=lambda: _devices("Back Camera"), join_timeout_s=0.05)
    src.open()
    time.sleep(0.05)

    src.close()
    assert cap.released == 0
    assert cap.released_while_reading is False

    src._thread.join(timeout=2.0)
    assert cap.released == 1
    assert cap.released_while_reading is False
    with pytest.raises(NotReady):
        src.current_frame()
