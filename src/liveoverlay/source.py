"""
Camera frame source.

Enumerates capture devices, picks one with a rear-camera-first heuristic and
keeps the most recently captured frame available to the pipeline. A background
reader thread overwrites the latest frame; there is no queue, so frames the
pipeline does not get to are dropped.
"""

from __future__ import annotations

import enum
import glob
import logging
import os
import platform
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import cv2

from .errors import DeviceUnavailable, NotReady, PermissionDenied
from .types import Frame

logger = logging.getLogger(__name__)

VIDEO_INPUT = "videoinput"
MAX_PROBED_INDICES = 4


class Facing(str, enum.Enum):
    ENVIRONMENT = "environment"  # rear camera
    USER = "user"  # front camera


@dataclass(frozen=True)
class CameraDevice:
    index: int
    label: str
    device_id: str
    kind: str = VIDEO_INPUT

    @property
    def is_front(self) -> bool:
        return "front" in self.label.lower()


def _sysfs_devices(root: str = "/sys/class/video4linux") -> List[CameraDevice]:
    devices: List[CameraDevice] = []
    for node in glob.glob(os.path.join(root, "video*")):
        m = re.search(r"video(\d+)$", node)
        if not m:
            continue
        # Each UVC camera exposes a capture node (index 0) and metadata nodes.
        try:
            with open(os.path.join(node, "index")) as f:
                if f.read().strip() not in ("", "0"):
                    continue
        except OSError:
            pass
        try:
            with open(os.path.join(node, "name")) as f:
                label = f.read().strip()
        except OSError:
            label = ""
        idx = int(m.group(1))
        devices.append(CameraDevice(index=idx, label=label, device_id=f"/dev/video{idx}"))
    devices.sort(key=lambda d: d.index)
    return devices


def _probed_devices(max_indices: int = MAX_PROBED_INDICES) -> List[CameraDevice]:
    devices: List[CameraDevice] = []
    for idx in range(max_indices):
        cap = _open_capture(idx)
        try:
            if cap.isOpened():
                devices.append(CameraDevice(index=idx, label="", device_id=str(idx)))
        finally:
            cap.release()
    return devices


def enumerate_devices() -> List[CameraDevice]:
    """List video input devices. Only Linux reports labels."""
    if platform.system() == "Linux" and os.path.isdir("/sys/class/video4linux"):
        devices = _sysfs_devices()
    else:
        devices = _probed_devices()
    logger.info("found %d camera(s)", len(devices))
    for d in devices:
        logger.debug("camera %d: id=%s label=%r kind=%s", d.index, d.device_id, d.label, d.kind)
    return devices


def select_device(devices: Sequence[CameraDevice], preferred: Facing = Facing.ENVIRONMENT) -> CameraDevice:
    """
    Pick a camera by label.

    With `Facing.ENVIRONMENT`, the first device whose label does not mention
    "front" wins, then the first front-labeled one, then the first device.
    `Facing.USER` swaps the first two preferences. Labels are unreliable across
    platforms, so this is best effort only: an unlabeled front camera is
    treated as a rear one.
    """
    videos = [d for d in devices if d.kind == VIDEO_INPUT]
    if not videos:
        raise DeviceUnavailable("No camera found")

    want_front = preferred is Facing.USER
    for d in videos:
        if d.is_front == want_front:
            return d
    for d in videos:
        if d.is_front != want_front:
            return d
    return videos[0]


def _open_capture(index: int):
    if platform.system() == "Darwin":
        return cv2.VideoCapture(index, cv2.CAP_AVFOUNDATION)
    return cv2.VideoCapture(index)


def _check_access(device: CameraDevice) -> None:
    path = device.device_id
    if not path.startswith("/dev/") or not os.path.exists(path):
        return
    if not os.access(path, os.R_OK | os.W_OK):
        raise PermissionDenied(
            f"Access to {path} was refused. Add your user to the 'video' group or fix the device permissions."
        )


class FrameSource:
    """
    Wraps one camera and exposes its latest frame.

    Frames are BGR (OpenCV default) and, when `mirror` is set, flipped
    horizontally (selfie view).
    """

    def __init__(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        mirror: bool = False,
        capture_factory: Callable[[int], object] = _open_capture,
        enumerator: Callable[[], List[CameraDevice]] = enumerate_devices,
        idle_sleep_s: float = 0.005,
        join_timeout_s: float = 1.0,
    ) -> None:
        self._width = width
        self._height = height
        self._mirror = mirror
        self._capture_factory = capture_factory
        self._enumerator = enumerator
        self._idle_sleep_s = idle_sleep_s
        self._join_timeout_s = join_timeout_s

        self._cap = None
        self._device: Optional[CameraDevice] = None
        self._latest: Optional[Frame] = None
        self._seq = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @property
    def device(self) -> Optional[CameraDevice]:
        return self._device

    def open(self, preferred: Facing = Facing.ENVIRONMENT, device_id: Optional[str] = None) -> CameraDevice:
        if self._closed:
            raise DeviceUnavailable("FrameSource was closed; create a new one")
        if self._cap is not None:
            return self._device

        devices = self._enumerator()
        if device_id is not None:
            matches = [d for d in devices if device_id in (d.device_id, str(d.index))]
            if not matches:
                raise DeviceUnavailable(f"No camera with id {device_id!r}")
            device = matches[0]
        else:
            device = select_device(devices, preferred)

        _check_access(device)

        cap = self._capture_factory(device.index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(
                f"Could not open camera {device.device_id} ({device.label or 'unlabeled'}). "
                "On macOS: System Settings -> Privacy & Security -> Camera -> allow your terminal."
            )

        if self._width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        if self._height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._cap = cap
        self._device = device
        self._thread = threading.Thread(target=self._reader, name="frame-source", daemon=True)
        self._thread.start()
        logger.info("opened camera %s (%s)", device.device_id, device.label or "unlabeled")
        return device

    def current_frame(self) -> Frame:
        with self._lock:
            frame = self._latest
        if frame is None:
            raise NotReady("no frame captured yet")
        return frame

    def close(self) -> None:
        """
        Stop reading and release the camera. Idempotent.

        The reader thread releases the capture itself once its current `read`
        returns; `close` waits up to `join_timeout_s` for that to happen.
        """
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        thread = self._thread
        if thread is None:
            if self._cap is not None:
                self._release_capture(self._cap)
        elif thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout_s)
            if thread.is_alive():
                logger.warning(
                    "camera %s still busy after %.1fs; it will be released when the read returns",
                    self._device.device_id if self._device else "?",
                    self._join_timeout_s,
                )
        with self._lock:
            self._latest = None

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _release_capture(self, cap) -> None:
        cap.release()
        logger.info("released camera %s", self._device.device_id if self._device else "?")

    def _reader(self) -> None:
        cap = self._cap
        try:
            while not self._stop.is_set():
                ok, image = cap.read()
                if not ok or image is None or image.size == 0:
                    # Stream not decodable yet (or a dropped read).
                    self._stop.wait(self._idle_sleep_s)
                    continue
                if self._mirror:
                    image = cv2.flip(image, 1)
                self._seq += 1
                frame = Frame(image=image, timestamp=time.monotonic(), seq=self._seq)
                with self._lock:
                    if not self._stop.is_set():
                        self._latest = frame
        finally:
            self._release_capture(cap)
