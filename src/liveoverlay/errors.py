from __future__ import annotations


class LiveOverlayError(RuntimeError):
    """Base class for errors raised by the overlay pipeline."""


class DeviceUnavailable(LiveOverlayError):
    """No camera matches the request, or the matching camera will not open."""


class PermissionDenied(LiveOverlayError):
    """The user or the OS refused access to the camera."""


class NotReady(LiveOverlayError):
    """No frame has been captured yet. Transient; callers retry on the next tick."""


class PipelineError(LiveOverlayError):
    """Lifecycle misuse, e.g. restarting a stopped pipeline."""
