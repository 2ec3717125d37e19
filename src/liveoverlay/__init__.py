from .config import PipelineConfig
from .detector import Detector, HandLandmarkDetector, ObjectBoxDetector, build_detector
from .errors import DeviceUnavailable, NotReady, PermissionDenied, PipelineError
from .pipeline import PipelineLoop
from .source import CameraDevice, Facing, FrameSource, select_device
from .types import Frame, LandmarkSet, Mode, ObjectSet, PipelineState, RunningMode

__all__ = [
    "PipelineConfig",
    "PipelineLoop",
    "PipelineState",
    "Mode",
    "RunningMode",
    "Frame",
    "LandmarkSet",
    "ObjectSet",
    "Detector",
    "HandLandmarkDetector",
    "ObjectBoxDetector",
    "build_detector",
    "FrameSource",
    "CameraDevice",
    "Facing",
    "select_device",
    "DeviceUnavailable",
    "PermissionDenied",
    "NotReady",
    "PipelineError",
]
