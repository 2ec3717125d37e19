from __future__ import annotations

import logging
import os
import ssl
import subprocess
import urllib.request

import certifi

logger = logging.getLogger(__name__)


HAND_LANDMARKER_TASK_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/latest/hand_landmarker.task"
)
OBJECT_DETECTOR_TFLITE_URL = (
    "https://storage.googleapis.com/mediapipe-models/object_detector/efficientdet_lite0/int8/latest/efficientdet_lite0.tflite"
)


def _remove_partial(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


def _download_urllib(url: str, model_path: str, timeout_s: int) -> None:
    ctx = ssl.create_default_context(cafile=certifi.where())
    with urllib.request.urlopen(url, context=ctx, timeout=timeout_s) as r, open(model_path, "wb") as f:
        f.write(r.read())


def _download_curl(url: str, model_path: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["curl", "-fL", "-o", model_path, url],
        check=False,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def ensure_model_asset(model_path: str, url: str, *, timeout_s: int = 30) -> str:
    """
    Ensure a MediaPipe model asset exists at `model_path`.

    Missing files are downloaded from the MediaPipe model bucket, first with
    urllib, then with `curl` (which often works when Python's certificate
    store does not).
    """

    if os.path.exists(model_path):
        return model_path

    os.makedirs(os.path.dirname(model_path) or ".", exist_ok=True)
    logger.info("downloading model asset %s -> %s", url, model_path)

    try:
        _download_urllib(url, model_path, timeout_s)
        return model_path
    except (OSError, ssl.SSLError) as e:
        _remove_partial(model_path)
        logger.warning("urllib download failed (%s); retrying with curl", e)
        first_error = e

    try:
        proc = _download_curl(url, model_path)
    except FileNotFoundError:
        proc = None
    if proc is not None and proc.returncode == 0 and os.path.exists(model_path) and os.path.getsize(model_path) > 0:
        return model_path
    _remove_partial(model_path)

    curl_err = f"\n\ncurl stderr:\n{proc.stderr.strip()}\n" if proc is not None else ""
    raise FileNotFoundError(
        "Missing MediaPipe model file and auto-download failed.\n\n"
        f"Expected model at: {model_path}\n"
        f"URL: {url}\n\n"
        "Download it manually:\n"
        f'  mkdir -p "{os.path.dirname(model_path) or "."}"\n'
        f'  curl -L -o "{model_path}" "{url}"\n'
        f"{curl_err}"
    ) from first_error


def ensure_hand_landmarker_task(model_path: str) -> str:
    return ensure_model_asset(model_path, HAND_LANDMARKER_TASK_URL)


def ensure_object_detector_model(model_path: str) -> str:
    return ensure_model_asset(model_path, OBJECT_DETECTOR_TFLITE_URL)
