import logging
import os
from typing import Optional, Tuple

import cv2
from PIL import Image

log = logging.getLogger(__name__)

MAX_VOLUME = 1.0


class MediaOpenError(Exception):
    """The media file could not be opened or probed."""


class MediaHandle:
    """An opened media file: intrinsic size for layout and a volume level.

    Decoding and drawing are left to the front end; this only probes the file
    and carries the playback settings that belong to it.
    """

    def __init__(
        self,
        path: str,
        width: int,
        height: int,
        fps: float = 0.0,
        frame_count: int = 0,
        volume: float = 0.5,
        max_volume: float = MAX_VOLUME,
    ) -> None:
        self.path = path
        self.width = int(width)
        self.height = int(height)
        self.fps = float(fps)
        self.frame_count = int(frame_count)
        self.max_volume = float(max_volume)
        self._volume = 0.0
        self.volume = volume

    def __repr__(self) -> str:
        return f"MediaHandle({os.path.basename(self.path)!r}, {self.width}x{self.height})"

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = min(self.max_volume, max(0.0, float(value)))

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    @property
    def duration_s(self) -> float:
        return self.frame_count / self.fps if self.fps > 0 else 0.0

    def display_size(self, scale: float = 1.0) -> Tuple[int, int]:
        return max(1, int(self.width * scale)), max(1, int(self.height * scale))

    def read_preview(self) -> Optional[Image.Image]:
        """First frame as an RGB image, or None when it cannot be decoded."""
        if os.path.splitext(self.path)[1].lower() == ".gif":
            try:
                with Image.open(self.path) as im:
                    return im.convert("RGB")
            except OSError as e:
                log.warning("Could not read GIF frame from %s: %s", self.path, e)
                return None
        cap = cv2.VideoCapture(self.path)
        try:
            ok, frame = cap.read()
        finally:
            cap.release()
        if not ok or frame is None:
            return None
        # BGR -> RGB
        return Image.fromarray(frame[:, :, ::-1])

    def close(self) -> None:
        """No-op: captures are opened and released inside read_preview, so nothing stays open."""


def _probe_gif(path: str) -> MediaHandle:
    try:
        with Image.open(path) as im:
            width, height = im.size
            frames = int(getattr(im, "n_frames", 1) or 1)
            duration_ms = im.info.get("duration") or 100
    except OSError as e:
        raise MediaOpenError(f"cannot open {path}: {e}") from e
    fps = 1000.0 / float(duration_ms) if duration_ms else 0.0
    return MediaHandle(path, width, height, fps=fps, frame_count=frames)


def _probe_video(path: str) -> MediaHandle:
    cap = cv2.VideoCapture(path)
    try:
        if not cap.isOpened():
            raise MediaOpenError(f"cannot open {path}")
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
    finally:
        cap.release()
    if width <= 0 or height <= 0:
        raise MediaOpenError(f"no video stream in {path}")
    return MediaHandle(path, width, height, fps=fps, frame_count=frame_count)


def open_media(path: str, volume: float = 0.5) -> MediaHandle:
    """Probe path and return a handle, or raise MediaOpenError."""
    if not os.path.isfile(path):
        raise MediaOpenError(f"no such file: {path}")
    if os.path.splitext(path)[1].lower() == ".gif":
        handle = _probe_gif(path)
    else:
        handle = _probe_video(path)
    handle.volume = volume
    log.debug("Opened %r", handle)
    return handle
