"""
Video I/O module using PyAV for memory-efficient streaming.

Streams decoded frames rather than loading the clip into memory, and
re-encodes composited frames (plus the source audio, when asked) into the
output container.
"""

from fractions import Fraction
from pathlib import Path
from typing import Generator, Optional
import logging
import numpy as np

import av

from privacy_mask.errors import ERROR, VideoIOError

logger = logging.getLogger(__name__)

# Output extension -> (video codec, audio codec)
CONTAINER_CODECS: dict[str, tuple[str, str]] = {
    ".mp4": ("h264", "aac"),
    ".m4v": ("h264", "aac"),
    ".mov": ("h264", "aac"),
    ".mkv": ("h264", "aac"),
    ".webm": ("libvpx-vp9", "libopus"),
}
DEFAULT_CODECS = ("h264", "aac")

_CRF_CODECS = {"h264", "libx264", "hevc", "libx265", "libvpx-vp9"}


def codecs_for_path(path: Path | str) -> tuple[str, str]:
    """Pick (video, audio) codecs from the output file extension."""
    return CONTAINER_CODECS.get(Path(path).suffix.lower(), DEFAULT_CODECS)


def _open(path: Path, mode: str = "r"):
    try:
        return av.open(str(path), mode=mode)
    except av.error.FFmpegError as e:
        raise VideoIOError(f"could not open {path}: {e}", code=ERROR.VIDEO_OPEN_FAILED) from e


class VideoReader:
    """Memory-efficient video reader using PyAV streaming."""

    def __init__(self, video_path: Path | str):
        """
        Initialize video reader.

        Args:
            video_path: Path to the video file
        """
        self.video_path = Path(video_path)
        if not self.video_path.exists():
            raise FileNotFoundError(f"Video not found: {self.video_path}")

        # Open container to get metadata
        container = _open(self.video_path)
        try:
            if not container.streams.video:
                raise VideoIOError(
                    f"no video stream in {self.video_path}", code=ERROR.VIDEO_NO_STREAM
                )
            stream = container.streams.video[0]

            self.width = stream.width
            self.height = stream.height
            self.fps = float(stream.average_rate or stream.guessed_rate or 30)
            self.duration = float(stream.duration * stream.time_base) if stream.duration else None
            if self.duration is None and container.duration:
                self.duration = container.duration / av.time_base
            self.total_frames = stream.frames or (
                int(round(self.duration * self.fps)) if self.duration else 0
            )
            self.codec = stream.codec_context.name

            self.has_audio = bool(container.streams.audio)
            self.audio_rate = container.streams.audio[0].rate if self.has_audio else None
        finally:
            container.close()

    def __repr__(self) -> str:
        return (
            f"VideoReader({self.video_path.name}, "
            f"{self.width}x{self.height}, "
            f"{self.fps:.2f}fps, "
            f"{self.total_frames} frames)"
        )

    def frames(
        self,
        start_frame: int = 0,
        end_frame: int | None = None,
    ) -> Generator[tuple[int, np.ndarray], None, None]:
        """
        Iterate over video frames as numpy arrays.

        Args:
            start_frame: First frame to yield (0-indexed)
            end_frame: Last frame to yield (exclusive), None for all

        Yields:
            Tuple of (frame_number, frame_array) where frame_array is RGB uint8
        """
        container = _open(self.video_path)
        try:
            stream = container.streams.video[0]

            # Seek to start frame if needed
            if start_frame > 0:
                timestamp = int(start_frame / self.fps / stream.time_base)
                container.seek(timestamp, stream=stream)

            frame_idx = 0
            for frame in container.decode(video=0):
                # After seeking, calculate actual frame index from PTS
                if frame.pts is not None and start_frame > 0:
                    frame_idx = int(round(frame.pts * stream.time_base * self.fps))

                # Skip frames before start (seek may land before target)
                if frame_idx < start_frame:
                    frame_idx += 1
                    continue

                if end_frame is not None and frame_idx >= end_frame:
                    break

                yield frame_idx, frame.to_ndarray(format="rgb24")
                frame_idx += 1
        finally:
            container.close()

    def audio_frames(self) -> Generator[av.AudioFrame, None, None]:
        """Decode the first audio stream, if any."""
        if not self.has_audio:
            return
        container = _open(self.video_path)
        try:
            for frame in container.decode(audio=0):
                yield frame
        finally:
            container.close()


class VideoWriter:
    """Video writer using PyAV."""

    def __init__(
        self,
        output_path: Path | str,
        width: int,
        height: int,
        fps: float = 30.0,
        codec: Optional[str] = None,
        crf: int = 23,
        audio_rate: Optional[int] = None,
        audio_codec: Optional[str] = None,
    ):
        """
        Initialize video writer.

        Args:
            output_path: Path for output video
            width: Frame width
            height: Frame height
            fps: Frames per second
            codec: Video codec; picked from the file extension when None
            crf: Constant rate factor (quality, lower = better, 18-28 typical)
            audio_rate: Sample rate for an audio track; None writes video only
            audio_codec: Audio codec; picked from the file extension when None
        """
        self.output_path = Path(output_path)
        self.width = width
        self.height = height
        self.fps = fps
        self.frames_written = 0

        default_video, default_audio = codecs_for_path(self.output_path)
        self.codec = codec or default_video

        self.container = _open(self.output_path, mode="w")
        try:
            # Convert fps to Fraction for PyAV compatibility
            fps_fraction = Fraction(fps).limit_denominator(10000)
            self.stream = self.container.add_stream(self.codec, rate=fps_fraction)
            self.stream.width = width
            self.stream.height = height
            self.stream.pix_fmt = "yuv420p"
            if self.codec in _CRF_CODECS:
                options = {"crf": str(crf)}
                if self.codec == "libvpx-vp9":
                    options["b:v"] = "0"  # constant-quality mode
                self.stream.options = options

            self.audio_stream = None
            if audio_rate:
                self.audio_stream = self.container.add_stream(
                    audio_codec or default_audio, rate=int(audio_rate)
                )
        except (av.error.FFmpegError, ValueError) as e:
            self.container.close()
            raise VideoIOError(
                f"could not set up encoder for {self.output_path}: {e}",
                code=ERROR.VIDEO_ENCODE_FAILED,
            ) from e

    def write_frame(self, frame: np.ndarray):
        """
        Write a frame to the video.

        Args:
            frame: RGB numpy array (height, width, 3)
        """
        # Ensure correct dimensions
        if frame.shape[:2] != (self.height, self.width):
            raise VideoIOError(
                f"Frame shape {frame.shape[:2]} doesn't match "
                f"video dimensions ({self.height}, {self.width})",
                code=ERROR.VIDEO_FRAME_SHAPE,
            )

        av_frame = av.VideoFrame.from_ndarray(frame, format="rgb24")
        self._mux(self.stream.encode(av_frame))
        self.frames_written += 1

    def write_audio_frame(self, frame: av.AudioFrame):
        """Re-encode one decoded audio frame into the output audio track."""
        if self.audio_stream is None:
            raise VideoIOError("writer was opened without an audio track", code=ERROR.VIDEO_ENCODE_FAILED)
        # Let the encoder assign timestamps in its own time base.
        frame.pts = None
        self._mux(self.audio_stream.encode(frame))

    def _mux(self, packets):
        try:
            for packet in packets:
                self.container.mux(packet)
        except av.error.FFmpegError as e:
            raise VideoIOError(f"encoding failed: {e}", code=ERROR.VIDEO_ENCODE_FAILED) from e

    def close(self):
        """Finalize and close the video file."""
        try:
            # Flush encoders
            self._mux(self.stream.encode())
            if self.audio_stream is not None:
                self._mux(self.audio_stream.encode())
        finally:
            self.container.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def copy_audio(reader: VideoReader, writer: VideoWriter) -> bool:
    """
    Re-encode the reader's audio into the writer's audio track.

    Returns:
        True if any audio was written
    """
    if not reader.has_audio or writer.audio_stream is None:
        return False
    written = False
    for frame in reader.audio_frames():
        writer.write_audio_frame(frame)
        written = True
    if not written:
        logger.warning("audio stream in %s decoded no frames", reader.video_path)
    return written


def get_video_info(video_path: Path | str) -> dict:
    """
    Get video metadata.

    Args:
        video_path: Path to video file

    Returns:
        Dictionary with video information
    """
    reader = VideoReader(video_path)
    return {
        "path": str(reader.video_path),
        "width": reader.width,
        "height": reader.height,
        "fps": reader.fps,
        "total_frames": reader.total_frames,
        "duration": reader.duration,
        "codec": reader.codec,
        "has_audio": reader.has_audio,
    }
