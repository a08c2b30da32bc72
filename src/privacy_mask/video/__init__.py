from .io import VideoReader, VideoWriter, codecs_for_path, copy_audio, get_video_info

__all__ = [
    "VideoReader",
    "VideoWriter",
    "codecs_for_path",
    "copy_audio",
    "get_video_info",
]
