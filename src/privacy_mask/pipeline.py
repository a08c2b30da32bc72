"""
Main processing pipeline for video redaction.

Orchestrates decode, detection, tracking, compositing and re-encoding of a
whole clip, one frame at a time.
"""

from pathlib import Path
from typing import Optional
import logging
from tqdm import tqdm

from privacy_mask.detection.adapter import DetectionAdapter
from privacy_mask.detection.detector import Detector, create_detector
from privacy_mask.overlay.compositor import MaskCompositor
from privacy_mask.overlay.mask_source import MaskSource, load_mask_source
from privacy_mask.settings import AppConfig
from privacy_mask.tracking.tracker import MaskTracker
from privacy_mask.utils.data_models import RunSummary
from privacy_mask.video.io import VideoReader, VideoWriter, copy_audio

logger = logging.getLogger(__name__)


class MaskPipeline:
    """Main processing pipeline: every decoded frame goes out masked."""

    def __init__(
        self,
        config: AppConfig,
        detector: Optional[Detector] = None,
        mask_source: Optional[MaskSource] = None,
        show_progress: bool = True,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Validated application configuration
            detector: Detector to use instead of the configured YOLO model
            mask_source: Mask to use instead of the configured image/glyph
            show_progress: Show a tqdm progress bar
        """
        self.config = config
        self.show_progress = show_progress

        # Initialize components (lazy loading)
        self._detector = detector
        self._mask_source = mask_source
        self._compositor: Optional[MaskCompositor] = None
        self.adapter = DetectionAdapter(config.detection)
        self.tracker = MaskTracker()

    @property
    def detector(self) -> Detector:
        """Lazy-load detector."""
        if self._detector is None:
            self._detector = create_detector(self.config.detection)
        return self._detector

    @property
    def compositor(self) -> MaskCompositor:
        """Lazy-load the mask and its compositor."""
        if self._compositor is None:
            if self._mask_source is None:
                self._mask_source = load_mask_source(self.config.mask)
            self._compositor = MaskCompositor(
                self._mask_source,
                baseline_offset=self.config.mask.glyph_baseline_offset,
            )
        return self._compositor

    def run(
        self,
        video_path: Path,
        output_path: Path,
        start_frame: int = 0,
        end_frame: Optional[int] = None,
    ) -> RunSummary:
        """
        Run the full processing pipeline.

        Args:
            video_path: Path to input video
            output_path: Path for the masked video
            start_frame: First frame to process
            end_frame: Last frame to process (exclusive)

        Returns:
            RunSummary with per-run totals
        """
        # Fresh tracker per clip; identities never carry across clips.
        self.tracker.reset()
        compositor = self.compositor
        tracker_cfg = self.config.tracking

        reader = VideoReader(video_path)
        logger.info("input %r", reader)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        keep_audio = self.config.output.keep_audio and reader.has_audio
        if self.config.output.keep_audio and not reader.has_audio:
            logger.warning("%s has no audio stream; writing video only", video_path)
        if keep_audio and (start_frame > 0 or end_frame is not None):
            # Audio is copied whole, so it would drift against a partial clip.
            logger.warning("frame range given; audio is not copied")
            keep_audio = False

        summary = RunSummary(
            video_path=str(video_path),
            output_path=str(output_path),
            fps=reader.fps,
            width=reader.width,
            height=reader.height,
        )

        if end_frame is None and reader.total_frames:
            end_frame = reader.total_frames
        total = (end_frame - start_frame) if end_frame is not None else None

        with VideoWriter(
            output_path,
            reader.width,
            reader.height,
            fps=reader.fps,
            codec=self.config.output.codec,
            crf=self.config.output.crf,
            audio_rate=reader.audio_rate if keep_audio else None,
        ) as writer:
            with tqdm(total=total, desc="Masking", unit="frame", disable=not self.show_progress) as pbar:
                for frame_idx, frame in reader.frames(start_frame=start_frame, end_frame=end_frame):
                    detections = self.detector.detect(frame, frame_idx)
                    targets = self.adapter.adapt(detections, reader.width)
                    masks = self.tracker.advance(targets, reader.width, reader.height, tracker_cfg)
                    drawn = compositor.composite(frame, masks)
                    writer.write_frame(frame)

                    summary.frames_processed += 1
                    if drawn:
                        summary.frames_masked += 1
                    summary.peak_masks = max(summary.peak_masks, drawn)
                    pbar.update(1)

            if keep_audio:
                summary.audio_copied = copy_audio(reader, writer)

        summary.tracks_created = self.tracker.tracks_created
        logger.info(
            "wrote %s: %d frames, %d masked, %d tracks",
            output_path, summary.frames_processed, summary.frames_masked, summary.tracks_created,
        )
        return summary
