"""
privacy-mask - CLI Entry Point

Usage:
    privacy-mask process <video_path> --mask mask.png [options]
    privacy-mask info <video_path>
"""

import json
import logging
from pathlib import Path

import click

from privacy_mask import __version__
from privacy_mask.errors import PrivacyMaskError


def _overrides(mode, max_tracks, prediction, mask, glyph, font, device, detector_kind, model, no_audio) -> dict:
    """Translate CLI flags into a config dict merged over the YAML config."""
    overrides: dict = {}

    def put(section: str, key: str, value) -> None:
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    put("tracking", "tracking_mode", mode)
    put("tracking", "max_concurrent_tracks", max_tracks)
    put("tracking", "prediction", prediction)
    put("detection", "device", device)
    put("detection", "kind", detector_kind)
    put("detection", "model", model)
    put("mask", "font_path", font)
    # A mask given on the command line replaces whichever kind the config set.
    if mask is not None:
        overrides.setdefault("mask", {}).update({"image": mask, "glyph": None})
    if glyph is not None:
        overrides.setdefault("mask", {}).update({"glyph": glyph, "image": None})
    if no_audio:
        put("output", "keep_audio", False)
    return overrides


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """privacy-mask - Cover people in a video with a mask that follows them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("video_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Custom config file")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output video path")
@click.option("--mask", "-m", type=click.Path(exists=True, dir_okay=False), help="Mask image (PNG with alpha works best)")
@click.option("--glyph", "-g", type=str, help="Text/emoji glyph to use as the mask")
@click.option("--font", type=click.Path(exists=True, dir_okay=False), help="Font file for glyph masks")
@click.option("--mode", type=click.Choice(["single", "multi"]), help="Track one subject or many")
@click.option("--max-tracks", type=click.IntRange(min=1), help="Cap on simultaneous masks (multi mode)")
@click.option("--prediction", type=click.Choice(["coast", "inertial"]), help="Occlusion behaviour")
@click.option("--detector", "detector_kind", type=click.Choice(["pose", "box"]), help="Pose landmarks or face boxes")
@click.option("--model", type=str, help="YOLO weights for the detector")
@click.option("--device", type=str, help="Inference device (cpu, cuda, mps)")
@click.option("--start-frame", type=click.IntRange(min=0), default=0, help="Start processing from frame N")
@click.option("--end-frame", type=click.IntRange(min=1), default=None, help="Stop processing at frame N")
@click.option("--no-audio", is_flag=True, help="Do not copy the source audio")
@click.option("--summary-json", type=click.Path(dir_okay=False), help="Write the run summary as JSON")
def process(
    video_path, config, output, mask, glyph, font, mode, max_tracks, prediction,
    detector_kind, model, device, start_frame, end_frame, no_audio, summary_json,
):
    """Mask every person in a video.

    VIDEO_PATH: Path to the input video file (MP4, WebM, etc.)
    """
    from privacy_mask.pipeline import MaskPipeline
    from privacy_mask.settings import load_app_config

    if mask and glyph:
        raise click.UsageError("use either --mask or --glyph, not both")

    if output:
        output_path = Path(output)
    else:
        output_path = Path(video_path).with_name(f"{Path(video_path).stem}_masked.mp4")

    try:
        app_config = load_app_config(
            Path(config) if config else None,
            _overrides(mode, max_tracks, prediction, mask, glyph, font, device, detector_kind, model, no_audio),
        )

        click.echo(f"Processing: {video_path}")
        click.echo(f"Output: {output_path}")
        click.echo(f"Mode: {app_config.tracking.tracking_mode.value} ({app_config.tracking.prediction.value})")
        click.echo(f"Detector: {app_config.detection.kind} / {app_config.detection.model} on {app_config.detection.device}")

        pipeline = MaskPipeline(app_config)
        summary = pipeline.run(
            video_path=Path(video_path),
            output_path=output_path,
            start_frame=start_frame,
            end_frame=end_frame,
        )
    except PrivacyMaskError as e:
        raise click.ClickException(str(e)) from e

    if summary_json:
        Path(summary_json).write_text(json.dumps(summary.model_dump(), indent=2) + "\n", encoding="utf8")

    click.echo(
        f"Frames: {summary.frames_processed} ({summary.frames_masked} masked, "
        f"{summary.masked_ratio:.0%}), tracks: {summary.tracks_created}, peak masks: {summary.peak_masks}"
    )
    click.echo("Processing complete!")


@cli.command()
@click.argument("video_path", type=click.Path(exists=True, dir_okay=False))
def info(video_path):
    """Show video metadata."""
    from privacy_mask.video.io import get_video_info

    try:
        meta = get_video_info(video_path)
    except PrivacyMaskError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"privacy-mask v{__version__}")
    click.echo("-" * 40)
    click.echo(f"Resolution: {meta['width']}x{meta['height']}")
    click.echo(f"FPS: {meta['fps']:.2f}")
    click.echo(f"Frames: {meta['total_frames']}")
    if meta["duration"] is not None:
        click.echo(f"Duration: {meta['duration']:.2f}s")
    click.echo(f"Codec: {meta['codec']}")
    click.echo(f"Audio: {'yes' if meta['has_audio'] else 'no'}")


if __name__ == "__main__":
    cli()
