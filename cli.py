"""CLI: argument parsing, output locations, and runtime validation."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Optional, Sequence

from toolchain import WorkspaceError

# ── Constants ──────────────────────────────────────────────────────────────────

OUTPUT_MODES = ("double-rate", "fixed-60")
SUPPORTED_EXTENSIONS = (".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv")

ENV_BINARIES_DIR = "FPS2X_BINARIES_DIR"
ENV_OUTPUT_DIR = "FPS2X_OUTPUT_DIR"
ENV_WORK_ROOT = "FPS2X_WORK_ROOT"
ENV_OTLP_ENDPOINT = "OTEL_EXPORTER_OTLP_ENDPOINT"


# ── Functions ──────────────────────────────────────────────────────────────────


def get_downloads_dir() -> Path:
    """Return the user's Downloads directory."""
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise WorkspaceError(f"Unable to resolve user home directory: {exc}") from exc
    return home / "Downloads"


def resolve_output_dir(output_dir_arg: Optional[str]) -> Path:
    if output_dir_arg:
        return Path(output_dir_arg).expanduser().resolve()
    return get_downloads_dir()


def resolve_work_root(work_root_arg: Optional[str], output_dir: Path) -> Path:
    """Scratch directories live beside the output unless redirected."""
    if work_root_arg:
        return Path(work_root_arg).expanduser().resolve()
    return output_dir


def build_output_path(output_dir: Path, input_video: Path, target_label: str) -> Path:
    return output_dir / f"{input_video.stem}_{target_label}fps.mp4"


def validate_runtime_args(args: argparse.Namespace) -> None:
    if args.check_deps:
        return
    if not args.input_video:
        raise ValueError("An input video path is required.")
    input_video = Path(args.input_video).expanduser()
    if not input_video.is_file():
        raise FileNotFoundError(f"Input video not found: {input_video}")
    if input_video.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported input format '{input_video.suffix}'. "
            f"Expected one of: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if args.output_dir:
        output_dir = Path(args.output_dir).expanduser()
        if output_dir.exists() and not output_dir.is_dir():
            raise ValueError("Output directory path must be a directory, not a file.")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Double a video's frame rate (or lift it to 60 fps) with RIFE interpolation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("input_video", type=str, nargs="?", default=None, help="Path to input video")
    parser.add_argument(
        "--mode",
        type=str,
        choices=OUTPUT_MODES,
        default="double-rate",
        help="double-rate: twice the source rate; fixed-60: always 60 fps",
    )
    parser.add_argument(
        "--binaries-dir",
        type=str,
        default=os.environ.get(ENV_BINARIES_DIR),
        help="Directory containing ffmpeg, ffprobe, rife-ncnn-vulkan and the rife-v4.6 model",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=os.environ.get(ENV_OUTPUT_DIR),
        help="Output directory (default: ~/Downloads)",
    )
    parser.add_argument(
        "--work-root",
        type=str,
        default=os.environ.get(ENV_WORK_ROOT),
        help="Parent directory for the per-run scratch workspace (default: output directory)",
    )
    parser.add_argument(
        "--check-deps",
        action="store_true",
        help="Only check that the bundled tools are present, then exit",
    )
    parser.add_argument(
        "--otlp-endpoint",
        type=str,
        default=os.environ.get(ENV_OTLP_ENDPOINT),
        help="Export tracing spans to this OTLP/HTTP endpoint",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return parser.parse_args(argv)
