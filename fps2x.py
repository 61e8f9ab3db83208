#!/usr/bin/env python3
"""
Frame-rate doubler (RIFE ncnn-vulkan).

This script extracts frames, interpolates them with RIFE, optionally tops the
result up to 60 fps with ffmpeg's minterpolate filter, and remuxes the frames
with the original audio track.
"""

from __future__ import annotations

import argparse
import contextlib
import dataclasses
import enum
import functools
import logging
import math
import queue
import shutil
import sys
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence, Union

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from toolchain import (
    BinaryPaths,
    CommandFailedError,
    PipelineError,
    WorkspaceError,
    build_jobs_spec,
    check_dependencies,
    get_system,
    progress_write,
    resolve_binaries_dir,
    resolve_binary_paths,
    run_command,
)
from cli import (
    build_output_path,
    get_downloads_dir,
    parse_args,
    resolve_output_dir,
    resolve_work_root,
    validate_runtime_args,
)

logger = logging.getLogger(__name__)

tracer = None


def init_tracing(endpoint: str) -> None:
    """Configure an OpenTelemetry tracer exporting spans over OTLP/HTTP."""
    global tracer
    if tracer is not None:
        return

    endpoint = endpoint.rstrip("/")
    if not endpoint.endswith("/v1/traces"):
        endpoint = f"{endpoint}/v1/traces"

    resource = Resource.create({"service.name": "fps2x"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    tracer = trace.get_tracer(__name__)


def _traced(func):
    """Decorator that wraps a function call in a tracing span if tracing is enabled."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if tracer is not None:
            with tracer.start_as_current_span(func.__name__):
                return func(*args, **kwargs)
        return func(*args, **kwargs)

    return wrapper


INPUT_FRAME_PATTERN = "%08d.jpg"
OUTPUT_FRAME_PATTERN = "%08d.png"
AUDIO_FILENAME = "audio.m4a"
INTERMEDIATE_VIDEO_FILENAME = "temp_rife.mp4"

FIXED_TARGET_FPS = 60.0
# Ratios RIFE reaches without a motion-compensated top-up pass.
DIRECT_MULTIPLES = (2.0, 3.0, 4.0)

REMUX_BITRATE = "15M"
PIXEL_FORMAT = "yuv420p"
MINTERPOLATE_FILTER = "minterpolate=fps=60:mi_mode=mci:mc_mode=aobmc:me_mode=bidir_ref:vsbmc=1"

# Called as runner(executable, args); merge_stderr=False is passed only for
# commands whose stdout is parsed.
CommandRunner = Callable[..., str]


class ProbeExecutionError(PipelineError):
    """ffprobe failed or returned an unusable frame rate."""


class RunInProgressError(RuntimeError):
    """A pipeline run is already active."""


class OutputMode(enum.Enum):
    DOUBLE_RATE = "double-rate"
    FIXED_60 = "fixed-60"


class Stage(enum.Enum):
    DEPENDENCY_CHECK = "dependency-check"
    WORKSPACE_PREPARE = "workspace-prepare"
    RATE_PROBE = "rate-probe"
    TARGET_COMPUTE = "target-compute"
    AUDIO_EXTRACT = "audio-extract"
    FRAME_EXTRACT = "frame-extract"
    AI_INTERPOLATE = "ai-interpolate"
    SECONDARY_INTERPOLATE = "secondary-interpolate"
    REMUX = "remux"
    DONE = "done"
    FAILED = "failed"


class StepStatus(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


WORK_STAGES = (
    Stage.DEPENDENCY_CHECK,
    Stage.WORKSPACE_PREPARE,
    Stage.RATE_PROBE,
    Stage.TARGET_COMPUTE,
    Stage.AUDIO_EXTRACT,
    Stage.FRAME_EXTRACT,
    Stage.AI_INTERPOLATE,
    Stage.SECONDARY_INTERPOLATE,
    Stage.REMUX,
)

STAGE_DESCRIPTIONS = {
    Stage.DEPENDENCY_CHECK: "Dependency check",
    Stage.WORKSPACE_PREPARE: "Work directory setup",
    Stage.RATE_PROBE: "Frame rate probe",
    Stage.TARGET_COMPUTE: "Target frame rate",
    Stage.AUDIO_EXTRACT: "Audio extraction",
    Stage.FRAME_EXTRACT: "Frame extraction",
    Stage.AI_INTERPOLATE: "AI interpolation",
    Stage.SECONDARY_INTERPOLATE: "AI interpolation + 60 fps top-up",
    Stage.REMUX: "Video merge",
}

# Steps the presentation layer shows as a checklist.
USER_VISIBLE_STEPS = (
    Stage.FRAME_EXTRACT,
    Stage.AI_INTERPOLATE,
    Stage.SECONDARY_INTERPOLATE,
    Stage.REMUX,
)


def describe_step(stage: Stage, status: StepStatus) -> str:
    name = STAGE_DESCRIPTIONS[stage]
    if status is StepStatus.RUNNING:
        return f"[..] {name} running..."
    if status is StepStatus.COMPLETED:
        return f"[ok] {name} completed"
    if status is StepStatus.ERROR:
        return f"[!!] {name} failed"
    return f"[  ] {name}"


# ── Data model ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PipelineRequest:
    input_path: Path
    mode: OutputMode = OutputMode.DOUBLE_RATE


@dataclass(frozen=True)
class FrameRatePlan:
    fps_origin: float
    fps_target: float
    needs_secondary_interpolation: bool


def _initial_steps() -> dict[Stage, StepStatus]:
    return {stage: StepStatus.PENDING for stage in WORK_STAGES}


@dataclass(frozen=True)
class PipelineState:
    """Snapshot of a run. The orchestrator replaces it on every change."""

    stage: Stage = Stage.DEPENDENCY_CHECK
    progress: float = 0.0
    steps: dict[Stage, StepStatus] = field(default_factory=_initial_steps)
    message: str = ""

    def with_step(self, stage: Stage, status: StepStatus) -> "PipelineState":
        steps = dict(self.steps)
        steps[stage] = status
        return dataclasses.replace(self, steps=steps)


@dataclass(frozen=True)
class ProgressEvent:
    message: str
    percent: float
    state: PipelineState


@dataclass(frozen=True)
class StepEvent:
    stage: Stage
    status: StepStatus
    state: PipelineState


@dataclass(frozen=True)
class CompletedEvent:
    output_path: Path
    state: PipelineState


@dataclass(frozen=True)
class FailedEvent:
    message: str
    state: PipelineState
    error: Optional[BaseException] = None


PipelineEvent = Union[ProgressEvent, StepEvent, CompletedEvent, FailedEvent]
TERMINAL_EVENTS = (CompletedEvent, FailedEvent)


class EventChannel:
    """Single-consumer queue carrying pipeline events to the presentation layer.

    The pipeline only publishes; the consumer decides when and on which
    thread to render.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()

    def publish(self, event: PipelineEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> PipelineEvent:
        return self._queue.get(timeout=timeout)

    def drain_until_terminal(self, timeout: Optional[float] = None) -> Iterator[PipelineEvent]:
        while True:
            event = self.get(timeout=timeout)
            yield event
            if isinstance(event, TERMINAL_EVENTS):
                return

    def pending(self) -> list[PipelineEvent]:
        """Return every queued event without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


# ── Frame rate ─────────────────────────────────────────────────────────────────


def _parse_decimal(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_frame_rate(value: str) -> float:
    """Parse ffprobe rates like ``30000/1001`` or ``25``; garbage yields 0.0."""
    text = value.strip()
    parts = text.split("/")
    if len(parts) == 2:
        numerator = _parse_decimal(parts[0])
        denominator = _parse_decimal(parts[1])
        if denominator != 0:
            return numerator / denominator
    return _parse_decimal(text)


def compute_target(fps_origin: float, mode: OutputMode) -> FrameRatePlan:
    if fps_origin <= 0:
        raise ValueError(f"Source frame rate must be positive, got {fps_origin}")

    if mode is OutputMode.FIXED_60:
        ratio = FIXED_TARGET_FPS / fps_origin
        return FrameRatePlan(
            fps_origin=fps_origin,
            fps_target=FIXED_TARGET_FPS,
            needs_secondary_interpolation=ratio not in DIRECT_MULTIPLES,
        )
    return FrameRatePlan(
        fps_origin=fps_origin,
        fps_target=fps_origin * 2,
        needs_secondary_interpolation=False,
    )


def format_rate(fps: float) -> str:
    return f"{fps:.0f}"


def get_video_codec(system: str) -> str:
    """VideoToolbox on macOS, x264 everywhere else."""
    if system == "darwin":
        return "h264_videotoolbox"
    return "libx264"


# ── Commands ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CommandSpec:
    executable: Path
    args: tuple[str, ...]
    description: str
    merge_stderr: bool = True

    def run(self, runner: CommandRunner) -> str:
        if self.merge_stderr:
            return runner(self.executable, self.args)
        return runner(self.executable, self.args, merge_stderr=False)


@dataclass(frozen=True)
class Workspace:
    root: Path

    @property
    def input_frames(self) -> Path:
        return self.root / "in"

    @property
    def output_frames(self) -> Path:
        return self.root / "out"

    @property
    def secondary_frames(self) -> Path:
        return self.root / "out60"

    @property
    def audio_path(self) -> Path:
        return self.root / AUDIO_FILENAME

    @property
    def intermediate_video(self) -> Path:
        return self.root / INTERMEDIATE_VIDEO_FILENAME


def build_probe_command(ffprobe: Path, input_video: Path) -> CommandSpec:
    return CommandSpec(
        executable=ffprobe,
        args=(
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=r_frame_rate",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(input_video),
        ),
        description="probe frame rate",
        merge_stderr=False,
    )


def build_audio_extract_command(ffmpeg: Path, input_video: Path, workspace: Workspace) -> CommandSpec:
    return CommandSpec(
        executable=ffmpeg,
        args=("-y", "-i", str(input_video), "-vn", "-c:a", "copy", str(workspace.audio_path)),
        description="extract audio",
    )


def build_frame_extract_command(ffmpeg: Path, input_video: Path, workspace: Workspace) -> CommandSpec:
    return CommandSpec(
        executable=ffmpeg,
        args=(
            "-y",
            "-i", str(input_video),
            "-q:v", "2",
            str(workspace.input_frames / INPUT_FRAME_PATTERN),
        ),
        description="extract frames",
    )


def build_interpolate_command(paths: BinaryPaths, workspace: Workspace, jobs: str) -> CommandSpec:
    return CommandSpec(
        executable=paths.rife,
        args=(
            "-i", str(workspace.input_frames),
            "-o", str(workspace.output_frames),
            "-j", jobs,
            "-m", str(paths.model),
        ),
        description="interpolate frames",
    )


def build_intermediate_encode_command(
    ffmpeg: Path,
    workspace: Workspace,
    framerate: float,
) -> CommandSpec:
    return CommandSpec(
        executable=ffmpeg,
        args=(
            "-y",
            "-framerate", format_rate(framerate),
            "-i", str(workspace.output_frames / OUTPUT_FRAME_PATTERN),
            "-c:v", "libx264",
            "-preset", "ultrafast",
            "-crf", "18",
            "-pix_fmt", PIXEL_FORMAT,
            str(workspace.intermediate_video),
        ),
        description="encode intermediate video",
    )


def build_minterpolate_command(ffmpeg: Path, workspace: Workspace) -> CommandSpec:
    return CommandSpec(
        executable=ffmpeg,
        args=(
            "-y",
            "-i", str(workspace.intermediate_video),
            "-filter:v", MINTERPOLATE_FILTER,
            str(workspace.secondary_frames / OUTPUT_FRAME_PATTERN),
        ),
        description="motion-compensated top-up to 60 fps",
    )


def build_remux_command(
    ffmpeg: Path,
    frames_dir: Path,
    audio_path: Path,
    output_video: Path,
    *,
    framerate: float,
    codec: str,
) -> CommandSpec:
    return CommandSpec(
        executable=ffmpeg,
        args=(
            "-y",
            "-framerate", format_rate(framerate),
            "-i", str(frames_dir / OUTPUT_FRAME_PATTERN),
            "-i", str(audio_path),
            "-c:v", codec,
            "-b:v", REMUX_BITRATE,
            "-pix_fmt", PIXEL_FORMAT,
            "-c:a", "copy",
            "-shortest",
            str(output_video),
        ),
        description="merge frames and audio",
    )


@_traced
def probe_frame_rate(
    ffprobe: Path,
    input_video: Path,
    runner: CommandRunner = run_command,
) -> float:
    """Read the raw frame rate of the first video stream."""
    try:
        output = build_probe_command(ffprobe, input_video).run(runner)
    except CommandFailedError as exc:
        raise ProbeExecutionError(f"ffprobe failed: {exc}") from exc

    fps = parse_frame_rate(output)
    if not math.isfinite(fps) or fps <= 0:
        raise ProbeExecutionError(f"Unable to parse frame rate from ffprobe output: {output.strip()!r}")
    return fps


# ── Workspace ──────────────────────────────────────────────────────────────────


@contextlib.contextmanager
def prepare_workspace(work_root: Path, base_name: str, timestamp: int) -> Iterator[Workspace]:
    """Create a per-run scratch tree and remove it on exit, whatever happens."""
    root: Optional[Path] = None
    try:
        work_root.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix=f"work_{base_name}_{timestamp}_", dir=work_root))
        workspace = Workspace(root)
        workspace.input_frames.mkdir()
        workspace.output_frames.mkdir()
    except OSError as exc:
        if root is not None:
            shutil.rmtree(root, ignore_errors=True)
        raise WorkspaceError(f"Failed to create work directory: {exc}") from exc

    try:
        yield workspace
    finally:
        shutil.rmtree(workspace.root, ignore_errors=True)
        logger.debug("Removed work directory %s", workspace.root)


# ── Orchestration ──────────────────────────────────────────────────────────────


class PipelineOrchestrator:
    """Drive one frame-rate conversion at a time and publish its progress.

    ``run`` executes in the calling thread; ``start`` runs it on a background
    thread. Either way only one run is active, and the scratch workspace is
    gone before the terminal event is published.
    """

    def __init__(
        self,
        channel: Optional[EventChannel] = None,
        *,
        binaries_dir: Optional[str] = None,
        resolver: Optional[Callable[[], BinaryPaths]] = None,
        runner: Optional[CommandRunner] = None,
        output_dir: Optional[Path] = None,
        work_root: Optional[Path] = None,
        cpu_count: Optional[int] = None,
        system: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.channel = channel if channel is not None else EventChannel()
        self._system = system or get_system()
        self._binaries_dir = binaries_dir
        self._resolver = resolver or self._resolve_binaries
        self._runner = runner or run_command
        self._output_dir = output_dir
        self._work_root = work_root
        self._cpu_count = cpu_count
        self._clock = clock
        self._state = PipelineState()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def _resolve_binaries(self) -> BinaryPaths:
        binaries_dir = resolve_binaries_dir(self._binaries_dir, system=self._system)
        return resolve_binary_paths(binaries_dir, self._system)

    def start(self, request: PipelineRequest) -> threading.Thread:
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("A conversion is already running.")

        thread = threading.Thread(
            target=self._run_and_release,
            args=(request,),
            name="fps2x-pipeline",
        )
        try:
            thread.start()
        except RuntimeError:
            self._run_lock.release()
            raise
        self._thread = thread
        return thread

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self, request: PipelineRequest) -> Optional[Path]:
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("A conversion is already running.")
        try:
            return self._execute(request)
        finally:
            self._run_lock.release()

    def _run_and_release(self, request: PipelineRequest) -> None:
        try:
            self._execute(request)
        finally:
            self._run_lock.release()

    @_traced
    def _execute(self, request: PipelineRequest) -> Optional[Path]:
        self._state = PipelineState(message="Starting...")
        try:
            output_path = self._run_stages(request)
        except (PipelineError, OSError) as exc:
            self._fail(exc)
            return None
        except Exception as exc:
            logger.exception("Unexpected error during conversion")
            self._fail(exc)
            return None
        self._finish(output_path)
        return output_path

    # State transitions. Each one replaces the snapshot before publishing it.

    def _progress(self, message: str, percent: float) -> None:
        self._state = dataclasses.replace(self._state, progress=percent, message=message)
        self.channel.publish(ProgressEvent(message, percent, self._state))

    def _set_step(self, stage: Stage, status: StepStatus) -> None:
        self._state = self._state.with_step(stage, status)
        if status is StepStatus.RUNNING:
            self._state = dataclasses.replace(self._state, stage=stage)
        self.channel.publish(StepEvent(stage, status, self._state))

    def _begin(self, stage: Stage, message: Optional[str] = None, percent: Optional[float] = None) -> None:
        self._set_step(stage, StepStatus.RUNNING)
        if message is not None:
            self._progress(message, self._state.progress if percent is None else percent)

    def _complete(self, stage: Stage) -> None:
        self._set_step(stage, StepStatus.COMPLETED)

    def _finish(self, output_path: Path) -> None:
        self._state = dataclasses.replace(self._state, stage=Stage.DONE)
        self._progress("Done!", 100)
        logger.info("Saved output to %s", output_path)
        self.channel.publish(CompletedEvent(output_path, self._state))

    def _fail(self, exc: BaseException) -> None:
        stage = self._state.stage
        if self._state.steps.get(stage) is StepStatus.RUNNING:
            self._set_step(stage, StepStatus.ERROR)

        message = f"{STAGE_DESCRIPTIONS.get(stage, stage.value)} failed: {exc}"
        logger.error(message)
        self._state = dataclasses.replace(self._state, stage=Stage.FAILED, message=message)
        self.channel.publish(FailedEvent(message, self._state, exc))

    def _run(self, spec: CommandSpec) -> str:
        logger.debug("Stage command: %s", spec.description)
        return spec.run(self._runner)

    # Stages.

    def _run_stages(self, request: PipelineRequest) -> Path:
        self._begin(Stage.DEPENDENCY_CHECK, "Checking dependencies...", 0)
        paths = self._resolver()
        self._complete(Stage.DEPENDENCY_CHECK)

        input_video = Path(request.input_path)
        self._begin(Stage.WORKSPACE_PREPARE, "Preparing work directory...", 5)
        output_dir = self._output_dir if self._output_dir is not None else get_downloads_dir()
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"Failed to create output directory {output_dir}: {exc}") from exc
        work_root = self._work_root if self._work_root is not None else output_dir

        with prepare_workspace(work_root, input_video.stem, int(self._clock())) as workspace:
            self._complete(Stage.WORKSPACE_PREPARE)
            return self._process(request, paths, workspace, output_dir)

    def _process(
        self,
        request: PipelineRequest,
        paths: BinaryPaths,
        workspace: Workspace,
        output_dir: Path,
    ) -> Path:
        input_video = Path(request.input_path)

        self._begin(Stage.RATE_PROBE, "Reading video information...", 10)
        fps_origin = probe_frame_rate(paths.ffprobe, input_video, self._runner)
        self._complete(Stage.RATE_PROBE)

        self._begin(Stage.TARGET_COMPUTE)
        plan = compute_target(fps_origin, request.mode)
        self._progress(
            f"Frame rate: {format_rate(plan.fps_origin)} -> {format_rate(plan.fps_target)}", 20
        )
        self._complete(Stage.TARGET_COMPUTE)

        self._begin(Stage.AUDIO_EXTRACT, "Extracting audio...", 30)
        self._run(build_audio_extract_command(paths.ffmpeg, input_video, workspace))
        self._complete(Stage.AUDIO_EXTRACT)

        self._begin(Stage.FRAME_EXTRACT, "Extracting frames...", 40)
        self._run(build_frame_extract_command(paths.ffmpeg, input_video, workspace))
        self._complete(Stage.FRAME_EXTRACT)

        self._begin(Stage.AI_INTERPOLATE, "AI interpolation (this may take several minutes)...", 60)
        self._run(build_interpolate_command(paths, workspace, build_jobs_spec(self._cpu_count)))
        self._complete(Stage.AI_INTERPOLATE)

        frames_dir = workspace.output_frames
        if plan.needs_secondary_interpolation:
            self._begin(Stage.SECONDARY_INTERPOLATE, "Topping up frame rate to 60 fps...", 70)
            try:
                workspace.secondary_frames.mkdir()
            except OSError as exc:
                raise WorkspaceError(f"Failed to create output directory: {exc}") from exc
            # RIFE always doubles, so the intermediate runs at twice the source rate.
            self._run(build_intermediate_encode_command(paths.ffmpeg, workspace, plan.fps_origin * 2))
            self._run(build_minterpolate_command(paths.ffmpeg, workspace))
            self._complete(Stage.SECONDARY_INTERPOLATE)
            frames_dir = workspace.secondary_frames

        self._begin(Stage.REMUX, "Muxing final video...", 80)
        output_path = build_output_path(output_dir, input_video, format_rate(plan.fps_target))
        self._run(
            build_remux_command(
                paths.ffmpeg,
                frames_dir,
                workspace.audio_path,
                output_path,
                framerate=plan.fps_target,
                codec=get_video_codec(self._system),
            )
        )
        self._complete(Stage.REMUX)
        return output_path


# ── Terminal front end ─────────────────────────────────────────────────────────


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def render_events(channel: EventChannel, bar: tqdm) -> int:
    """Consume events until the run ends; return the process exit code."""
    for event in channel.drain_until_terminal():
        if isinstance(event, ProgressEvent):
            bar.n = int(event.percent)
            bar.set_description_str(event.message)
            bar.refresh()
        elif isinstance(event, StepEvent):
            if event.stage in USER_VISIBLE_STEPS:
                progress_write(describe_step(event.stage, event.status))
        elif isinstance(event, CompletedEvent):
            progress_write(f"Video saved to: {event.output_path}")
            return 0
        elif isinstance(event, FailedEvent):
            progress_write(f"Error: {event.message}")
    return 1


def run_dependency_check(args: argparse.Namespace) -> int:
    check = check_dependencies(args.binaries_dir)
    if not check.ready:
        print(f"Dependency error: {check.error}", file=sys.stderr)
        print("Make sure the binaries directory contains every required file.", file=sys.stderr)
        return 1
    print("Dependency check complete, ready.")
    for name, path in dataclasses.asdict(check.paths).items():
        print(f"  {name:<8} {path}")
    return 0


def run_pipeline(args: argparse.Namespace) -> int:
    input_video = Path(args.input_video).expanduser().resolve()
    output_dir = resolve_output_dir(args.output_dir)
    work_root = resolve_work_root(args.work_root, output_dir)
    request = PipelineRequest(input_path=input_video, mode=OutputMode(args.mode))

    print("\n" + "=" * 60)
    print("FPS2X - Video Frame Rate Doubler")
    print("=" * 60)
    print(f"Input:  {input_video}")
    print(f"Mode:   {request.mode.value}")
    print(f"Output: {output_dir}")
    print("=" * 60 + "\n")

    orchestrator = PipelineOrchestrator(
        binaries_dir=args.binaries_dir,
        output_dir=output_dir,
        work_root=work_root,
    )
    try:
        with logging_redirect_tqdm():
            with tqdm(total=100, unit="%", bar_format="{desc} |{bar}| {n_fmt}%") as bar:
                orchestrator.start(request)
                return render_events(orchestrator.channel, bar)
    finally:
        # Joined on Ctrl-C too; the worker removes the scratch directory.
        orchestrator.wait()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)
    if args.otlp_endpoint:
        init_tracing(args.otlp_endpoint)

    try:
        validate_runtime_args(args)
        if args.check_deps:
            return run_dependency_check(args)
        return run_pipeline(args)
    except KeyboardInterrupt:
        print("Interrupted by user.", file=sys.stderr)
        return 130
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
