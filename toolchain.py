"""Toolchain: bundled binary resolution, subprocess wrapper, and CPU budgeting."""

from __future__ import annotations

import enum
import logging
import os
import platform
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from tqdm import tqdm

logger = logging.getLogger(__name__)

BINARIES_DIR_NAME = "binaries"
FFMPEG_NAME = "ffmpeg"
FFPROBE_NAME = "ffprobe"
RIFE_NAME = "rife-ncnn-vulkan"
MODEL_NAME = "rife-v4.6"

MIN_INTERPOLATION_THREADS = 2
MAX_INTERPOLATION_THREADS = 16


class Artifact(enum.Enum):
    ENCODER = "FFmpeg"
    PROBER = "FFprobe"
    INTERPOLATOR = "RIFE executable"
    MODEL = "RIFE model"


class PipelineError(Exception):
    """Base class for errors that terminate a pipeline run."""


class DependencyMissingError(PipelineError):
    def __init__(self, artifact: Artifact, path: Path) -> None:
        super().__init__(f"{artifact.value} not found at: {path}")
        self.artifact = artifact
        self.path = path


class CommandFailedError(PipelineError):
    def __init__(self, command: Sequence[str], returncode: Optional[int], output: str) -> None:
        detail = f"exit status {returncode}" if returncode is not None else "could not start"
        super().__init__(f"Command failed ({detail}): {Path(command[0]).name}\nOutput: {output.strip()}")
        self.command = list(command)
        self.returncode = returncode
        self.output = output


class WorkspaceError(PipelineError):
    """Scratch directory or home directory could not be prepared."""


@dataclass(frozen=True)
class BinaryPaths:
    ffmpeg: Path
    ffprobe: Path
    rife: Path
    model: Path


@dataclass(frozen=True)
class DependencyCheck:
    ready: bool
    paths: Optional[BinaryPaths]
    error: str = ""


def progress_write(message: str) -> None:
    """Write a progress message without tearing an active tqdm bar."""
    tqdm.write(message)


def get_system() -> str:
    return platform.system().lower()


def get_executable_suffix(system: Optional[str] = None) -> str:
    """Return the executable extension for the given OS."""
    system = system or get_system()
    return ".exe" if system == "windows" else ""


def get_executable_dir() -> Path:
    """Directory holding the running application.

    Frozen builds resolve to the bundled executable; source checkouts resolve
    to the directory of this module.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent


def resolve_binaries_dir(
    override: Optional[str] = None,
    *,
    cwd: Optional[Path] = None,
    system: Optional[str] = None,
    executable_dir: Optional[Path] = None,
) -> Path:
    """Locate the directory that holds the bundled tools.

    An explicit override wins. A ``binaries`` directory in the working
    directory is used next (development checkout). Otherwise the installed
    layout applies: macOS app bundles keep it under ``Contents/Resources``,
    other platforms keep it beside the executable.
    """
    if override:
        return Path(override).expanduser().resolve()

    cwd = cwd if cwd is not None else Path.cwd()
    dev_dir = cwd / BINARIES_DIR_NAME
    if dev_dir.exists():
        return dev_dir

    system = system or get_system()
    executable_dir = executable_dir if executable_dir is not None else get_executable_dir()
    if system == "darwin":
        return executable_dir / ".." / "Resources" / BINARIES_DIR_NAME
    return executable_dir / BINARIES_DIR_NAME


def resolve_binary_paths(binaries_dir: Path, system: Optional[str] = None) -> BinaryPaths:
    """Check the four required artifacts and return their paths."""
    suffix = get_executable_suffix(system)
    candidates = [
        (Artifact.ENCODER, binaries_dir / f"{FFMPEG_NAME}{suffix}"),
        (Artifact.PROBER, binaries_dir / f"{FFPROBE_NAME}{suffix}"),
        (Artifact.INTERPOLATOR, binaries_dir / f"{RIFE_NAME}{suffix}"),
        (Artifact.MODEL, binaries_dir / MODEL_NAME),
    ]
    for artifact, path in candidates:
        if not path.exists():
            raise DependencyMissingError(artifact, path)

    return BinaryPaths(
        ffmpeg=candidates[0][1],
        ffprobe=candidates[1][1],
        rife=candidates[2][1],
        model=candidates[3][1],
    )


def check_dependencies(
    override: Optional[str] = None,
    *,
    cwd: Optional[Path] = None,
    system: Optional[str] = None,
    executable_dir: Optional[Path] = None,
) -> DependencyCheck:
    """Report whether all artifacts are present without raising."""
    binaries_dir = resolve_binaries_dir(
        override, cwd=cwd, system=system, executable_dir=executable_dir
    )
    try:
        paths = resolve_binary_paths(binaries_dir, system)
    except DependencyMissingError as exc:
        return DependencyCheck(ready=False, paths=None, error=str(exc))
    return DependencyCheck(ready=True, paths=paths)


def run_command(
    executable: Union[Path, str],
    args: Sequence[str],
    *,
    merge_stderr: bool = True,
) -> str:
    """Run a tool to completion and return its output.

    By default stderr is folded into the returned text. With
    ``merge_stderr=False`` only stdout is returned on success; stderr is
    still attached to the error when the command fails. Undecodable bytes
    are replaced rather than raised.
    """
    cmd = [str(executable), *[str(arg) for arg in args]]
    logger.info("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise CommandFailedError(cmd, None, str(exc)) from exc

    stdout = result.stdout or ""
    if result.returncode != 0:
        output = stdout if merge_stderr else stdout + (result.stderr or "")
        logger.error("Command exited with %s:\n%s", result.returncode, output)
        raise CommandFailedError(cmd, result.returncode, output)
    if not merge_stderr and result.stderr:
        logger.warning("%s reported:\n%s", Path(cmd[0]).name, result.stderr.strip())
    return stdout


def compute_reserved_cores(cpu_count: int) -> int:
    """Cores left to the rest of the system while interpolating."""
    if cpu_count <= 4:
        return 2
    if cpu_count <= 8:
        return 3
    return 4


def compute_interpolation_threads(cpu_count: Optional[int] = None) -> int:
    if cpu_count is None:
        cpu_count = os.cpu_count() or 1
    threads = cpu_count - compute_reserved_cores(cpu_count)
    return max(MIN_INTERPOLATION_THREADS, min(MAX_INTERPOLATION_THREADS, threads))


def build_jobs_spec(cpu_count: Optional[int] = None) -> str:
    """Return the RIFE ``-j`` thread tuple (load:proc:save)."""
    return f"{compute_interpolation_threads(cpu_count)}:2:2"
