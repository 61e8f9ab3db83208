import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import toolchain


def make_binaries_dir(root: Path, *, suffix: str = "", skip: tuple = ()) -> Path:
    binaries = root / "binaries"
    binaries.mkdir(parents=True, exist_ok=True)
    for name in ("ffmpeg", "ffprobe", "rife-ncnn-vulkan"):
        if name not in skip:
            (binaries / f"{name}{suffix}").write_text("#!/bin/sh\nexit 0\n")
    if "rife-v4.6" not in skip:
        (binaries / "rife-v4.6").mkdir()
    return binaries


class TestBinariesDirResolution(unittest.TestCase):
    def test_override_wins_over_dev_directory(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "binaries").mkdir()
            override = root / "elsewhere"
            resolved = toolchain.resolve_binaries_dir(str(override), cwd=root, system="linux")
        self.assertEqual(resolved, override.resolve())

    def test_dev_directory_preferred_when_present(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "binaries").mkdir()
            resolved = toolchain.resolve_binaries_dir(
                cwd=root,
                system="darwin",
                executable_dir=Path("/Applications/FPS2X.app/Contents/MacOS"),
            )
        self.assertEqual(resolved, root / "binaries")

    def test_macos_bundle_uses_resources_folder(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            exe_dir = Path("/Applications/FPS2X.app/Contents/MacOS")
            resolved = toolchain.resolve_binaries_dir(
                cwd=Path(temp_dir),
                system="darwin",
                executable_dir=exe_dir,
            )
        self.assertEqual(resolved, exe_dir / ".." / "Resources" / "binaries")

    def test_other_platforms_use_executable_directory(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            exe_dir = Path("/opt/fps2x")
            resolved = toolchain.resolve_binaries_dir(
                cwd=Path(temp_dir),
                system="linux",
                executable_dir=exe_dir,
            )
        self.assertEqual(resolved, exe_dir / "binaries")


class TestBinaryPaths(unittest.TestCase):
    def test_resolve_binary_paths_returns_all_artifacts(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            binaries = make_binaries_dir(Path(temp_dir))
            paths = toolchain.resolve_binary_paths(binaries, system="linux")

        self.assertEqual(paths.ffmpeg, binaries / "ffmpeg")
        self.assertEqual(paths.ffprobe, binaries / "ffprobe")
        self.assertEqual(paths.rife, binaries / "rife-ncnn-vulkan")
        self.assertEqual(paths.model, binaries / "rife-v4.6")

    def test_windows_expects_exe_suffix(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            binaries = make_binaries_dir(Path(temp_dir), suffix=".exe")
            paths = toolchain.resolve_binary_paths(binaries, system="windows")
            with self.assertRaises(toolchain.DependencyMissingError) as ctx:
                toolchain.resolve_binary_paths(binaries, system="linux")

        self.assertEqual(paths.rife.name, "rife-ncnn-vulkan.exe")
        self.assertEqual(paths.model.name, "rife-v4.6")
        self.assertIs(ctx.exception.artifact, toolchain.Artifact.ENCODER)

    def test_missing_artifacts_are_reported_in_check_order(self):
        cases = [
            (("ffmpeg",), toolchain.Artifact.ENCODER),
            (("ffprobe",), toolchain.Artifact.PROBER),
            (("rife-ncnn-vulkan",), toolchain.Artifact.INTERPOLATOR),
            (("rife-v4.6",), toolchain.Artifact.MODEL),
            (("ffprobe", "rife-v4.6"), toolchain.Artifact.PROBER),
        ]
        for skip, expected in cases:
            with self.subTest(skip=skip):
                with tempfile.TemporaryDirectory() as temp_dir:
                    binaries = make_binaries_dir(Path(temp_dir), skip=skip)
                    with self.assertRaises(toolchain.DependencyMissingError) as ctx:
                        toolchain.resolve_binary_paths(binaries, system="linux")
                self.assertIs(ctx.exception.artifact, expected)
                self.assertIsInstance(ctx.exception, toolchain.PipelineError)

    def test_check_dependencies_reports_missing_model(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            binaries = make_binaries_dir(Path(temp_dir), skip=("rife-v4.6",))
            check = toolchain.check_dependencies(str(binaries), system="linux")

        self.assertFalse(check.ready)
        self.assertIsNone(check.paths)
        self.assertIn("RIFE model", check.error)

    def test_check_dependencies_is_repeatable(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            binaries = make_binaries_dir(Path(temp_dir))
            first = toolchain.check_dependencies(str(binaries), system="linux")
            (binaries / "ffprobe").unlink()
            second = toolchain.check_dependencies(str(binaries), system="linux")

        self.assertTrue(first.ready)
        self.assertFalse(second.ready)
        self.assertIn("FFprobe", second.error)


class TestThreadBudget(unittest.TestCase):
    def test_reserved_and_usable_threads_follow_core_count(self):
        cores = [2, 4, 8, 16, 32]
        reserved = [toolchain.compute_reserved_cores(n) for n in cores]
        usable = [toolchain.compute_interpolation_threads(n) for n in cores]

        self.assertEqual(reserved, [2, 2, 3, 4, 4])
        self.assertEqual(usable, [2, 2, 5, 12, 16])

    def test_thread_count_is_monotone_and_clamped(self):
        previous = 0
        for cores in range(1, 129):
            threads = toolchain.compute_interpolation_threads(cores)
            self.assertGreaterEqual(threads, 2)
            self.assertLessEqual(threads, 16)
            self.assertGreaterEqual(threads, previous)
            previous = threads

    def test_jobs_spec_formats_rife_triple(self):
        self.assertEqual(toolchain.build_jobs_spec(8), "5:2:2")
        self.assertEqual(toolchain.build_jobs_spec(64), "16:2:2")

    def test_jobs_spec_defaults_to_host_cpu_count(self):
        with mock.patch("toolchain.os.cpu_count", return_value=12):
            self.assertEqual(toolchain.build_jobs_spec(), "8:2:2")


class TestRunCommand(unittest.TestCase):
    def test_run_command_returns_combined_output_and_logs_command(self):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="25/1\n")
        with mock.patch("toolchain.subprocess.run", return_value=completed) as run_mock:
            with self.assertLogs("toolchain", level="INFO") as logs:
                output = toolchain.run_command(Path("/bin/ffprobe"), ["-v", "error", "in.mp4"])

        self.assertEqual(output, "25/1\n")
        cmd = run_mock.call_args.args[0]
        self.assertEqual(cmd, ["/bin/ffprobe", "-v", "error", "in.mp4"])
        self.assertIs(run_mock.call_args.kwargs["stderr"], subprocess.STDOUT)
        self.assertIn("Running: /bin/ffprobe -v error in.mp4", logs.output[0])

    def test_run_command_raises_with_captured_output_on_failure(self):
        completed = subprocess.CompletedProcess(args=[], returncode=1, stdout="Invalid data found\n")
        with mock.patch("toolchain.subprocess.run", return_value=completed):
            with self.assertLogs("toolchain", level="INFO"):
                with self.assertRaises(toolchain.CommandFailedError) as ctx:
                    toolchain.run_command("ffmpeg", ["-i", "broken.mp4"])

        self.assertEqual(ctx.exception.returncode, 1)
        self.assertEqual(ctx.exception.output, "Invalid data found\n")
        self.assertIn("Invalid data found", str(ctx.exception))
        self.assertEqual(ctx.exception.command, ["ffmpeg", "-i", "broken.mp4"])

    def test_run_command_wraps_launch_errors(self):
        with mock.patch("toolchain.subprocess.run", side_effect=FileNotFoundError("no such file")):
            with self.assertLogs("toolchain", level="INFO"):
                with self.assertRaises(toolchain.CommandFailedError) as ctx:
                    toolchain.run_command("/missing/ffmpeg", ["-version"])

        self.assertIsNone(ctx.exception.returncode)
        self.assertIn("could not start", str(ctx.exception))

    def test_run_command_does_not_retry(self):
        completed = subprocess.CompletedProcess(args=[], returncode=2, stdout="")
        with mock.patch("toolchain.subprocess.run", return_value=completed) as run_mock:
            with self.assertLogs("toolchain", level="INFO"):
                with self.assertRaises(toolchain.CommandFailedError):
                    toolchain.run_command("rife-ncnn-vulkan", ["-i", "in", "-o", "out"])

        run_mock.assert_called_once()

    def test_run_command_decodes_as_utf8_with_replacement(self):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="")
        with mock.patch("toolchain.subprocess.run", return_value=completed) as run_mock:
            with self.assertLogs("toolchain", level="INFO"):
                toolchain.run_command("ffmpeg", ["-version"])

        self.assertEqual(run_mock.call_args.kwargs["encoding"], "utf-8")
        self.assertEqual(run_mock.call_args.kwargs["errors"], "replace")

    def test_run_command_tolerates_undecodable_tool_output(self):
        script = "import sys; sys.stdout.buffer.write(b'Metadata: title=\\xff\\xfe\\n')"
        with self.assertLogs("toolchain", level="INFO"):
            output = toolchain.run_command(sys.executable, ["-c", script])

        self.assertIn("Metadata: title=", output)
        self.assertIn("\ufffd", output)

    def test_stdout_only_mode_keeps_diagnostics_out_of_the_result(self):
        script = (
            "import sys; "
            "sys.stderr.write('[h264 @ 0x1] error while decoding MB 3 4\\n'); "
            "sys.stdout.write('30/1\\n')"
        )
        with self.assertLogs("toolchain", level="INFO") as logs:
            output = toolchain.run_command(sys.executable, ["-c", script], merge_stderr=False)

        self.assertEqual(output, "30/1\n")
        self.assertTrue(any("error while decoding" in line for line in logs.output))

    def test_stdout_only_mode_attaches_stderr_on_failure(self):
        completed = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="clip.mp4: Invalid data found\n"
        )
        with mock.patch("toolchain.subprocess.run", return_value=completed) as run_mock:
            with self.assertLogs("toolchain", level="INFO"):
                with self.assertRaises(toolchain.CommandFailedError) as ctx:
                    toolchain.run_command("ffprobe", ["clip.mp4"], merge_stderr=False)

        self.assertIs(run_mock.call_args.kwargs["stderr"], subprocess.PIPE)
        self.assertIn("Invalid data found", ctx.exception.output)


if __name__ == "__main__":
    unittest.main()
