from __future__ import annotations

from pathlib import Path
import sys
import unittest

from core.command_runner import CommandError, RecordingCommandRunner, SubprocessCommandRunner


class SubprocessCommandRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = SubprocessCommandRunner()

    def test_captures_stdout_and_stderr(self) -> None:
        result = self.runner.run(
            [sys.executable, "-c", "import sys; print('out'); sys.stderr.write('err')"],
        )
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout.strip(), "out")
        self.assertEqual(result.stderr, "err")

    def test_environment_is_an_overlay_on_the_inherited_environment(self) -> None:
        script = "import os; print(os.environ['CROSSBUILD_MARKER'], 'PATH' in os.environ)"
        result = self.runner.run([sys.executable, "-c", script], env={"CROSSBUILD_MARKER": "arm64"})
        self.assertEqual(result.stdout.split(), ["arm64", "True"])

    def test_empty_override_replaces_inherited_value(self) -> None:
        merged = SubprocessCommandRunner.merge_environment({"GOARM": ""})
        self.assertIsNotNone(merged)
        self.assertEqual(merged["GOARM"], "")
        self.assertIsNone(SubprocessCommandRunner.merge_environment(None))

    def test_check_raises_command_error_with_label(self) -> None:
        with self.assertRaises(CommandError) as ctx:
            self.runner.run(
                [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
                note="compileGoDebugArm64",
            )
        self.assertEqual(ctx.exception.result.returncode, 3)
        self.assertEqual(ctx.exception.stderr, "boom")
        self.assertIn("compileGoDebugArm64", str(ctx.exception))

    def test_unchecked_failure_returns_result(self) -> None:
        result = self.runner.run([sys.executable, "-c", "raise SystemExit(4)"], check=False)
        self.assertEqual(result.returncode, 4)

    def test_runs_in_working_directory(self) -> None:
        cwd = Path(__file__).resolve().parent
        result = self.runner.run([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=cwd)
        self.assertEqual(Path(result.stdout.strip()).resolve(), cwd)


class RecordingCommandRunnerTests(unittest.TestCase):
    def test_records_without_executing(self) -> None:
        runner = RecordingCommandRunner()
        self.assertFalse(runner.executes)
        result = runner.run(
            ["go", "build", "-o", "out dir/libdemo.so"],
            cwd=Path("/work"),
            env={"GOARCH": "arm64"},
            note="compileGoDebugArm64",
        )
        self.assertEqual(result.returncode, 0)
        recorded = list(runner.iter_commands())
        self.assertEqual(len(recorded), 1)
        self.assertEqual(recorded[0].env, {"GOARCH": "arm64"})
        self.assertEqual(recorded[0].note, "compileGoDebugArm64")

        lines = list(runner.iter_formatted())
        self.assertEqual(
            lines,
            [f"[dry-run] compileGoDebugArm64 (cwd={Path('/work')}) go build -o 'out dir/libdemo.so'"],
        )
        with_env = list(runner.iter_formatted(show_env=True))
        self.assertIn("GOARCH=arm64", with_env[0])

    def test_configured_failure_raises_when_checked(self) -> None:
        runner = RecordingCommandRunner(returncode=1, stderr="nope")
        with self.assertRaises(CommandError):
            runner.run(["go", "version"])
        result = runner.run(["go", "version"], check=False)
        self.assertEqual(result.stderr, "nope")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
