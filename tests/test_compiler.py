from __future__ import annotations

from pathlib import Path
import os
import sys
import tempfile
import textwrap
import unittest

from core.command_runner import RecordingCommandRunner, SubprocessCommandRunner
from crossbuild.architectures import BUILTIN_ARCHITECTURES
from crossbuild.compiler import CompileInvoker, CompilerSettings, build_arguments
from crossbuild.errors import ConfigurationError, ProcessFailure
from crossbuild.matrix import MatrixExpander, MatrixSettings, expand_variants
from crossbuild.sources import SourceLocator


FAKE_GO = textwrap.dedent(
    """\
    import os
    import sys

    args = sys.argv[1:]
    output = args[args.index("-o") + 1]
    with open(output, "w") as handle:
        handle.write(os.environ["GOARCH"] + " " + os.environ["CC"] + "\\n")
    if "-buildmode=c-shared" in args:
        with open(os.path.splitext(output)[0] + ".h", "w") as handle:
            handle.write("/* generated */\\n")
    code = int(os.environ.get("FAKE_GO_EXIT", "0"))
    if code:
        sys.stderr.write("cannot compile\\n")
    sys.exit(code)
    """
)


def write_fake_go(directory: Path) -> Path:
    script = directory / "go"
    script.write_text(f"#!{sys.executable}\n{FAKE_GO}")
    script.chmod(0o755)
    return script


class BuildArgumentsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project_dir = Path(self.temp_dir.name).resolve()
        expander = MatrixExpander(
            MatrixSettings(
                build_dir=self.project_dir / "build",
                output_file_name="libdemo.so",
                compiler_args=["-v"],
            ),
            SourceLocator(self.project_dir),
        )
        variants = list(expand_variants(["debug", "release"]))
        self.debug, self.release = expander.expand(variants, [BUILTIN_ARCHITECTURES["arm64-v8a"]])

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_package_build_argument_order(self) -> None:
        settings = CompilerSettings(package_name="./cmd/lib", build_tags=["android", "jni"])
        self.assertEqual(
            build_arguments(settings, self.release, []),
            [
                "build",
                "-buildmode=c-shared",
                "-tags",
                "android,jni",
                "-o",
                str(self.release.output_file),
                "-v",
                "-trimpath",
                "-ldflags",
                "-s -w",
                "./cmd/lib",
            ],
        )

    def test_source_files_are_absolute_when_no_package(self) -> None:
        sources = [self.project_dir / "src" / "main" / "go" / "lib.go"]
        args = build_arguments(CompilerSettings(), self.debug, sources)
        self.assertNotIn("-tags", args)
        self.assertEqual(args[-1], str(sources[0]))
        self.assertEqual(args[-2], "-v")


class CompileInvokerRecordingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project_dir = Path(self.temp_dir.name).resolve()
        self.source_dir = self.project_dir / "src" / "main" / "go"
        self.source_dir.mkdir(parents=True)
        (self.source_dir / "lib.go").write_text("package main\n")
        self.sources = SourceLocator(self.project_dir)
        expander = MatrixExpander(
            MatrixSettings(build_dir=self.project_dir / "build", output_file_name="libdemo.so"),
            self.sources,
        )
        self.unit = expander.expand(list(expand_variants(["debug"])), [BUILTIN_ARCHITECTURES["x86_64"]])[0]
        self.runner = RecordingCommandRunner()
        self.invoker = CompileInvoker(
            settings=CompilerSettings(executable="go"),
            runner=self.runner,
            sources=self.sources,
            project_dir=self.project_dir,
        )

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_unbound_unit_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.invoker.invoke(self.unit)
        self.assertEqual(self.runner.commands, [])

    def test_records_command_environment_and_working_directory(self) -> None:
        self.unit.toolchain_executable = Path("/ndk/bin/x86_64-linux-android21-clang")
        self.unit.environment["CC"] = str(self.unit.toolchain_executable)

        result = self.invoker.invoke(self.unit)

        self.assertTrue(result.success)
        self.assertEqual(result.outputs, [])
        recorded = self.runner.commands[0]
        self.assertEqual(recorded.note, "compileGoDebugX64")
        self.assertEqual(recorded.cwd, str(self.source_dir))
        self.assertEqual(recorded.command[0], "go")
        self.assertEqual(recorded.command[-1], str(self.source_dir / "lib.go"))
        self.assertEqual(recorded.env["GOARCH"], "amd64")
        self.assertEqual(recorded.env["CC"], "/ndk/bin/x86_64-linux-android21-clang")
        self.assertFalse(self.unit.output_file.parent.exists())

    def test_configured_working_directory_wins(self) -> None:
        invoker = CompileInvoker(
            settings=CompilerSettings(working_dir=self.project_dir / "native"),
            runner=self.runner,
            sources=self.sources,
            project_dir=self.project_dir,
        )
        self.assertEqual(invoker.working_dir(self.unit), self.project_dir / "native")


@unittest.skipUnless(os.name == "posix", "the fake compiler relies on a shebang")
class CompileInvokerSubprocessTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project_dir = Path(self.temp_dir.name).resolve()
        source_dir = self.project_dir / "src" / "main" / "go"
        source_dir.mkdir(parents=True)
        (source_dir / "lib.go").write_text("package main\n")
        self.go = write_fake_go(self.project_dir)
        self.sources = SourceLocator(self.project_dir)
        expander = MatrixExpander(
            MatrixSettings(build_dir=self.project_dir / "build", output_file_name="libdemo.so"),
            self.sources,
        )
        self.unit = expander.expand(list(expand_variants(["debug"])), [BUILTIN_ARCHITECTURES["armeabi-v7a"]])[0]
        self.unit.toolchain_executable = Path("/ndk/armv7a-linux-androideabi21-clang")
        self.unit.environment["CC"] = str(self.unit.toolchain_executable)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _invoker(self, executable: str) -> CompileInvoker:
        return CompileInvoker(
            settings=CompilerSettings(executable=executable),
            runner=SubprocessCommandRunner(),
            sources=self.sources,
            project_dir=self.project_dir,
        )

    def test_successful_compile_produces_artifact_and_header(self) -> None:
        result = self._invoker(str(self.go)).invoke(self.unit)
        self.assertEqual(result.outputs, [self.unit.output_file, self.unit.output_header])
        self.assertEqual(
            self.unit.output_file.read_text().strip(),
            "arm /ndk/armv7a-linux-androideabi21-clang",
        )

    def test_failed_compile_discards_partial_outputs(self) -> None:
        self.unit.environment["FAKE_GO_EXIT"] = "2"
        with self.assertRaises(ProcessFailure) as ctx:
            self._invoker(str(self.go)).invoke(self.unit)
        self.assertEqual(ctx.exception.result.returncode, 2)
        self.assertEqual(ctx.exception.task_identifier, "compileGoDebugArm32")
        self.assertIn("cannot compile", ctx.exception.stderr)
        self.assertFalse(self.unit.output_file.exists())
        self.assertFalse(self.unit.output_header.exists())

    def test_missing_compiler_executable_is_a_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            self._invoker(str(self.project_dir / "no-such-go")).invoke(self.unit)

    def test_non_executable_compiler_is_a_configuration_error(self) -> None:
        self.go.chmod(0o644)
        with self.assertRaises(ConfigurationError) as ctx:
            self._invoker(str(self.go)).invoke(self.unit)
        self.assertIn("compileGoDebugArm32", str(ctx.exception))
        self.assertFalse(self.unit.output_file.exists())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
