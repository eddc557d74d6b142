from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from crossbuild.architectures import BUILTIN_ARCHITECTURES
from crossbuild.errors import ConfigurationError
from crossbuild.matrix import (
    MatrixExpander,
    MatrixSettings,
    check_architectures,
    expand_variants,
    group_by_variant,
    task_identifier,
)
from crossbuild.model import Architecture, BuildMode, Variant
from crossbuild.sources import SourceLocator


ALL_ARCHITECTURES = [BUILTIN_ARCHITECTURES[tag] for tag in ("arm64-v8a", "armeabi-v7a", "x86", "x86_64")]


class VariantExpansionTests(unittest.TestCase):
    def test_flavors_are_combined_with_every_build_kind(self) -> None:
        variants = list(expand_variants(["debug", "release"], [["demo", "full"]], min_api_level=24))
        self.assertEqual([v.name for v in variants], ["demoDebug", "demoRelease", "fullDebug", "fullRelease"])
        self.assertEqual([v.is_optimized for v in variants], [False, True, False, True])
        self.assertTrue(all(v.min_api_level == 24 for v in variants))

    def test_without_flavors_variants_are_build_kinds(self) -> None:
        variants = list(expand_variants(["debug", "release"]))
        self.assertEqual([v.name for v in variants], ["debug", "release"])
        self.assertEqual(variants[0].task_name, "Debug")

    def test_multiple_dimensions(self) -> None:
        variants = list(expand_variants(["debug"], [["free", "paid"], ["api24"]]))
        self.assertEqual([v.name for v in variants], ["freeApi24Debug", "paidApi24Debug"])

    def test_optimized_build_kinds_are_configurable(self) -> None:
        variants = list(expand_variants(["debug", "staging"], optimized_build_kinds=["staging"]))
        self.assertEqual([v.is_optimized for v in variants], [False, True])


class TaskIdentifierTests(unittest.TestCase):
    def test_identifier_uses_short_form(self) -> None:
        variant = Variant(build_kind="release", flavors=("demo",))
        self.assertEqual(
            task_identifier(variant, BUILTIN_ARCHITECTURES["arm64-v8a"]),
            "compileGoDemoReleaseArm64",
        )
        self.assertEqual(
            task_identifier(Variant(build_kind="debug"), BUILTIN_ARCHITECTURES["x86_64"]),
            "compileGoDebugX64",
        )

    def test_duplicate_tags_are_rejected(self) -> None:
        arm64 = BUILTIN_ARCHITECTURES["arm64-v8a"]
        with self.assertRaises(ConfigurationError):
            check_architectures([arm64, arm64])

    def test_colliding_short_forms_are_rejected(self) -> None:
        first = Architecture("one", "arm64", "aarch64-linux-android", "foo")
        second = Architecture("two", "amd64", "x86_64-linux-android", "Foo")
        with self.assertRaises(ConfigurationError) as ctx:
            check_architectures([first, second])
        self.assertIn("Foo", str(ctx.exception))

    def test_bracket_in_abi_tag_is_invalid(self) -> None:
        with self.assertRaises(ValueError):
            Architecture("x86]", "386", "i686-linux-android", "x86")


class MatrixExpanderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project_dir = Path(self.temp_dir.name)
        self.settings = MatrixSettings(
            build_dir=self.project_dir / "build",
            output_file_name="libgojni.so",
            compiler_args=["-v"],
            environment={"GOFLAGS": "-mod=vendor"},
        )
        self.variants = list(expand_variants(["debug", "release"], [["demo", "full"]]))
        self.expander = MatrixExpander(self.settings, SourceLocator(self.project_dir))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_one_unit_per_variant_and_architecture(self) -> None:
        units = self.expander.expand(self.variants, ALL_ARCHITECTURES)
        self.assertEqual(len(units), 16)
        self.assertEqual(len({unit.task_identifier for unit in units}), 16)
        self.assertEqual(len({unit.output_file for unit in units}), 16)

        first = units[0]
        self.assertEqual(first.task_identifier, "compileGoDemoDebugArm64")
        self.assertEqual(
            first.output_file,
            self.project_dir / "build" / "intermediates" / "go" / "demoDebug" / "arm64-v8a" / "libgojni.so",
        )
        self.assertEqual(first.output_header, first.output_file.with_name("libgojni.h"))

    def test_environment_per_architecture(self) -> None:
        units = self.expander.expand(self.variants[:1], ALL_ARCHITECTURES)
        by_abi = {unit.abi_tag: unit.environment for unit in units}
        self.assertEqual(by_abi["armeabi-v7a"]["GOARCH"], "arm")
        self.assertEqual(by_abi["armeabi-v7a"]["GOARM"], "7")
        self.assertEqual(by_abi["arm64-v8a"]["GOARM"], "")
        self.assertEqual(by_abi["x86"]["GOARCH"], "386")
        for environment in by_abi.values():
            self.assertEqual(environment["CGO_ENABLED"], "1")
            self.assertEqual(environment["GOOS"], "android")
            self.assertEqual(environment["GOFLAGS"], "-mod=vendor")
            self.assertNotIn("CC", environment)

    def test_release_units_strip_and_trim(self) -> None:
        units = self.expander.expand(self.variants[:2], ALL_ARCHITECTURES[:1])
        debug, release = units
        self.assertEqual(debug.extra_args, ["-v"])
        self.assertEqual(release.extra_args, ["-v", "-trimpath", "-ldflags", "-s -w"])

    def test_exe_mode_has_no_header(self) -> None:
        self.settings.build_mode = BuildMode.EXE
        units = self.expander.expand(self.variants[:1], ALL_ARCHITECTURES[:1])
        self.assertIsNone(units[0].output_header)

    def test_merge_jobs_per_variant(self) -> None:
        units = self.expander.expand(self.variants, ALL_ARCHITECTURES[:2])
        jobs = self.expander.merge_jobs(units)
        self.assertEqual([job.variant.name for job in jobs], [v.name for v in self.variants])
        first = jobs[0]
        self.assertEqual(first.destination_root, self.project_dir / "build" / "generated" / "go" / "jniLibs" / "demoDebug")
        self.assertEqual([entry.architecture.abi_tag for entry in first.entries], ["arm64-v8a", "armeabi-v7a"])
        self.assertEqual(first.task_identifier, "mergeGoJniLibsDemoDebug")

        grouped = group_by_variant(units)
        self.assertEqual(len(grouped), 4)
        self.assertTrue(all(len(group) == 2 for group in grouped.values()))


class SourceLocatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project_dir = Path(self.temp_dir.name).resolve()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_source_set_names(self) -> None:
        self.assertEqual(SourceLocator.source_set_names(Variant("debug")), ["main", "debug"])
        self.assertEqual(
            SourceLocator.source_set_names(Variant("release", ("demo",))),
            ["main", "demo", "release", "demoRelease"],
        )
        self.assertEqual(
            SourceLocator.source_set_names(Variant("release", ("demo", "paid"))),
            ["main", "demo", "paid", "demoPaid", "release", "demoPaidRelease"],
        )

    def test_roots_prefer_go_then_golang(self) -> None:
        (self.project_dir / "src" / "main" / "golang").mkdir(parents=True)
        (self.project_dir / "src" / "demo" / "go").mkdir(parents=True)
        (self.project_dir / "src" / "demo" / "golang").mkdir(parents=True)
        roots = SourceLocator(self.project_dir).roots_for(Variant("debug", ("demo",)))
        self.assertEqual(
            roots,
            [
                self.project_dir / "src" / "main" / "golang",
                self.project_dir / "src" / "demo" / "go",
                self.project_dir / "src" / "debug" / "go",
                self.project_dir / "src" / "demoDebug" / "go",
            ],
        )

    def test_explicit_roots_replace_convention(self) -> None:
        roots = SourceLocator(self.project_dir, ["native/go"]).roots_for(Variant("debug"))
        self.assertEqual(roots, [self.project_dir / "native" / "go"])

    def test_files_under_is_sorted_and_recursive(self) -> None:
        root = self.project_dir / "src" / "main" / "go"
        (root / "pkg").mkdir(parents=True)
        (root / "z.go").write_text("package main\n")
        (root / "a.go").write_text("package main\n")
        (root / "pkg" / "b.go").write_text("package pkg\n")
        (root / "README.md").write_text("")
        files = SourceLocator.files_under([root, self.project_dir / "missing"])
        self.assertEqual(files, [root / "a.go", root / "pkg" / "b.go", root / "z.go"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
