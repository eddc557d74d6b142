"""Source-root and source-file discovery for compile units."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Sequence

from .model import Variant

SOURCE_DIR_NAMES: tuple[str, ...] = ("go", "golang")
SOURCE_PATTERN = "**/*.go"


class SourceLocator:
    """Resolves the ordered source roots of a variant below ``project_dir``.

    Each Android source set (``main``, every flavor, the build type and the
    full variant) contributes ``src/<set>/go``, or ``src/<set>/golang`` when
    only that one exists. ``explicit_roots`` replaces the convention.
    """

    def __init__(self, project_dir: Path, explicit_roots: Sequence[str] | None = None) -> None:
        self._project_dir = project_dir
        self._explicit_roots = list(explicit_roots or [])

    @staticmethod
    def source_set_names(variant: Variant) -> List[str]:
        names: List[str] = ["main", *variant.flavors]
        if len(variant.flavors) > 1:
            combined = Variant(build_kind="", flavors=variant.flavors).name
            names.append(combined)
        names.append(variant.build_kind)
        if variant.flavors:
            names.append(variant.name)
        unique: List[str] = []
        for name in names:
            if name and name not in unique:
                unique.append(name)
        return unique

    def _select_dir(self, source_set: str) -> Path:
        base = self._project_dir / "src" / source_set
        for dir_name in SOURCE_DIR_NAMES:
            candidate = base / dir_name
            if candidate.is_dir():
                return candidate
        return base / SOURCE_DIR_NAMES[0]

    def roots_for(self, variant: Variant) -> List[Path]:
        if self._explicit_roots:
            return [(self._project_dir / root).resolve() for root in self._explicit_roots]
        return [self._select_dir(name).resolve() for name in self.source_set_names(variant)]

    @staticmethod
    def files_under(roots: Iterable[Path]) -> List[Path]:
        files: List[Path] = []
        for root in roots:
            if not root.is_dir():
                continue
            for path in sorted(root.glob(SOURCE_PATTERN)):
                if path.is_file():
                    files.append(path.resolve())
        return files


__all__ = ["SOURCE_DIR_NAMES", "SourceLocator"]
