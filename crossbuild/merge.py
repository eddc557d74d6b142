"""Synchronisation of per-architecture artifacts into a jniLibs-style tree."""
from __future__ import annotations

from pathlib import Path
from typing import List
import logging
import shutil
import tempfile

from .errors import MergeError
from .model import MergeJob

log = logging.getLogger(__name__)


class ArtifactMerger:
    """Replaces ``<destination>`` with exactly ``<abi>/<artifact name>`` per entry.

    The new tree is staged next to the destination and swapped in, so the
    destination is either the previous tree or the complete new one.
    """

    def check_inputs(self, job: MergeJob) -> None:
        for entry in job.entries:
            if not entry.artifact.is_file():
                raise MergeError(
                    f"Missing artifact for architecture '{entry.architecture.abi_tag}' "
                    f"of variant '{job.variant}': {entry.artifact}",
                    variant=job.variant.name,
                    abi_tag=entry.architecture.abi_tag,
                )

    def merge(self, job: MergeJob) -> List[Path]:
        self.check_inputs(job)
        destination = job.destination_root
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(
                tempfile.mkdtemp(prefix=f".{destination.name}.staging-", dir=destination.parent)
            )
            staging.chmod(0o755)
        except OSError as exc:
            raise MergeError(f"Cannot prepare merge of '{destination}': {exc}", variant=job.variant.name) from exc

        merged: List[Path] = []
        try:
            for entry in job.entries:
                target_dir = staging / entry.architecture.abi_tag
                target_dir.mkdir(parents=True, exist_ok=True)
                shutil.copy2(entry.artifact, target_dir / entry.artifact.name)
                merged.append(destination / entry.architecture.abi_tag / entry.artifact.name)
            self._swap(staging, destination)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise MergeError(f"Failed to merge into '{destination}': {exc}", variant=job.variant.name) from exc

        log.info("Merged %d artifact(s) for %s into %s", len(merged), job.variant, destination)
        return merged

    @staticmethod
    def _swap(staging: Path, destination: Path) -> None:
        backup: Path | None = None
        if destination.exists() or destination.is_symlink():
            backup = destination.with_name(f".{destination.name}.previous")
            _remove(backup)
            destination.rename(backup)
        try:
            staging.rename(destination)
        except OSError:
            if backup is not None:
                backup.rename(destination)
            raise
        if backup is not None:
            _remove(backup)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


__all__ = ["ArtifactMerger"]
