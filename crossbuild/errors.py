"""Error taxonomy for matrix planning, compilation and merging."""
from __future__ import annotations

from core.command_runner import CommandError, CommandResult


class CrossbuildError(Exception):
    """Base class for all errors raised by the compilation matrix."""


class ConfigurationError(CrossbuildError):
    """Invalid or unresolvable configuration, reported before any compiler runs."""


class MergeError(CrossbuildError):
    """A variant's per-architecture artifacts could not be synchronized."""

    def __init__(self, message: str, *, variant: str | None = None, abi_tag: str | None = None) -> None:
        super().__init__(message)
        self.variant = variant
        self.abi_tag = abi_tag


class ProcessFailure(CommandError, CrossbuildError):
    """The external compiler exited with a non-zero status for one unit."""

    def __init__(self, result: CommandResult, *, task_identifier: str) -> None:
        super().__init__(result, label=task_identifier)
        self.task_identifier = task_identifier


__all__ = [
    "ConfigurationError",
    "CrossbuildError",
    "MergeError",
    "ProcessFailure",
]
