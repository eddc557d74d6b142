"""Shared core utilities for build orchestration."""

from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    RecordedCommand,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import (
    ConfigLoader,
    FILE_LOADERS,
    collect_config_files,
    load_config_file,
    load_properties_file,
    merge_mappings,
    normalize_string_list,
    parse_properties,
    resolve_config_paths,
)

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "ConfigLoader",
    "FILE_LOADERS",
    "collect_config_files",
    "load_config_file",
    "load_properties_file",
    "merge_mappings",
    "normalize_string_list",
    "parse_properties",
    "resolve_config_paths",
]
