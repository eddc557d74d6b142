"""Cross-toolchain root discovery and per-architecture compiler resolution."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Sequence
import logging
import os
import re
import shutil

from core.config_loader import load_properties_file

from .errors import ConfigurationError
from .host import HostPlatform
from .model import Architecture, CompileUnit

log = logging.getLogger(__name__)

NDK_ENVIRONMENT_VARIABLES: tuple[str, ...] = (
    "ANDROID_NDK",
    "ANDROID_NDK_HOME",
    "ANDROID_NDK_LATEST_HOME",
)
LOCAL_PROPERTIES = "local.properties"

# Linux prebuilts are published per host processor; macOS and Windows ship
# a single directory regardless of the host processor.
_HOST_TAGS: Dict[str, Mapping[str, str] | str] = {
    "linux": {"x86_64": "linux-x86_64", "aarch64": "linux-aarch64"},
    "darwin": "darwin-x86_64",
    "windows": "windows-x86_64",
}


def host_tag(host: HostPlatform) -> str:
    """Return the ``toolchains/llvm/prebuilt`` directory name for ``host``."""

    entry = _HOST_TAGS.get(host.os_name)
    if entry is None:
        supported = ", ".join(sorted(_HOST_TAGS))
        raise ConfigurationError(
            f"Unsupported host operating system '{host.os_name}' (supported: {supported})"
        )
    if isinstance(entry, str):
        return entry
    tag = entry.get(host.processor)
    if tag is None:
        supported = ", ".join(sorted(entry))
        raise ConfigurationError(
            f"Unsupported host processor '{host.processor}' for {host.os_name} (supported: {supported})"
        )
    return tag


def _version_key(path: Path) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", path.name))


@dataclass(frozen=True, slots=True)
class LocatedRoot:
    path: Path
    origin: str


class ToolchainRootLocator:
    """Finds the NDK from explicit config, environment, then ``local.properties``."""

    def __init__(self, *, project_dir: Path, environ: Mapping[str, str] | None = None) -> None:
        self._project_dir = project_dir
        self._environ = dict(environ) if environ is not None else dict(os.environ)

    def locate(self, explicit: str | Path | None = None) -> LocatedRoot:
        consulted: List[str] = []

        if explicit:
            return self._checked(Path(explicit).expanduser(), "explicit configuration")
        consulted.append("explicit configuration (project.ndk_path / --ndk-dir)")

        for name in NDK_ENVIRONMENT_VARIABLES:
            value = self._environ.get(name, "").strip()
            if value:
                return self._checked(Path(value).expanduser(), f"environment variable {name}")
        consulted.append("environment variables " + ", ".join(NDK_ENVIRONMENT_VARIABLES))

        properties_path = self._project_dir / LOCAL_PROPERTIES
        properties = load_properties_file(properties_path)
        ndk_dir = properties.get("ndk.dir", "").strip()
        if ndk_dir:
            return self._checked(Path(ndk_dir).expanduser(), f"{properties_path} (ndk.dir)")
        sdk_dir = properties.get("sdk.dir", "").strip()
        if sdk_dir:
            candidates = sorted(
                (path for path in (Path(sdk_dir) / "ndk").glob("*") if path.is_dir()),
                key=_version_key,
            )
            if candidates:
                return self._checked(candidates[-1], f"{properties_path} (sdk.dir)")
        consulted.append(f"{properties_path} (ndk.dir / sdk.dir)")

        raise ConfigurationError(
            "Unable to locate the NDK toolchain root. Consulted: " + "; ".join(consulted)
        )

    @staticmethod
    def _checked(path: Path, origin: str) -> LocatedRoot:
        if not path.is_dir():
            raise ConfigurationError(f"NDK toolchain root '{path}' from {origin} is not a directory")
        log.debug("Using NDK toolchain root %s (from %s)", path, origin)
        return LocatedRoot(path=path.resolve(), origin=origin)


class ToolchainResolver:
    """Computes per-architecture compiler paths below a toolchain root.

    :meth:`compiler_path` performs no I/O; :meth:`verify` is the single
    existence check and is meant to run once while planning.
    """

    def __init__(self, root: Path, host: HostPlatform) -> None:
        self._root = root
        self._host = host
        self._host_tag = host_tag(host)

    def compiler_path(self, architecture: Architecture, api_level: int) -> Path:
        suffix = ".cmd" if self._host.is_windows else ""
        name = f"{architecture.triple_prefix}{api_level}-clang{suffix}"
        return self._root / "toolchains" / "llvm" / "prebuilt" / self._host_tag / "bin" / name

    def verify(self, path: Path) -> Path:
        if not path.is_file():
            raise ConfigurationError(f"Cross compiler '{path}' does not exist")
        if not self._host.is_windows and not os.access(path, os.X_OK):
            raise ConfigurationError(f"Cross compiler '{path}' is not executable")
        return path

    def resolve(self, architecture: Architecture, api_level: int, *, verify: bool = True) -> Path:
        path = self.compiler_path(architecture, api_level)
        return self.verify(path) if verify else path

    def bind(self, unit: CompileUnit, *, verify: bool = True) -> CompileUnit:
        """Fill the unit's compiler path and ``CC`` unless the project overrides it."""

        path = self.resolve(unit.architecture, unit.variant.min_api_level, verify=verify)
        unit.toolchain_executable = path
        unit.environment.setdefault("CC", str(path))
        log.debug("%s uses %s", unit.task_identifier, path)
        return unit


def _executable_candidates(host: HostPlatform, environ: Mapping[str, str]) -> Sequence[Path]:
    name = f"go{host.executable_suffix}"
    candidates: List[Path] = []
    goroot = environ.get("GOROOT", "").strip()
    if goroot:
        candidates.append(Path(goroot) / "bin" / name)
    if host.os_name == "darwin":
        candidates.append(Path("/usr/local/go/bin") / name)
        candidates.append(Path("/opt/homebrew/bin") / name)
    elif host.os_name == "windows":
        candidates.append(Path("C:/Program Files/Go/bin") / name)
    else:
        candidates.append(Path("/usr/local/go/bin") / name)
    return candidates


def resolve_go_executable(
    host: HostPlatform,
    *,
    explicit: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Return the ``go`` binary to run, falling back to a ``PATH`` lookup."""

    if explicit:
        return explicit
    env = environ if environ is not None else os.environ
    for candidate in _executable_candidates(host, env):
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate.resolve())
    return "go"


def verify_go_executable(executable: str, *, environ: Mapping[str, str] | None = None) -> str:
    """Fail while planning when ``executable`` cannot be run, instead of once per unit."""

    env = environ if environ is not None else os.environ
    found = shutil.which(executable, path=env.get("PATH") or None)
    if found is None:
        raise ConfigurationError(f"Go executable '{executable}' was not found or is not executable")
    return executable


__all__ = [
    "LOCAL_PROPERTIES",
    "LocatedRoot",
    "NDK_ENVIRONMENT_VARIABLES",
    "ToolchainResolver",
    "ToolchainRootLocator",
    "host_tag",
    "resolve_go_executable",
    "verify_go_executable",
]
