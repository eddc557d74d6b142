"""Host platform facts used for toolchain resolution."""
from __future__ import annotations

from dataclasses import dataclass
import platform


_OS_ALIASES = {
    "linux": "linux",
    "darwin": "darwin",
    "macos": "darwin",
    "mac": "darwin",
    "windows": "windows",
    "win32": "windows",
    "cygwin": "windows",
}

_PROCESSOR_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


@dataclass(frozen=True, slots=True)
class HostPlatform:
    os_name: str
    processor: str

    @classmethod
    def of(cls, os_name: str, processor: str) -> "HostPlatform":
        raw_os = os_name.strip().lower()
        normalized_os = _OS_ALIASES.get(raw_os)
        if normalized_os is None and raw_os.startswith("win"):
            normalized_os = "windows"
        raw_processor = processor.strip().lower()
        return cls(
            os_name=normalized_os or raw_os,
            processor=_PROCESSOR_ALIASES.get(raw_processor, raw_processor),
        )

    @classmethod
    def detect(cls) -> "HostPlatform":
        return cls.of(platform.system(), platform.machine())

    @property
    def is_windows(self) -> bool:
        return self.os_name == "windows"

    @property
    def executable_suffix(self) -> str:
        return ".exe" if self.is_windows else ""

    def __str__(self) -> str:
        return f"{self.os_name}-{self.processor}"


__all__ = ["HostPlatform"]
