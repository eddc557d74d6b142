"""Architecture definitions and registry utilities."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from .model import Architecture


_ALLOWED_KEYS = {"compiler_arch", "sub_arch_variant", "triple_prefix", "short_name"}


def architecture_from_mapping(abi_tag: str, data: Mapping[str, Any]) -> Architecture:
    if not isinstance(data, Mapping):
        raise TypeError(f"Architecture '{abi_tag}' definition must be a mapping")
    unknown = {str(key) for key in data.keys() if str(key) not in _ALLOWED_KEYS}
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ValueError(f"Architecture '{abi_tag}' contains unknown keys: {joined}")

    missing = [key for key in ("compiler_arch", "triple_prefix") if not data.get(key)]
    if missing:
        joined = ", ".join(missing)
        raise ValueError(f"Architecture '{abi_tag}' is missing required keys: {joined}")

    sub_arch = data.get("sub_arch_variant")
    short_name = data.get("short_name") or abi_tag.replace("-", "").replace("_", "")
    return Architecture(
        abi_tag=abi_tag,
        compiler_arch=str(data["compiler_arch"]),
        triple_prefix=str(data["triple_prefix"]),
        short_name=str(short_name),
        sub_arch_variant=str(sub_arch) if sub_arch not in (None, "") else None,
    )


def _merge(existing: Architecture, data: Mapping[str, Any]) -> Architecture:
    merged: Dict[str, Any] = {
        "compiler_arch": existing.compiler_arch,
        "triple_prefix": existing.triple_prefix,
        "short_name": existing.short_name,
        "sub_arch_variant": existing.sub_arch_variant,
    }
    merged.update(data)
    return architecture_from_mapping(existing.abi_tag, merged)


def _build_builtin_architectures() -> Dict[str, Architecture]:
    raw: Dict[str, Mapping[str, Any]] = {
        "arm64-v8a": {
            "compiler_arch": "arm64",
            "triple_prefix": "aarch64-linux-android",
            "short_name": "arm64",
        },
        "armeabi-v7a": {
            "compiler_arch": "arm",
            "sub_arch_variant": "7",
            "triple_prefix": "armv7a-linux-androideabi",
            "short_name": "arm32",
        },
        "x86": {
            "compiler_arch": "386",
            "triple_prefix": "i686-linux-android",
            "short_name": "x86",
        },
        "x86_64": {
            "compiler_arch": "amd64",
            "triple_prefix": "x86_64-linux-android",
            "short_name": "x64",
        },
    }
    return {abi: architecture_from_mapping(abi, data) for abi, data in raw.items()}


class ArchitectureRegistry:
    def __init__(self, architectures: Mapping[str, Architecture] | None = None) -> None:
        self._architectures: Dict[str, Architecture] = dict(architectures or {})

    @classmethod
    def with_builtins(cls) -> "ArchitectureRegistry":
        return cls(_build_builtin_architectures())

    def merge_from_mapping(self, mapping: Mapping[str, Any]) -> None:
        if not mapping:
            return
        section = mapping.get("architectures")
        candidates = section if isinstance(section, Mapping) else mapping
        for raw_tag, raw_value in candidates.items():
            abi_tag = str(raw_tag).strip()
            if not abi_tag or not isinstance(raw_value, Mapping):
                continue
            existing = self._architectures.get(abi_tag)
            if existing is not None:
                self._architectures[abi_tag] = _merge(existing, raw_value)
            else:
                self._architectures[abi_tag] = architecture_from_mapping(abi_tag, raw_value)

    def get(self, abi_tag: str) -> Architecture:
        try:
            return self._architectures[abi_tag]
        except KeyError:
            available = ", ".join(sorted(self._architectures)) or "<none>"
            raise KeyError(f"Unknown architecture '{abi_tag}'. Available: {available}") from None

    def select(self, abi_tags: Iterable[str] | None) -> List[Architecture]:
        """Return the requested architectures in order, or every registered one."""

        if abi_tags is None:
            return list(self._architectures.values())
        selected: List[Architecture] = []
        for tag in abi_tags:
            architecture = self.get(tag)
            if architecture not in selected:
                selected.append(architecture)
        return selected

    def available(self) -> Iterable[str]:
        return self._architectures.keys()


BUILTIN_ARCHITECTURES = _build_builtin_architectures()

__all__ = [
    "ArchitectureRegistry",
    "BUILTIN_ARCHITECTURES",
    "architecture_from_mapping",
]
