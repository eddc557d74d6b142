"""Configuration validation helpers."""
from __future__ import annotations

from typing import List

from .config_loader import ConfigurationStore
from .errors import ConfigurationError
from .matrix import check_architectures, expand_variants, task_identifier


def validate_store_structure(store: ConfigurationStore) -> list[str]:
    """Validate configuration shared by every project."""

    errors: list[str] = []
    try:
        check_architectures(store.architectures.select(None))
    except ConfigurationError as exc:
        errors.append(str(exc))
    return errors


def validate_project(store: ConfigurationStore, name: str) -> None:
    """Validate a single project without touching the toolchain or sources."""

    project = store.get_project(name)

    errors: List[str] = []
    errors.extend(project.validate_structure())

    architectures = []
    try:
        architectures = store.architectures.select(project.architectures)
    except KeyError as exc:
        errors.append(str(exc.args[0]) if exc.args else str(exc))
    try:
        check_architectures(architectures)
    except ConfigurationError as exc:
        errors.append(str(exc))

    if not errors:
        seen: dict[str, str] = {}
        variants = expand_variants(
            project.build_types,
            project.flavor_dimensions,
            min_api_level=project.min_api_level,
            optimized_build_kinds=project.optimized_build_types,
        )
        for variant in variants:
            for architecture in architectures:
                identifier = task_identifier(variant, architecture)
                origin = f"{variant}/{architecture.abi_tag}"
                if identifier in seen:
                    errors.append(f"Task identifier '{identifier}' is produced by {seen[identifier]} and {origin}")
                seen.setdefault(identifier, origin)

    if errors:
        raise ConfigurationError("; ".join(errors))


__all__ = ["validate_project", "validate_store_structure"]
