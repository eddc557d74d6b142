"""Matching of host task names to compile units.

Host tasks such as ``buildCMakeRelWithDebInfo[arm64-v8a]-2`` are created by
the host build system, not by us, so they are parsed into a structured
:class:`ParsedTaskName` first and every comparison is done on whole tokens:

* the bracketed ABI token is compared for equality with ``abi_tag``
  (``x86`` never matches ``x86_64``);
* the text before the bracket is split into camel-case labels using the
  known flavor and build-kind labels (longest first), so ``Demo`` does not
  match inside ``DemoPlus`` and ``Debug`` does not match inside ``Debuggable``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence
import logging
import re

from .errors import ConfigurationError
from .model import CompileUnit, DependencyEdge, MergeDependency, MergeJob, Variant, capitalize

log = logging.getLogger(__name__)

DEFAULT_ACTION_PREFIXES: tuple[str, ...] = (
    "configureCMake",
    "buildCMake",
    "configureNdkBuild",
    "buildNdkBuild",
    "buildNative",
)

# The host renames build kinds for native tasks; release builds keep symbols.
DEFAULT_BUILD_KIND_LABELS: Mapping[str, str] = {
    "debug": "Debug",
    "release": "RelWithDebInfo",
}

_NUMERIC_SUFFIX = re.compile(r"-(\d+)")


class BuildKindLabels:
    def __init__(self, overrides: Mapping[str, str] | None = None) -> None:
        self._labels: Dict[str, str] = dict(DEFAULT_BUILD_KIND_LABELS)
        for kind, label in (overrides or {}).items():
            self._labels[str(kind).lower()] = str(label)

    def label_for(self, build_kind: str) -> str:
        label = self._labels.get(build_kind.lower())
        if label is None:
            log.debug("No native label configured for build kind '%s'", build_kind)
            return capitalize(build_kind)
        return label


@dataclass(frozen=True, slots=True)
class ParsedTaskName:
    original: str
    action: str
    variant_portion: str
    arch_token: str
    suffix: int | None = None


def parse_task_name(name: str, action_prefixes: Sequence[str] = DEFAULT_ACTION_PREFIXES) -> ParsedTaskName | None:
    """Split ``name`` into action, variant portion, ABI token and numeric suffix.

    Returns ``None`` for names without a bracketed token, with trailing text
    other than ``-<digits>`` after it, or with an unknown action prefix.
    """

    close = name.rfind("]")
    if close < 0:
        return None
    trailing = name[close + 1:]
    suffix: int | None = None
    if trailing:
        match = _NUMERIC_SUFFIX.fullmatch(trailing)
        if match is None:
            return None
        suffix = int(match.group(1))

    open_index = name.rfind("[", 0, close)
    if open_index < 0:
        return None
    token = name[open_index + 1:close]
    if not token or "]" in token:
        return None

    head = name[:open_index]
    action = ""
    for prefix in sorted(action_prefixes, key=len, reverse=True):
        if head.startswith(prefix):
            action = prefix
            break
    if not action:
        return None

    return ParsedTaskName(
        original=name,
        action=action,
        variant_portion=head[len(action):],
        arch_token=token,
        suffix=suffix,
    )


def split_labels(portion: str, vocabulary: Iterable[str]) -> List[str]:
    """Segment ``portion`` into labels, preferring the longest known label."""

    known = sorted({label for label in vocabulary if label}, key=len, reverse=True)
    labels: List[str] = []
    index = 0
    while index < len(portion):
        matched = None
        for label in known:
            end = index + len(label)
            if portion.startswith(label, index) and (end == len(portion) or not portion[end].islower()):
                matched = label
                break
        if matched is None:
            end = index + 1
            while end < len(portion) and not portion[end].isupper():
                end += 1
            matched = portion[index:end]
        labels.append(matched)
        index += len(matched)
    return labels


class DependencyWirer:
    """Creates edges from host task names to the complete set of compile units."""

    def __init__(
        self,
        units: Sequence[CompileUnit],
        *,
        build_kind_labels: BuildKindLabels | None = None,
        action_prefixes: Sequence[str] | None = None,
        known_variants: Iterable[Variant] | None = None,
    ) -> None:
        """``known_variants`` lists every configured variant, including those
        without units here, so their labels still segment task names."""

        self._units = list(units)
        self._labels = build_kind_labels or BuildKindLabels()
        self._action_prefixes = tuple(action_prefixes or DEFAULT_ACTION_PREFIXES)
        self._required: Dict[Variant, List[str]] = {}
        for unit in self._units:
            if unit.variant not in self._required:
                self._required[unit.variant] = self.required_labels(unit.variant)
        self._vocabulary = {label for labels in self._required.values() for label in labels}
        for variant in known_variants or ():
            self._vocabulary.update(self.required_labels(variant))

    def required_labels(self, variant: Variant) -> List[str]:
        labels = [capitalize(flavor) for flavor in variant.flavors]
        labels.append(self._labels.label_for(variant.build_kind))
        return labels

    def parse(self, task_name: str) -> ParsedTaskName | None:
        return parse_task_name(task_name, self._action_prefixes)

    def _variant_matches(self, variant: Variant, present: Sequence[str]) -> bool:
        # Every segment must be one of the variant's labels; leftovers belong to another variant.
        return sorted(present) == sorted(self._required[variant])

    def match(self, task_name: str) -> CompileUnit | None:
        parsed = self.parse(task_name)
        if parsed is None:
            return None
        present = split_labels(parsed.variant_portion, self._vocabulary)
        candidates = [
            unit
            for unit in self._units
            if unit.architecture.abi_tag == parsed.arch_token
            and self._variant_matches(unit.variant, present)
        ]
        if len(candidates) > 1:
            names = ", ".join(unit.task_identifier for unit in candidates)
            raise ConfigurationError(f"Task '{task_name}' matches more than one compile unit: {names}")
        return candidates[0] if candidates else None

    def wire(self, task_names: Iterable[str]) -> List[DependencyEdge]:
        edges: List[DependencyEdge] = []
        seen: set[tuple[str, str]] = set()
        for task_name in task_names:
            unit = self.match(task_name)
            if unit is None:
                continue
            key = (task_name, unit.abi_tag)
            if key in seen:
                continue
            seen.add(key)
            log.debug("%s depends on %s", task_name, unit.task_identifier)
            edges.append(DependencyEdge.create(task_name, unit))
        return edges


def merge_task_name(variant: Variant) -> str:
    return f"merge{variant.task_name}JniLibFolders"


def wire_merge_tasks(task_names: Iterable[str], jobs: Sequence[MergeJob]) -> List[MergeDependency]:
    """Attach each variant's merge job to the host's JNI-folder merge task."""

    by_name = {merge_task_name(job.variant): job for job in jobs}
    dependencies: List[MergeDependency] = []
    seen: set[str] = set()
    for task_name in task_names:
        job = by_name.get(task_name)
        if job is None or task_name in seen:
            continue
        seen.add(task_name)
        dependencies.append(MergeDependency(task_name=task_name, job=job))
    return dependencies


__all__ = [
    "BuildKindLabels",
    "DEFAULT_ACTION_PREFIXES",
    "DEFAULT_BUILD_KIND_LABELS",
    "DependencyWirer",
    "ParsedTaskName",
    "merge_task_name",
    "parse_task_name",
    "split_labels",
    "wire_merge_tasks",
]
