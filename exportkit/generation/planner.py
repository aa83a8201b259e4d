"""Aggregation of per-file extraction results into one module plan.

The plan is the single source both the runtime module and its declarations
are rendered from. It owns every naming decision: which duplicate wins,
which names are reserved, and what the group buckets are called.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..config import ExportStrategy, IncludeKinds
from ..logging import get_logger
from ..models import Diagnostic, ExportedItem, ExportKind, ExtractionResult

logger = get_logger("planner")

MANIFEST_NAME = "manifest"
LOOKUP_NAME = "getExport"
RESERVED_NAMES = frozenset({MANIFEST_NAME, LOOKUP_NAME})

_JS_RESERVED_WORDS = frozenset(
    {
        "break", "case", "catch", "class", "const", "continue", "debugger", "default",
        "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
        "function", "if", "import", "in", "instanceof", "new", "null", "return", "super",
        "switch", "this", "throw", "true", "try", "typeof", "var", "void", "while", "with",
        "yield", "let", "static", "await", "implements", "interface", "package", "private",
        "protected", "public",
    }
)


@dataclass
class FileExports:
    path: str
    display_path: str
    items: List[ExportedItem] = field(default_factory=list)


@dataclass
class Bucket:
    name: str
    members: List[str] = field(default_factory=list)


@dataclass
class ModulePlan:
    strategy: ExportStrategy
    env_vars: List[str] = field(default_factory=list)
    env_visibility: Dict[str, str] = field(default_factory=dict)
    env_sources: Dict[str, str] = field(default_factory=dict)
    files: List[FileExports] = field(default_factory=list)
    buckets: List[Bucket] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def items(self) -> List[ExportedItem]:
        return [item for exports in self.files for item in exports.items]

    @property
    def export_names(self) -> List[str]:
        return [item.name for item in self.items]

    @property
    def group_of(self) -> Dict[str, str]:
        return {member: bucket.name for bucket in self.buckets for member in bucket.members}

    def display_path(self, path: str) -> str:
        for exports in self.files:
            if exports.path == path:
                return exports.display_path
        return path

    def bound_names(self) -> List[str]:
        """Every top-level name the rendered module exports, in emission order."""
        names = list(self.env_vars) + self.export_names
        names.extend(bucket.name for bucket in self.buckets)
        names.extend([MANIFEST_NAME, LOOKUP_NAME])
        return names


def plan_module(
    results: Sequence[Tuple[str, ExtractionResult]],
    *,
    strategy: Optional[ExportStrategy] = None,
    kinds: Optional[IncludeKinds] = None,
    extra_env: Sequence[str] = (),
    root: Optional[Path] = None,
) -> ModulePlan:
    """Aggregate ``(path, result)`` pairs into a :class:`ModulePlan`.

    Results are processed in path order regardless of the order given, and
    the first declaration of a name wins.
    """
    plan = ModulePlan(strategy=strategy or ExportStrategy())
    kinds = kinds or IncludeKinds()
    ordered = sorted(results, key=lambda pair: pair[0])

    for path, result in ordered:
        plan.diagnostics.extend(result.diagnostics)
        for name in result.env_vars:
            _add_env(
                plan,
                name,
                visibility=result.env_visibility.get(name, "private"),
                source=result.env_sources.get(name),
                path=path,
                display=_display_path(path, root),
            )
    for name in extra_env:
        _add_env(plan, name, visibility="private", source=None, path=None, display="env.variables")

    owners: Dict[str, str] = {}
    for path, result in ordered:
        exports = FileExports(path=path, display_path=_display_path(path, root))
        for item in result.items:
            if not _kind_enabled(item, kinds):
                continue
            if item.name in owners:
                message = (
                    f"Duplicate export '{item.name}' in {exports.display_path} ignored; "
                    f"already exported from {_display_path(owners[item.name], root)}"
                )
                logger.warning(message)
                plan.diagnostics.append(Diagnostic(kind="duplicate", message=message, path=path))
                continue
            if item.name in plan.env_visibility or item.name in RESERVED_NAMES:
                message = (
                    f"Export '{item.name}' in {exports.display_path} ignored; "
                    "the name is already bound in the virtual module"
                )
                logger.warning(message)
                plan.diagnostics.append(Diagnostic(kind="duplicate", message=message, path=path))
                continue
            owners[item.name] = path
            exports.items.append(item)
        if exports.items:
            plan.files.append(exports)

    if plan.strategy.grouped:
        plan.buckets = _build_buckets(plan)
    return plan


def _add_env(
    plan: ModulePlan,
    name: str,
    *,
    visibility: str,
    source: Optional[str],
    path: Optional[str],
    display: str,
) -> None:
    if name in plan.env_visibility:
        return
    if name in RESERVED_NAMES:
        message = (
            f"Environment variable '{name}' in {display} ignored; "
            "the name is reserved by the virtual module"
        )
        logger.warning(message)
        plan.diagnostics.append(Diagnostic(kind="duplicate", message=message, path=path))
        return
    plan.env_vars.append(name)
    plan.env_visibility[name] = visibility
    if source is not None and source != name:
        plan.env_sources[name] = source


def _kind_enabled(item: ExportedItem, kinds: IncludeKinds) -> bool:
    if item.signature is None:
        # Unresolved export-list names have no known kind.
        return kinds.functions or kinds.classes or kinds.constants
    if item.kind is ExportKind.FUNCTION:
        return kinds.functions
    if item.kind is ExportKind.CLASS:
        return kinds.classes
    return kinds.constants


def _build_buckets(plan: ModulePlan) -> List[Bucket]:
    taken: Set[str] = set(plan.env_vars) | set(plan.export_names) | set(RESERVED_NAMES)
    by_key: Dict[str, Bucket] = {}
    buckets: List[Bucket] = []
    for exports in plan.files:
        key = _group_key(exports.display_path, plan.strategy.group_by)
        bucket = by_key.get(key)
        if bucket is None:
            name = bucket_identifier(key, plan.strategy.group_prefix)
            while name in taken:
                name = f"{name}Exports"
            taken.add(name)
            bucket = Bucket(name=name)
            by_key[key] = bucket
            buckets.append(bucket)
        bucket.members.extend(item.name for item in exports.items)
    return buckets


def _group_key(display_path: str, group_by: str) -> str:
    path = Path(display_path)
    if group_by == "folder":
        return path.parent.name or "root"
    return path.name.split(".", 1)[0] or path.name


def bucket_identifier(key: str, prefix: Optional[str] = None) -> str:
    """Turn a file or folder name into a camel-cased JavaScript identifier."""
    parts = [part for part in re.split(r"[^0-9A-Za-z_$]+", key) if part]
    if prefix:
        prefix_parts = [part for part in re.split(r"[^0-9A-Za-z_$]+", prefix) if part]
        parts = prefix_parts + parts
    if not parts:
        return "group"
    head, tail = parts[0], parts[1:]
    name = head[0].lower() + head[1:] + "".join(part[0].upper() + part[1:] for part in tail)
    if name[0].isdigit():
        name = f"_{name}"
    if name in _JS_RESERVED_WORDS:
        name = f"{name}Exports"
    return name


def _display_path(path: str, root: Optional[Path]) -> str:
    if root is None:
        return Path(path).as_posix()
    try:
        return Path(path).resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return Path(path).as_posix()


__all__ = [
    "Bucket",
    "FileExports",
    "LOOKUP_NAME",
    "MANIFEST_NAME",
    "ModulePlan",
    "RESERVED_NAMES",
    "bucket_identifier",
    "plan_module",
]
