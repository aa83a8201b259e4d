"""Rendering of the runtime virtual module from a :class:`ModulePlan`."""

from __future__ import annotations

import json
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional

from ..models import ExportedItem
from .planner import LOOKUP_NAME, MANIFEST_NAME, ModulePlan


class SynthesisError(RuntimeError):
    """Raised when a plan violates an invariant the module relies on."""


def synthesize(plan: ModulePlan, specifiers: Optional[Mapping[str, str]] = None) -> str:
    """Return the module text for ``plan``.

    ``specifiers`` maps a declaring file path to the module specifier the
    generated import should use; files without an entry are imported by path.
    The output is a pure function of its inputs.
    """
    check_plan(plan)
    specifiers = specifiers or {}
    mode = plan.strategy.mode
    lines: List[str] = []

    if plan.env_vars:
        lines.append(f"export const {{ {_env_bindings(plan)} }} = process.env;")
        lines.append("")

    for exports in plan.files:
        specifier = specifiers.get(exports.path, exports.path.replace("\\", "/"))
        lines.append(f"import {{ {_import_list(exports.items)} }} from {_quote(specifier)};")
        if mode != "grouped":
            lines.append(f"export {{ {', '.join(item.name for item in exports.items)} }};")
    if plan.files:
        lines.append("")

    for bucket in plan.buckets:
        lines.append(f"export const {bucket.name} = {{ {', '.join(bucket.members)} }};")
    if mode == "grouped" and plan.files:
        lines.append(f"export {{ {', '.join(plan.export_names)} }};")
    if plan.buckets or mode == "grouped":
        lines.append("")

    lines.append(f"export const {MANIFEST_NAME} = {json.dumps(_manifest(plan), indent=2)};")
    lines.append("")
    lines.append(f"export function {LOOKUP_NAME}(name) {{")
    lines.append(f"  return {MANIFEST_NAME}[name];")
    lines.append("}")
    return "\n".join(lines) + "\n"


def check_plan(plan: ModulePlan) -> None:
    names = plan.bound_names()
    duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
    if duplicates:
        raise SynthesisError(f"Virtual module would bind names twice: {', '.join(duplicates)}")
    exported = set(plan.export_names)
    for bucket in plan.buckets:
        missing = [member for member in bucket.members if member not in exported]
        if missing:
            raise SynthesisError(
                f"Group {bucket.name} references unknown exports: {', '.join(missing)}"
            )


def _manifest(plan: ModulePlan) -> Dict[str, Any]:
    groups = plan.group_of
    manifest: Dict[str, Any] = {}
    for exports in plan.files:
        for item in exports.items:
            record: Dict[str, Any] = {
                "kind": item.kind.value,
                "path": exports.display_path,
                "exportName": item.original_name,
                "metadata": item.signature.to_dict() if item.signature is not None else None,
            }
            if item.name in groups:
                record["group"] = groups[item.name]
            manifest[item.name] = record
    return manifest


def _env_bindings(plan: ModulePlan) -> str:
    bindings = []
    for name in plan.env_vars:
        source = plan.env_sources.get(name)
        bindings.append(f"{source}: {name}" if source else name)
    return ", ".join(bindings)


def _import_list(items: List[ExportedItem]) -> str:
    return ", ".join(
        item.name if item.original_name == item.name else f"{item.original_name} as {item.name}"
        for item in items
    )


def _quote(specifier: str) -> str:
    escaped = specifier.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


__all__ = ["SynthesisError", "check_plan", "synthesize"]
