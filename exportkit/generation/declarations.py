"""Type declarations mirroring the synthesized virtual module."""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from ..models import (
    ClassSignature,
    ConstantSignature,
    ExportedItem,
    FunctionSignature,
    MethodInfo,
    ParameterInfo,
)
from ..parsing.extractor import async_return_type
from .planner import LOOKUP_NAME, MANIFEST_NAME, ModulePlan
from .synthesizer import check_plan

_INDENT = "  "


def emit_declarations(plan: ModulePlan, module_id: str) -> str:
    """Return a ``declare module`` block for ``module_id`` covering every export."""
    check_plan(plan)
    body: List[str] = []

    for name in plan.env_vars:
        body.append(f"export const {name}: string;")
    if plan.env_vars:
        body.append("")

    for item in plan.items:
        body.extend(_item_lines(item))
        body.append("")

    for bucket in plan.buckets:
        body.append(f"export const {bucket.name}: {{")
        body.extend(f"{_INDENT}{member}: typeof {member};" for member in bucket.members)
        body.append("};")
    if plan.buckets:
        body.append("")

    body.extend(
        [
            "export interface ExportRecord {",
            f"{_INDENT}kind: 'function' | 'class' | 'constant';",
            f"{_INDENT}path: string;",
            f"{_INDENT}exportName: string;",
            f"{_INDENT}metadata: Record<string, unknown> | null;",
            f"{_INDENT}group?: string;",
            "}",
            "",
        ]
    )
    names = plan.export_names
    if names:
        body.append(f"export const {MANIFEST_NAME}: {{")
        body.extend(f"{_INDENT}{json.dumps(name)}: ExportRecord;" for name in names)
        body.append("};")
    else:
        body.append(f"export const {MANIFEST_NAME}: {{}};")
    body.append(f"export type ExportName = keyof typeof {MANIFEST_NAME};")
    body.append(f"export function {LOOKUP_NAME}(name: ExportName): ExportRecord;")
    body.append(f"export function {LOOKUP_NAME}(name: string): ExportRecord | undefined;")

    lines = [f"declare module {json.dumps(module_id)} {{"]
    lines.extend(f"{_INDENT}{line}" if line else "" for line in body)
    lines.append("}")
    return "\n".join(lines) + "\n"


def _item_lines(item: ExportedItem) -> List[str]:
    signature = item.signature
    if isinstance(signature, FunctionSignature):
        return _doc_lines(signature.docstring) + [
            f"export function {item.name}{signature.generics or ''}"
            f"({render_parameters(signature.parameters)}): "
            f"{async_return_type(signature.return_type, signature.is_async)};"
        ]
    if isinstance(signature, ClassSignature):
        return _doc_lines(signature.docstring) + _class_lines(item.name, signature)
    if isinstance(signature, ConstantSignature):
        return _doc_lines(signature.docstring) + [
            f"export const {item.name}: {signature.type_text or 'any'};"
        ]
    return [f"export const {item.name}: any;"]


def _class_lines(name: str, signature: ClassSignature) -> List[str]:
    abstract = "abstract " if signature.is_abstract else ""
    header = f"export {abstract}class {name}{signature.generics or ''}"
    if signature.extends:
        header += f" extends {signature.extends}"
    if signature.implements:
        header += f" implements {signature.implements}"
    lines = [f"{header} {{"]
    if signature.constructor_params is not None:
        lines.append(f"{_INDENT}constructor({render_parameters(signature.constructor_params)});")
    for method in signature.methods:
        lines.append(f"{_INDENT}{_method_line(method, signature.is_abstract)};")
    for prop in signature.properties:
        modifiers = ("static " if prop.is_static else "") + ("readonly " if prop.is_readonly else "")
        optional = "?" if prop.optional else ""
        lines.append(f"{_INDENT}{modifiers}{prop.name}{optional}: {prop.type_text or 'any'};")
    lines.append("}")
    return lines


def _method_line(method: MethodInfo, in_abstract_class: bool) -> str:
    modifiers = "static " if method.is_static else ""
    if method.is_abstract and in_abstract_class:
        modifiers += "abstract "
    optional = "?" if method.optional else ""
    return (
        f"{modifiers}{method.name}{optional}{method.generics or ''}"
        f"({render_parameters(method.parameters)}): "
        f"{async_return_type(method.return_type, method.is_async)}"
    )


def render_parameters(parameters: Sequence[ParameterInfo]) -> str:
    rendered = []
    for param in parameters:
        text = param.name
        if param.optional and not text.startswith("..."):
            text += "?"
        if param.type_text:
            text += f": {param.type_text}"
        rendered.append(text)
    return ", ".join(rendered)


def _doc_lines(docstring: Optional[str]) -> List[str]:
    if not docstring:
        return []
    lines = ["/**"]
    lines.extend(f" * {line}".rstrip() for line in docstring.replace("*/", "* /").splitlines())
    lines.append(" */")
    return lines


__all__ = ["emit_declarations", "render_parameters"]
