"""Rewriting of environment-value imports into ``process.env`` reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node

from .tree_sitter import has_token, node_text, parse_source, string_value

PUBLIC_ENV_SPECIFIER = "$env/static/public"
PRIVATE_ENV_SPECIFIER = "$env/static/private"

ENV_SPECIFIERS = {
    PUBLIC_ENV_SPECIFIER: "public",
    PRIVATE_ENV_SPECIFIER: "private",
}


@dataclass
class EnvImport:
    """One ``import ... from '$env/static/...'`` statement."""

    start_byte: int
    end_byte: int
    visibility: str
    named: List[Tuple[str, str]] = field(default_factory=list)
    bindings: List[str] = field(default_factory=list)
    type_only: bool = False


def find_env_imports(root: Node, source_bytes: bytes) -> Iterator[EnvImport]:
    """Yield the top-level environment imports of a parsed program."""
    for statement in root.named_children:
        if statement.type != "import_statement":
            continue
        specifier = string_value(statement.child_by_field_name("source"), source_bytes)
        visibility = ENV_SPECIFIERS.get(specifier or "")
        if visibility is None:
            continue
        env_import = EnvImport(
            start_byte=statement.start_byte,
            end_byte=statement.end_byte,
            visibility=visibility,
            type_only=has_token(statement, "type"),
        )
        clause = next((child for child in statement.named_children if child.type == "import_clause"), None)
        if clause is not None:
            _collect_clause(clause, source_bytes, env_import)
        yield env_import


def _collect_clause(clause: Node, source_bytes: bytes, env_import: EnvImport) -> None:
    for child in clause.named_children:
        if child.type == "identifier":
            env_import.bindings.append(node_text(child, source_bytes))
        elif child.type == "namespace_import":
            alias = next((n for n in child.named_children if n.type == "identifier"), None)
            if alias is not None:
                env_import.bindings.append(node_text(alias, source_bytes))
        elif child.type == "named_imports":
            for specifier in child.named_children:
                if specifier.type != "import_specifier" or has_token(specifier, "type"):
                    continue
                imported = node_text(specifier.child_by_field_name("name"), source_bytes)
                alias_node: Optional[Node] = specifier.child_by_field_name("alias")
                local = node_text(alias_node, source_bytes) if alias_node is not None else imported
                if imported:
                    env_import.named.append((imported, local))


def render_env_import(env_import: EnvImport) -> str:
    """Return the ``process.env`` replacement for one environment import."""
    if env_import.type_only:
        return ""
    statements = [f"const {binding} = process.env;" for binding in env_import.bindings]
    if env_import.named:
        names = ", ".join(
            imported if imported == local else f"{imported}: {local}"
            for imported, local in env_import.named
        )
        statements.append(f"const {{ {names} }} = process.env;")
    return " ".join(statements)


def transform_env_imports(text: str, path: str = "module.ts") -> str:
    """Replace environment imports in ``text``; everything else is left untouched."""
    source_bytes = text.encode("utf-8")
    tree = parse_source(source_bytes, path, strict=False)
    imports = list(find_env_imports(tree.root_node, source_bytes))
    if not imports:
        return text
    chunks: List[bytes] = []
    cursor = 0
    for env_import in imports:
        chunks.append(source_bytes[cursor : env_import.start_byte])
        chunks.append(render_env_import(env_import).encode("utf-8"))
        cursor = env_import.end_byte
    chunks.append(source_bytes[cursor:])
    return b"".join(chunks).decode("utf-8")


__all__ = [
    "ENV_SPECIFIERS",
    "EnvImport",
    "PRIVATE_ENV_SPECIFIER",
    "PUBLIC_ENV_SPECIFIER",
    "find_env_imports",
    "render_env_import",
    "transform_env_imports",
]
