"""Extraction of exported declarations from TypeScript/JavaScript sources."""

from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional, Set, Tuple

from tree_sitter import Node

from ..logging import get_logger
from ..models import (
    ClassSignature,
    ConstantSignature,
    Diagnostic,
    ExportedItem,
    ExportKind,
    ExtractionResult,
    FunctionSignature,
    MethodInfo,
    ParameterInfo,
    PropertyInfo,
    Signature,
)
from .transforms import find_env_imports
from .tree_sitter import ParseError, field_text, has_token, node_text, parse_source

logger = get_logger("extractor")

_FUNCTION_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_VARIABLE_DECLARATIONS = {"lexical_declaration", "variable_declaration"}
_FUNCTION_VALUES = {
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
}
_CLASS_VALUES = {"class"}
_MODIFIER_TOKENS = {"static", "readonly", "async", "get", "set", "abstract", "declare", "*"}


class _Declaration(NamedTuple):
    name: str
    kind: ExportKind
    signature: Signature


def async_return_type(return_type: Optional[str], is_async: bool) -> str:
    """Return the declared result type, wrapping async results in ``Promise``."""
    if not is_async:
        return return_type or "any"
    if not return_type:
        return "Promise<any>"
    if return_type.startswith("Promise<"):
        return return_type
    return f"Promise<{return_type}>"


class DeclarationExtractor:
    """Turns one file's text into exported items and environment imports."""

    def extract(self, text: str, path: str) -> ExtractionResult:
        source_bytes = text.encode("utf-8")
        try:
            tree = parse_source(source_bytes, path)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return ExtractionResult(
                diagnostics=[Diagnostic(kind="parse", message=str(exc), path=path)]
            )
        return _FileWalker(path, source_bytes).walk(tree.root_node)


def extract(text: str, path: str) -> ExtractionResult:
    return DeclarationExtractor().extract(text, path)


class _FileWalker:
    def __init__(self, path: str, source_bytes: bytes) -> None:
        self.path = path
        self.source = source_bytes
        self.local: Dict[str, _Declaration] = {}
        self.items: List[ExportedItem] = []
        self.seen: Set[str] = set()

    def walk(self, root: Node) -> ExtractionResult:
        statements = list(root.named_children)
        declared: Dict[int, List[_Declaration]] = {}

        # First pass: every top-level declaration, so that export clauses can
        # refer to bindings declared anywhere in the file.
        for statement in statements:
            target: Optional[Node] = None
            if statement.type == "export_statement" and not has_token(statement, "default"):
                target = statement.child_by_field_name("declaration")
            elif (
                statement.type in _FUNCTION_DECLARATIONS
                or statement.type in _CLASS_DECLARATIONS
                or statement.type in _VARIABLE_DECLARATIONS
            ):
                target = statement
            if target is None:
                continue
            declarations = self._declarations(target, self._docstring(statement))
            declared[statement.start_byte] = declarations
            for declaration in declarations:
                self.local.setdefault(declaration.name, declaration)

        for statement in statements:
            if statement.type != "export_statement" or has_token(statement, "default"):
                continue
            if statement.child_by_field_name("declaration") is not None:
                for declaration in declared.get(statement.start_byte, []):
                    self._add(declaration.name, declaration.name, declaration)
                continue
            self._export_clause(statement)

        result = ExtractionResult(items=self.items)
        for env_import in find_env_imports(root, self.source):
            if env_import.type_only:
                continue
            for imported, local in env_import.named:
                if local in result.env_visibility:
                    continue
                result.env_vars.append(local)
                result.env_visibility[local] = env_import.visibility
                if imported != local:
                    result.env_sources[local] = imported
        return result

    # ------------------------------------------------------------------
    # Export statements

    def _add(self, name: str, original: str, declaration: Optional[_Declaration]) -> None:
        if name in self.seen:
            logger.debug("Ignoring repeated export %s in %s", name, self.path)
            return
        self.seen.add(name)
        if declaration is None:
            self.items.append(
                ExportedItem(
                    name=name,
                    kind=ExportKind.CONSTANT,
                    declaring_file=self.path,
                    original_name=original,
                    signature=None,
                )
            )
            return
        self.items.append(
            ExportedItem(
                name=name,
                kind=declaration.kind,
                declaring_file=self.path,
                original_name=original,
                signature=declaration.signature,
            )
        )

    def _export_clause(self, statement: Node) -> None:
        reexport = statement.child_by_field_name("source") is not None
        for child in statement.named_children:
            if child.type == "export_clause":
                for specifier in child.named_children:
                    if specifier.type != "export_specifier":
                        continue
                    local = node_text(specifier.child_by_field_name("name"), self.source)
                    alias = field_text(specifier, "alias", self.source)
                    exported = alias or local
                    if not exported or exported == "default":
                        continue
                    declaration = None if reexport else self.local.get(local)
                    if declaration is None:
                        logger.debug(
                            "Export %s in %s has no local declaration; using a placeholder",
                            exported,
                            self.path,
                        )
                    self._add(exported, exported, declaration)
                return
            if child.type == "namespace_export":
                name = next(
                    (node_text(n, self.source) for n in child.named_children if n.type == "identifier"),
                    "",
                )
                if name:
                    self._add(name, name, None)
                return
        logger.debug("Skipping wildcard re-export in %s", self.path)

    # ------------------------------------------------------------------
    # Declarations

    def _declarations(self, node: Node, docstring: Optional[str]) -> List[_Declaration]:
        if node.type in _FUNCTION_DECLARATIONS:
            name = field_text(node, "name", self.source)
            if not name:
                return []
            return [_Declaration(name, ExportKind.FUNCTION, self._function(node, docstring))]
        if node.type in _CLASS_DECLARATIONS:
            name = field_text(node, "name", self.source)
            if not name:
                return []
            return [_Declaration(name, ExportKind.CLASS, self._class(node, docstring))]
        if node.type in _VARIABLE_DECLARATIONS:
            return self._variables(node, docstring)
        return []

    def _variables(self, node: Node, docstring: Optional[str]) -> List[_Declaration]:
        declarations: List[_Declaration] = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            name = node_text(name_node, self.source)
            value = _unwrap(declarator.child_by_field_name("value"))
            if value is not None and value.type in _FUNCTION_VALUES:
                declarations.append(
                    _Declaration(name, ExportKind.FUNCTION, self._function(value, docstring))
                )
            elif value is not None and value.type in _CLASS_VALUES:
                declarations.append(
                    _Declaration(name, ExportKind.CLASS, self._class(value, docstring))
                )
            else:
                type_text = _annotation(declarator.child_by_field_name("type"), self.source)
                declarations.append(
                    _Declaration(
                        name,
                        ExportKind.CONSTANT,
                        ConstantSignature(type_text=type_text, docstring=docstring),
                    )
                )
        return declarations

    def _function(self, node: Node, docstring: Optional[str]) -> FunctionSignature:
        parameters_node = node.child_by_field_name("parameters")
        if parameters_node is not None:
            parameters = self._parameters(parameters_node)
        else:
            single = node.child_by_field_name("parameter")
            parameters = [ParameterInfo(name=node_text(single, self.source))] if single else []
        return FunctionSignature(
            parameters=parameters,
            return_type=_annotation(node.child_by_field_name("return_type"), self.source),
            is_async=has_token(node, "async"),
            generics=field_text(node, "type_parameters", self.source),
            docstring=docstring,
        )

    def _parameters(self, node: Node) -> List[ParameterInfo]:
        parameters: List[ParameterInfo] = []
        for child in node.named_children:
            if child.type not in {"required_parameter", "optional_parameter"}:
                continue
            pattern = child.child_by_field_name("pattern")
            parameters.append(
                ParameterInfo(
                    name=node_text(pattern, self.source) if pattern is not None else "arg",
                    type_text=_annotation(child.child_by_field_name("type"), self.source),
                    optional=child.type == "optional_parameter"
                    or child.child_by_field_name("value") is not None,
                )
            )
        return parameters

    def _class(self, node: Node, docstring: Optional[str]) -> ClassSignature:
        signature = ClassSignature(
            generics=field_text(node, "type_parameters", self.source),
            docstring=docstring,
            is_abstract=node.type == "abstract_class_declaration",
        )
        for child in node.named_children:
            if child.type == "class_heritage":
                for clause in child.named_children:
                    if clause.type == "extends_clause":
                        signature.extends = _strip_keyword(node_text(clause, self.source), "extends")
                    elif clause.type == "implements_clause":
                        signature.implements = _strip_keyword(
                            node_text(clause, self.source), "implements"
                        )
        body = node.child_by_field_name("body")
        if body is not None:
            self._class_members(body, signature)
        return signature

    def _class_members(self, body: Node, signature: ClassSignature) -> None:
        accessors: Dict[str, Tuple[PropertyInfo, bool]] = {}
        overloaded: Set[str] = set()
        for member in body.named_children:
            if member.type not in {
                "method_definition",
                "method_signature",
                "abstract_method_signature",
                "public_field_definition",
            }:
                continue
            name_node = member.child_by_field_name("name")
            name = node_text(name_node, self.source)
            modifiers = self._modifiers(member)
            if not name or name.startswith("#") or modifiers & {"private", "protected"}:
                continue
            is_static = "static" in modifiers

            if member.type == "public_field_definition":
                signature.properties.append(
                    PropertyInfo(
                        name=name,
                        type_text=_annotation(member.child_by_field_name("type"), self.source),
                        is_static=is_static,
                        is_readonly="readonly" in modifiers,
                        optional=has_token(member, "?"),
                    )
                )
                continue

            if name == "constructor":
                parameters_node = member.child_by_field_name("parameters")
                if signature.constructor_params is None and parameters_node is not None:
                    signature.constructor_params = self._parameters(parameters_node)
                    signature.properties.extend(self._parameter_properties(parameters_node))
                continue

            if "get" in modifiers or "set" in modifiers:
                self._accessor(member, name, modifiers, accessors, signature)
                continue

            if member.type != "method_definition":
                overloaded.add(name)
            elif name in overloaded:
                # Implementation signature of an overloaded method.
                continue
            signature.methods.append(self._method(member, name, modifiers))

    def _accessor(
        self,
        member: Node,
        name: str,
        modifiers: Set[str],
        accessors: Dict[str, Tuple[PropertyInfo, bool]],
        signature: ClassSignature,
    ) -> None:
        is_getter = "get" in modifiers
        if is_getter:
            type_text = _annotation(member.child_by_field_name("return_type"), self.source)
        else:
            parameters_node = member.child_by_field_name("parameters")
            params = self._parameters(parameters_node) if parameters_node is not None else []
            type_text = params[0].type_text if params else None
        existing = accessors.get(name)
        if existing is None:
            prop = PropertyInfo(
                name=name,
                type_text=type_text,
                is_static="static" in modifiers,
                is_readonly=is_getter,
            )
            accessors[name] = (prop, is_getter)
            signature.properties.append(prop)
            return
        prop, _ = existing
        # A getter paired with a setter is writable.
        prop.is_readonly = False
        if prop.type_text is None:
            prop.type_text = type_text

    def _parameter_properties(self, parameters_node: Node) -> List[PropertyInfo]:
        properties: List[PropertyInfo] = []
        for param in parameters_node.named_children:
            if param.type not in {"required_parameter", "optional_parameter"}:
                continue
            modifiers = self._modifiers(param)
            accessibility = modifiers & {"public", "private", "protected"}
            if not accessibility and "readonly" not in modifiers:
                continue
            if accessibility - {"public"}:
                continue
            pattern = param.child_by_field_name("pattern")
            if pattern is None or pattern.type != "identifier":
                continue
            properties.append(
                PropertyInfo(
                    name=node_text(pattern, self.source),
                    type_text=_annotation(param.child_by_field_name("type"), self.source),
                    is_readonly="readonly" in modifiers,
                    optional=param.type == "optional_parameter",
                )
            )
        return properties

    def _method(self, member: Node, name: str, modifiers: Set[str]) -> MethodInfo:
        parameters_node = member.child_by_field_name("parameters")
        return MethodInfo(
            name=name,
            parameters=self._parameters(parameters_node) if parameters_node is not None else [],
            return_type=_annotation(member.child_by_field_name("return_type"), self.source),
            is_async="async" in modifiers,
            is_static="static" in modifiers,
            is_abstract="abstract" in modifiers or member.type == "abstract_method_signature",
            optional=has_token(member, "?"),
            generics=field_text(member, "type_parameters", self.source),
        )

    def _modifiers(self, node: Node) -> Set[str]:
        modifiers: Set[str] = set()
        for child in node.children:
            if child.type == "accessibility_modifier":
                modifiers.add(node_text(child, self.source))
            elif child.type == "override_modifier":
                modifiers.add("override")
            elif child.type in _MODIFIER_TOKENS:
                modifiers.add(child.type)
            elif child.type == "static get":
                modifiers.update({"static", "get"})
        return modifiers

    def _docstring(self, node: Node) -> Optional[str]:
        previous = node.prev_sibling
        if previous is None or previous.type != "comment":
            return None
        raw = node_text(previous, self.source)
        if not raw.startswith("/*"):
            return None
        if self.source[previous.end_byte : node.start_byte].strip():
            return None
        return _clean_block_comment(raw)


def _unwrap(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.type in {"parenthesized_expression", "satisfies_expression", "as_expression"}:
        inner = next(iter(node.named_children), None)
        if inner is None:
            break
        node = inner
    return node


def _annotation(node: Optional[Node], source_bytes: bytes) -> Optional[str]:
    if node is None:
        return None
    text = node_text(node, source_bytes).strip()
    if text.startswith(":"):
        text = text[1:]
    text = text.strip()
    return text or None


def _strip_keyword(text: str, keyword: str) -> Optional[str]:
    stripped = text.strip()
    if stripped.startswith(keyword):
        stripped = stripped[len(keyword) :]
    stripped = " ".join(stripped.split())
    return stripped or None


def _clean_block_comment(raw: str) -> Optional[str]:
    body = raw[2:-2] if raw.endswith("*/") else raw[2:]
    lines = []
    for line in body.splitlines():
        cleaned = line.strip()
        if cleaned.startswith("*"):
            cleaned = cleaned[1:].strip()
        lines.append(cleaned)
    text = "\n".join(lines).strip()
    return text or None


__all__ = ["DeclarationExtractor", "async_return_type", "extract"]
