"""Core data models shared across exportkit components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ExportKind(str, Enum):
    """Kinds of declarations the extractor recognises."""

    FUNCTION = "function"
    CLASS = "class"
    CONSTANT = "constant"


@dataclass(frozen=True)
class SourceFile:
    """Raw contents of a scanned file plus the marker used for staleness checks."""

    path: str
    text: str
    marker: str


@dataclass
class ParameterInfo:
    """A single parameter of a function, method or constructor."""

    name: str
    type_text: Optional[str] = None
    optional: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "optional": self.optional}
        if self.type_text is not None:
            data["type"] = self.type_text
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ParameterInfo":
        return cls(
            name=str(payload.get("name", "")),
            type_text=payload.get("type"),
            optional=bool(payload.get("optional", False)),
        )


@dataclass
class FunctionSignature:
    parameters: List[ParameterInfo] = field(default_factory=list)
    return_type: Optional[str] = None
    is_async: bool = False
    generics: Optional[str] = None
    docstring: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "isAsync": self.is_async,
            "parameters": [param.to_dict() for param in self.parameters],
        }
        if self.return_type is not None:
            data["returnType"] = self.return_type
        if self.generics is not None:
            data["generics"] = self.generics
        if self.docstring is not None:
            data["docstring"] = self.docstring
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FunctionSignature":
        return cls(
            parameters=[ParameterInfo.from_dict(item) for item in payload.get("parameters", [])],
            return_type=payload.get("returnType"),
            is_async=bool(payload.get("isAsync", False)),
            generics=payload.get("generics"),
            docstring=payload.get("docstring"),
        )


@dataclass
class MethodInfo:
    name: str
    parameters: List[ParameterInfo] = field(default_factory=list)
    return_type: Optional[str] = None
    is_async: bool = False
    is_static: bool = False
    is_abstract: bool = False
    optional: bool = False
    generics: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "parameters": [param.to_dict() for param in self.parameters],
            "isAsync": self.is_async,
            "isStatic": self.is_static,
        }
        if self.return_type is not None:
            data["returnType"] = self.return_type
        if self.generics is not None:
            data["generics"] = self.generics
        if self.is_abstract:
            data["isAbstract"] = True
        if self.optional:
            data["optional"] = True
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "MethodInfo":
        return cls(
            name=str(payload.get("name", "")),
            parameters=[ParameterInfo.from_dict(item) for item in payload.get("parameters", [])],
            return_type=payload.get("returnType"),
            is_async=bool(payload.get("isAsync", False)),
            is_static=bool(payload.get("isStatic", False)),
            is_abstract=bool(payload.get("isAbstract", False)),
            optional=bool(payload.get("optional", False)),
            generics=payload.get("generics"),
        )


@dataclass
class PropertyInfo:
    name: str
    type_text: Optional[str] = None
    is_static: bool = False
    is_readonly: bool = False
    optional: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type_text,
            "isStatic": self.is_static,
            "isReadonly": self.is_readonly,
        }
        if self.optional:
            data["optional"] = True
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PropertyInfo":
        return cls(
            name=str(payload.get("name", "")),
            type_text=payload.get("type"),
            is_static=bool(payload.get("isStatic", False)),
            is_readonly=bool(payload.get("isReadonly", False)),
            optional=bool(payload.get("optional", False)),
        )


@dataclass
class ClassSignature:
    constructor_params: Optional[List[ParameterInfo]] = None
    methods: List[MethodInfo] = field(default_factory=list)
    properties: List[PropertyInfo] = field(default_factory=list)
    extends: Optional[str] = None
    implements: Optional[str] = None
    generics: Optional[str] = None
    docstring: Optional[str] = None
    is_abstract: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "methods": [method.to_dict() for method in self.methods],
            "properties": [prop.to_dict() for prop in self.properties],
        }
        if self.constructor_params is not None:
            data["constructorParams"] = [param.to_dict() for param in self.constructor_params]
        if self.is_abstract:
            data["isAbstract"] = True
        for key, value in (
            ("extends", self.extends),
            ("implements", self.implements),
            ("generics", self.generics),
            ("docstring", self.docstring),
        ):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ClassSignature":
        constructor = payload.get("constructorParams")
        return cls(
            constructor_params=(
                [ParameterInfo.from_dict(item) for item in constructor]
                if constructor is not None
                else None
            ),
            methods=[MethodInfo.from_dict(item) for item in payload.get("methods", [])],
            properties=[PropertyInfo.from_dict(item) for item in payload.get("properties", [])],
            extends=payload.get("extends"),
            implements=payload.get("implements"),
            generics=payload.get("generics"),
            docstring=payload.get("docstring"),
            is_abstract=bool(payload.get("isAbstract", False)),
        )


@dataclass
class ConstantSignature:
    type_text: Optional[str] = None
    docstring: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.type_text is not None:
            data["type"] = self.type_text
        if self.docstring is not None:
            data["docstring"] = self.docstring
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ConstantSignature":
        return cls(type_text=payload.get("type"), docstring=payload.get("docstring"))


Signature = Union[FunctionSignature, ClassSignature, ConstantSignature]

_SIGNATURE_TYPES = {
    ExportKind.FUNCTION: FunctionSignature,
    ExportKind.CLASS: ClassSignature,
    ExportKind.CONSTANT: ConstantSignature,
}


@dataclass
class ExportedItem:
    """A declaration exported from a scanned file.

    ``signature`` is ``None`` for names listed in an ``export { ... }`` clause
    that could not be resolved to a declaration in the same file.
    """

    name: str
    kind: ExportKind
    declaring_file: str
    original_name: str
    signature: Optional[Signature] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "path": self.declaring_file,
            "exportName": self.original_name,
            "signature": self.signature.to_dict() if self.signature is not None else None,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ExportedItem":
        kind = ExportKind(payload["kind"])
        raw_signature = payload.get("signature")
        signature = (
            _SIGNATURE_TYPES[kind].from_dict(raw_signature)
            if isinstance(raw_signature, dict)
            else None
        )
        return cls(
            name=str(payload["name"]),
            kind=kind,
            declaring_file=str(payload["path"]),
            original_name=str(payload.get("exportName", payload["name"])),
            signature=signature,
        )


@dataclass
class ExtractionResult:
    """Everything the extractor learns from a single file.

    ``env_vars`` holds local binding names; ``env_sources`` maps a local name
    to the variable it reads when the import renamed it.
    """

    items: List[ExportedItem] = field(default_factory=list)
    env_vars: List[str] = field(default_factory=list)
    env_visibility: Dict[str, str] = field(default_factory=dict)
    env_sources: Dict[str, str] = field(default_factory=dict)
    diagnostics: List["Diagnostic"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "envVars": list(self.env_vars),
            "envVisibility": dict(self.env_visibility),
            "envSources": dict(self.env_sources),
            "diagnostics": [
                {"kind": diag.kind, "message": diag.message, "path": diag.path}
                for diag in self.diagnostics
            ],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ExtractionResult":
        return cls(
            items=[ExportedItem.from_dict(item) for item in payload.get("items", [])],
            env_vars=[str(name) for name in payload.get("envVars", [])],
            env_visibility={
                str(key): str(value) for key, value in payload.get("envVisibility", {}).items()
            },
            env_sources={
                str(key): str(value) for key, value in payload.get("envSources", {}).items()
            },
            diagnostics=[
                Diagnostic(
                    kind=str(item.get("kind", "")),
                    message=str(item.get("message", "")),
                    path=item.get("path"),
                )
                for item in payload.get("diagnostics", [])
                if isinstance(item, dict)
            ],
        )


@dataclass
class CacheEntry:
    path: str
    marker: str
    result: ExtractionResult
    transformed_text: Optional[str] = None


@dataclass(frozen=True)
class Diagnostic:
    """A file- or module-scoped problem surfaced alongside the virtual module."""

    kind: str
    message: str
    path: Optional[str] = None


@dataclass(frozen=True)
class VirtualModule:
    """One complete generation of the synthesized module and its declarations."""

    module_id: str
    code: str
    declarations: str
    exports: Tuple[str, ...] = ()
    env_vars: Tuple[str, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()
    generation: int = 0


__all__ = [
    "CacheEntry",
    "ClassSignature",
    "ConstantSignature",
    "Diagnostic",
    "ExportKind",
    "ExportedItem",
    "ExtractionResult",
    "FunctionSignature",
    "MethodInfo",
    "ParameterInfo",
    "PropertyInfo",
    "Signature",
    "SourceFile",
    "VirtualModule",
]
