"""Hand-built extraction results for planner and renderer tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Optional

from exportkit.models import (
    ClassSignature,
    ConstantSignature,
    ExportedItem,
    ExportKind,
    ExtractionResult,
    FunctionSignature,
    ParameterInfo,
)


def function_item(path: Path, name: str, *params: str, is_async: bool = False) -> ExportedItem:
    return ExportedItem(
        name=name,
        kind=ExportKind.FUNCTION,
        declaring_file=str(path),
        original_name=name,
        signature=FunctionSignature(
            parameters=[ParameterInfo(name=param, type_text="string") for param in params],
            is_async=is_async,
        ),
    )


def class_item(path: Path, name: str) -> ExportedItem:
    return ExportedItem(
        name=name,
        kind=ExportKind.CLASS,
        declaring_file=str(path),
        original_name=name,
        signature=ClassSignature(constructor_params=[]),
    )


def constant_item(path: Path, name: str, type_text: Optional[str] = None) -> ExportedItem:
    return ExportedItem(
        name=name,
        kind=ExportKind.CONSTANT,
        declaring_file=str(path),
        original_name=name,
        signature=ConstantSignature(type_text=type_text),
    )


def placeholder_item(path: Path, name: str) -> ExportedItem:
    return ExportedItem(
        name=name,
        kind=ExportKind.CONSTANT,
        declaring_file=str(path),
        original_name=name,
        signature=None,
    )


def result(
    items: Iterable[ExportedItem],
    env: Optional[Dict[str, str]] = None,
    sources: Optional[Dict[str, str]] = None,
) -> ExtractionResult:
    env = env or {}
    return ExtractionResult(
        items=list(items),
        env_vars=list(env),
        env_visibility=dict(env),
        env_sources=dict(sources or {}),
    )
