"""Tests for rendering the runtime virtual module."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import List, Tuple

import pytest

from exportkit.config import ExportStrategy
from exportkit.generation.planner import FileExports, ModulePlan, plan_module
from exportkit.generation.synthesizer import SynthesisError, synthesize
from exportkit.models import ExtractionResult
from tests._fixtures.results import class_item, function_item, result


def _results(root: Path) -> List[Tuple[str, ExtractionResult]]:
    user = root / "src/lib/user.ts"
    email = root / "src/lib/server/email.ts"
    return [
        (
            str(user),
            result(
                [function_item(user, "getUser", "id"), class_item(user, "UserStore")],
                env={"PUBLIC_SITE": "public"},
            ),
        ),
        (
            str(email),
            result([function_item(email, "sendWelcomeEmail", "userId", is_async=True)], env={"SMTP_HOST": "private"}),
        ),
    ]


def _manifest(code: str) -> dict:
    match = re.search(r"export const manifest = (\{.*?\n\});", code, re.DOTALL)
    assert match is not None
    return json.loads(match.group(1))


def _exported_names(code: str) -> List[str]:
    names: List[str] = []
    for match in re.finditer(r"^export \{ (.*) \};$", code, re.MULTILINE):
        names.extend(name.strip() for name in match.group(1).split(","))
    for match in re.finditer(r"^export const \{ (.*) \} = process\.env;$", code, re.MULTILINE):
        names.extend(name.strip() for name in match.group(1).split(","))
    for match in re.finditer(r"^export const (\w+) = \{ (.*) \};$", code, re.MULTILINE):
        names.append(match.group(1))
        names.extend(name.strip() for name in match.group(2).split(","))
    return names


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


def test_individual_layout(root: Path) -> None:
    plan = plan_module(_results(root), root=root)
    email = str(root / "src/lib/server/email.ts")
    user = str(root / "src/lib/user.ts")

    code = synthesize(plan, {email: "virtual:exportkit/src/lib/server/email.ts"})

    lines = code.splitlines()
    assert lines[0] == "export const { SMTP_HOST, PUBLIC_SITE } = process.env;"
    assert lines[2] == "import { sendWelcomeEmail } from 'virtual:exportkit/src/lib/server/email.ts';"
    assert lines[3] == "export { sendWelcomeEmail };"
    assert lines[4] == f"import {{ getUser, UserStore }} from '{user}';"
    assert lines[5] == "export { getUser, UserStore };"
    assert code.endswith("export function getExport(name) {\n  return manifest[name];\n}\n")

    manifest = _manifest(code)
    assert list(manifest) == ["sendWelcomeEmail", "getUser", "UserStore"]
    assert manifest["sendWelcomeEmail"] == {
        "kind": "function",
        "path": "src/lib/server/email.ts",
        "exportName": "sendWelcomeEmail",
        "metadata": {
            "isAsync": True,
            "parameters": [{"name": "userId", "optional": False, "type": "string"}],
        },
    }
    assert manifest["UserStore"]["kind"] == "class"
    assert "group" not in manifest["getUser"]


def test_synthesis_is_idempotent_and_order_independent(root: Path) -> None:
    results = _results(root)

    first = synthesize(plan_module(results, root=root))
    second = synthesize(plan_module(results, root=root))
    shuffled = synthesize(plan_module(list(reversed(results)), root=root))

    assert first == second == shuffled


def test_grouped_layout(root: Path) -> None:
    plan = plan_module(_results(root), strategy=ExportStrategy(mode="grouped"), root=root)

    code = synthesize(plan)

    assert "export { sendWelcomeEmail };" not in code
    assert "export const email = { sendWelcomeEmail };" in code
    assert "export const user = { getUser, UserStore };" in code
    assert "export { sendWelcomeEmail, getUser, UserStore };" in code
    manifest = _manifest(code)
    assert manifest["getUser"]["group"] == "user"
    assert manifest["sendWelcomeEmail"]["group"] == "email"


def test_mixed_contains_every_individual_name(root: Path) -> None:
    results = _results(root)
    individual = synthesize(plan_module(results, root=root))
    mixed = synthesize(plan_module(results, strategy=ExportStrategy(mode="mixed"), root=root))

    individual_names = set(_exported_names(individual))
    mixed_names = set(_exported_names(mixed))

    assert individual_names
    assert individual_names <= mixed_names
    assert {"email", "user"} <= mixed_names
    assert "export { getUser, UserStore };" in mixed


def test_duplicate_helper_yields_single_binding(root: Path) -> None:
    first = root / "src/lib/a.ts"
    second = root / "src/lib/b.ts"
    plan = plan_module(
        [
            (str(second), result([function_item(second, "helper")])),
            (str(first), result([function_item(first, "helper")])),
        ],
        root=root,
    )

    code = synthesize(plan)

    assert _exported_names(code).count("helper") == 1
    assert f"import {{ helper }} from '{first}';" in code
    assert str(second) not in code


def test_empty_plan_still_exports_manifest(root: Path) -> None:
    code = synthesize(plan_module([], root=root))

    assert code.startswith("export const manifest = {};\n")
    assert "export function getExport(name)" in code


def test_aliased_original_names_use_import_renaming(root: Path) -> None:
    path = root / "a.ts"
    item = function_item(path, "renamed")
    item.original_name = "original"
    plan = plan_module([(str(path), result([item]))], root=root)

    code = synthesize(plan)

    assert f"import {{ original as renamed }} from '{path}';" in code
    assert _manifest(code)["renamed"]["exportName"] == "original"


def test_renamed_env_import_reads_the_source_variable(root: Path) -> None:
    path = root / "src/lib/db.ts"
    plan = plan_module(
        [
            (
                str(path),
                result(
                    [function_item(path, "connect")],
                    env={"dbUrl": "private", "REGION": "private"},
                    sources={"dbUrl": "DATABASE_URL"},
                ),
            )
        ],
        root=root,
    )

    code = synthesize(plan)

    assert code.splitlines()[0] == "export const { DATABASE_URL: dbUrl, REGION } = process.env;"
    assert list(_manifest(code)) == ["connect"]


def test_conflicting_plan_raises(root: Path) -> None:
    path = root / "a.ts"
    plan = ModulePlan(
        strategy=ExportStrategy(),
        env_vars=["helper"],
        files=[FileExports(path=str(path), display_path="a.ts", items=[function_item(path, "helper")])],
    )

    with pytest.raises(SynthesisError):
        synthesize(plan)
