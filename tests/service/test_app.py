"""Tests for the FastAPI host adapter."""

from __future__ import annotations

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from exportkit.engine import ExportEngine
from exportkit.generation.synthesizer import SynthesisError
from exportkit.service import create_app
from tests._fixtures.project_builder import ProjectBuilder


@pytest.fixture
def engine(project_builder: ProjectBuilder) -> ExportEngine:
    project_builder.write(
        {
            "src/lib/user.ts": "export function getUser(id: string) {}\n",
            "src/lib/server/db.ts": """
            import { DATABASE_URL } from '$env/static/private';
            export function connect() {
              return DATABASE_URL;
            }
            """,
        }
    )
    return project_builder.engine()


@pytest.fixture
def client(engine: ExportEngine) -> TestClient:
    return TestClient(create_app(lambda: engine))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_resolve_endpoint(client: TestClient) -> None:
    owned = client.get("/resolve", params={"id": "virtual:exportkit"})
    foreign = client.get("/resolve", params={"id": "svelte/store"})

    assert owned.json() == {"id": "virtual:exportkit", "resolved": "\0virtual:exportkit"}
    assert foreign.json() == {"id": "svelte/store", "resolved": None}


def test_load_virtual_module(client: TestClient) -> None:
    response = client.get("/load", params={"id": "virtual:exportkit"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/javascript")
    assert "export const { DATABASE_URL } = process.env;" in response.text
    assert "import { getUser } from 'virtual:exportkit/src/lib/user.ts';" in response.text


def test_load_source_copy(client: TestClient) -> None:
    response = client.get(f"/load?id={quote('virtual:exportkit/src/lib/server/db.ts')}")

    assert response.status_code == 200
    assert "$env/static/private" not in response.text
    assert "const { DATABASE_URL } = process.env;" in response.text


def test_load_unknown_module_is_404(client: TestClient) -> None:
    response = client.get("/load", params={"id": "lodash"})

    assert response.status_code == 404


def test_invalidate_endpoint(client: TestClient, project_builder: ProjectBuilder) -> None:
    client.get("/load", params={"id": "virtual:exportkit"})
    project_builder.write({"src/lib/user.ts": "export function listUsers() {}\n"})

    response = client.post("/invalidate", json={"path": "src/lib/user.ts"})
    unchanged = client.post("/invalidate", json={"path": "README.md"})

    assert response.status_code == 200
    assert response.json()["changed"] is True
    assert unchanged.json()["changed"] is False
    assert "listUsers" in client.get("/load", params={"id": "virtual:exportkit"}).text


def test_declarations_and_diagnostics(client: TestClient) -> None:
    declarations = client.get("/declarations")
    diagnostics = client.get("/diagnostics")

    assert declarations.status_code == 200
    assert declarations.text.startswith('declare module "virtual:exportkit" {')
    assert diagnostics.json()["diagnostics"] == []
    assert diagnostics.json()["generation"] is not None


def test_synthesis_error_maps_to_500(engine: ExportEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(*_args: object, **_kwargs: object) -> str:
        raise SynthesisError("conflicting names")

    monkeypatch.setattr("exportkit.engine.synthesize", _fail)
    client = TestClient(create_app(lambda: engine))

    response = client.get("/load", params={"id": "virtual:exportkit"})

    assert response.status_code == 500
    assert response.json() == {"detail": "conflicting names"}


def test_declarations_report_first_pass_failure(
    engine: ExportEngine, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _fail(*_args: object, **_kwargs: object) -> str:
        raise SynthesisError("conflicting names")

    monkeypatch.setattr("exportkit.engine.synthesize", _fail)
    client = TestClient(create_app(lambda: engine))

    invalidated = client.post("/invalidate", json={"path": "src/lib/user.ts"})
    declarations = client.get("/declarations")

    assert invalidated.status_code == 200
    assert invalidated.json() == {"changed": True, "generation": None}
    assert declarations.status_code == 500
    assert declarations.json() == {"detail": "conflicting names"}
