"""FastAPI application exposing an :class:`ExportEngine` to out-of-process hosts."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from ..config import ConfigError, load_config
from ..engine import ExportEngine
from ..generation.synthesizer import SynthesisError

T = TypeVar("T")


class HealthResponse(BaseModel):
    status: str


class ResolveResponse(BaseModel):
    id: str
    resolved: Optional[str] = None


class InvalidateRequest(BaseModel):
    path: str


class InvalidateResponse(BaseModel):
    changed: bool
    generation: Optional[int] = None


class DiagnosticModel(BaseModel):
    kind: str
    message: str
    path: Optional[str] = None


class DiagnosticsResponse(BaseModel):
    generation: Optional[int] = None
    diagnostics: List[DiagnosticModel]


def _default_engine() -> ExportEngine:
    return ExportEngine(load_config(Path.cwd()))


def create_app(
    engine_factory: Callable[[], ExportEngine] = _default_engine,
) -> FastAPI:
    """Create the FastAPI application serving one engine instance."""

    app = FastAPI(title="exportkit", version="0.1.0")
    engine_lock = threading.Lock()
    holder: dict[str, ExportEngine] = {}

    def get_engine() -> ExportEngine:
        # The engine carries the cache across requests, so it is built once.
        with engine_lock:
            if "engine" not in holder:
                holder["engine"] = engine_factory()
            return holder["engine"]

    async def _run(func: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/resolve", response_model=ResolveResponse)
    async def resolve(
        module_id: str = Query(..., alias="id"),
        engine: ExportEngine = Depends(get_engine),
    ) -> ResolveResponse:
        if engine.module is None:
            await _run(engine.build)
        resolved = engine.resolve(module_id)
        return ResolveResponse(id=module_id, resolved=resolved)

    @app.get("/load", response_class=PlainTextResponse)
    async def load(
        module_id: str = Query(..., alias="id"),
        engine: ExportEngine = Depends(get_engine),
    ) -> PlainTextResponse:
        if engine.module is None:
            await _run(engine.build)
        resolved = engine.resolve(module_id) or module_id
        text = await _run(lambda: engine.load(resolved))
        if text is None:
            raise HTTPException(status_code=404, detail=f"Module {module_id} is not provided")
        return PlainTextResponse(text, media_type="application/javascript")

    @app.post("/invalidate", response_model=InvalidateResponse)
    async def invalidate(
        payload: InvalidateRequest,
        engine: ExportEngine = Depends(get_engine),
    ) -> InvalidateResponse:
        changed = await _run(lambda: engine.invalidate(payload.path))
        module = engine.module
        return InvalidateResponse(
            changed=changed, generation=module.generation if module is not None else None
        )

    @app.get("/declarations", response_class=PlainTextResponse)
    async def declarations(engine: ExportEngine = Depends(get_engine)) -> PlainTextResponse:
        module = engine.module or await _run(engine.build)
        if module is None and engine.last_error is not None:
            raise engine.last_error
        if module is None:
            raise HTTPException(status_code=404, detail="No module has been generated")
        return PlainTextResponse(module.declarations)

    @app.get("/diagnostics", response_model=DiagnosticsResponse)
    async def diagnostics(engine: ExportEngine = Depends(get_engine)) -> DiagnosticsResponse:
        module = engine.module
        return DiagnosticsResponse(
            generation=module.generation if module is not None else None,
            diagnostics=[
                DiagnosticModel(kind=item.kind, message=item.message, path=item.path)
                for item in engine.diagnostics
            ],
        )

    @app.exception_handler(SynthesisError)
    async def synthesis_error_handler(_: Any, exc: SynthesisError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    root: Path | None = None, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    import uvicorn

    config = load_config(root or Path.cwd())
    app = create_app(lambda: ExportEngine(config))
    uvicorn.run(app, host=host, port=port)
