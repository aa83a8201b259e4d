"""Scan, extract and synthesize pipeline behind a narrow host capability.

A host build tool talks to :class:`ExportEngine` through three calls:
``resolve`` (does the engine own this module id?), ``load`` (module text for
an owned id) and ``invalidate`` (a file changed; did the module change?).
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config import ExportKitConfig
from .generation.declarations import emit_declarations
from .generation.planner import plan_module
from .generation.synthesizer import SynthesisError, synthesize
from .logging import get_logger, log_pass
from .models import Diagnostic, ExtractionResult, VirtualModule
from .scanner import DirectoryScanner
from .stores.file_cache import FileCache, PassAbandoned

RESOLVED_PREFIX = "\0"

ChangeListener = Callable[[VirtualModule], None]


class ExportEngine:
    """Owns the file cache and the current virtual module generation.

    Passes are serialized; a request arriving while a pass is reading files
    supersedes it, and the superseded pass publishes nothing. The published
    :class:`VirtualModule` is immutable and replaced in a single assignment.
    """

    def __init__(
        self,
        config: ExportKitConfig,
        *,
        cache: Optional[FileCache] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.config = config
        self.logger = get_logger("engine")
        self.scanner = DirectoryScanner(config.root)
        self.cache = cache if cache is not None else FileCache(config.cache_path)
        self.max_workers = max_workers
        self._pass_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._generation = 0
        self._module: Optional[VirtualModule] = None
        self._last_error: Optional[SynthesisError] = None
        self._scan_diagnostics: List[Diagnostic] = []
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------
    # Host capability

    @property
    def module_id(self) -> str:
        return self.config.virtual_module_id

    @property
    def resolved_id(self) -> str:
        return f"{RESOLVED_PREFIX}{self.module_id}"

    @property
    def module(self) -> Optional[VirtualModule]:
        """The last complete generation, or None before the first build."""
        return self._module

    def resolve(self, module_id: str) -> Optional[str]:
        """Return the resolved id when this engine owns ``module_id``."""
        if module_id in {self.module_id, self.resolved_id}:
            return self.resolved_id
        requested = module_id[len(RESOLVED_PREFIX) :] if module_id.startswith(RESOLVED_PREFIX) else module_id
        prefix = f"{self.module_id}/"
        if requested.startswith(prefix):
            if self._source_path(requested[len(prefix) :]) is not None:
                return f"{RESOLVED_PREFIX}{requested}"
        return None

    def load(self, resolved_id: str) -> Optional[str]:
        """Return module text for an owned id, or None when the id is not ours.

        Raises :class:`SynthesisError` when the most recent generation of the
        virtual module failed; served source copies are unaffected.
        """
        if resolved_id == self.resolved_id:
            module = self._module or self.build()
            if self._last_error is not None:
                raise self._last_error
            if module is None:
                return None
            return module.code
        prefix = f"{self.resolved_id}/"
        if resolved_id.startswith(prefix):
            path = self._source_path(resolved_id[len(prefix) :])
            if path is not None:
                return self.cache.transformed_text(path)
        return None

    def invalidate(self, path: str) -> bool:
        """Refresh state for a changed file and report whether the module changed."""
        target = self._absolute(path)
        generation = self._next_generation()
        with self._pass_lock:
            previous = self._module
            if previous is None:
                try:
                    module, changed = self._full_pass(generation)
                except SynthesisError:
                    # ``load`` surfaces the error to the host.
                    return True
                notify = changed
            else:
                updated = self._update_file(target)
                if updated is None:
                    return False
                try:
                    module, notify = self._publish(updated, generation)
                except SynthesisError:
                    return True
                changed = module.code != previous.code
        if notify and module is not None:
            self._notify(module)
        return changed

    def on_change(self, listener: ChangeListener) -> None:
        """Register a callback invoked with each new generation whose text changed."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Passes

    def build(self) -> Optional[VirtualModule]:
        """Run a full scan pass and return the published generation.

        When synthesis fails the previous generation stays published and is
        returned (None before any success); the failure is kept in
        :attr:`last_error` and raised by ``load``.
        """
        generation = self._next_generation()
        with self._pass_lock:
            try:
                module, changed = self._full_pass(generation)
            except SynthesisError:
                return self._module
        if module is None:
            # Superseded; the newer pass publishes its own generation.
            current = self._module
            if current is None:
                return self.build()
            return current
        if changed:
            self._notify(module)
        return module

    def write_declarations(self) -> Optional[Path]:
        """Write the current declaration text to the configured path."""
        module = self._module or self.build()
        if module is None:
            return None
        return self._write_declarations(module)

    @property
    def last_error(self) -> Optional[SynthesisError]:
        """The synthesis failure of the latest pass, or None after a success."""
        return self._last_error

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        module = self._module
        return module.diagnostics if module is not None else tuple(self._scan_diagnostics)

    def module_specifier(self, path: str) -> str:
        """Return the import specifier the virtual module uses for ``path``."""
        try:
            relative = Path(path).resolve().relative_to(self.config.root.resolve()).as_posix()
        except ValueError:
            return Path(path).as_posix()
        return f"{self.module_id}/{relative}"

    def _full_pass(self, generation: int) -> Tuple[Optional[VirtualModule], bool]:
        started = time.perf_counter()
        cfg = self.config
        paths = self.scanner.scan(cfg.include_dirs, cfg.include_patterns, cfg.exclude_patterns)
        self._scan_diagnostics = list(self.scanner.diagnostics)
        try:
            results = self.cache.refresh(
                paths,
                max_workers=self.max_workers,
                cancelled=lambda: self._generation != generation,
            )
        except PassAbandoned:
            self.logger.debug("Pass %d abandoned for a newer request", generation)
            return None, False
        module, changed = self._publish(dict(results), generation)
        self.cache.persist()
        log_pass(self.logger, generation, started, files=len(paths), exports=len(module.exports))
        return module, changed

    def _update_file(self, target: str) -> Optional[Dict[str, ExtractionResult]]:
        cfg = self.config
        is_candidate = Path(target).is_file() and self.scanner.is_candidate(
            target, cfg.include_dirs, cfg.include_patterns, cfg.exclude_patterns
        )
        results: Dict[str, ExtractionResult] = {}
        if is_candidate:
            results[target] = self.cache.get_or_extract(target)
        elif not self.cache.evict(target):
            return None
        for cached in self.cache.paths():
            entry = self.cache.entry(cached)
            if entry is not None and cached not in results:
                results[cached] = entry.result
        return results

    def _publish(
        self, results: Dict[str, ExtractionResult], generation: int
    ) -> Tuple[VirtualModule, bool]:
        cfg = self.config
        plan = plan_module(
            list(results.items()),
            strategy=cfg.export_strategy,
            kinds=cfg.include_kinds,
            extra_env=cfg.env_variables,
            root=cfg.root,
        )
        specifiers = {exports.path: self.module_specifier(exports.path) for exports in plan.files}
        try:
            code = synthesize(plan, specifiers)
            declarations = emit_declarations(plan, cfg.virtual_module_id)
        except SynthesisError as exc:
            self.logger.error("Failed to generate %s: %s", cfg.virtual_module_id, exc)
            self._last_error = exc
            raise
        module = VirtualModule(
            module_id=cfg.virtual_module_id,
            code=code,
            declarations=declarations,
            exports=tuple(plan.export_names),
            env_vars=tuple(plan.env_vars),
            diagnostics=tuple(self._scan_diagnostics) + tuple(plan.diagnostics),
            generation=generation,
        )
        previous = self._module
        self._module = module
        self._last_error = None
        changed = (
            previous is None
            or previous.code != module.code
            or previous.declarations != module.declarations
        )
        if changed:
            self._write_declarations(module)
        return module, changed

    def _write_declarations(self, module: VirtualModule) -> Optional[Path]:
        target = self.config.declaration_path
        if target is None:
            return None
        try:
            if target.exists() and target.read_text(encoding="utf-8") == module.declarations:
                self.logger.debug("Declarations at %s already up to date", target)
                return target
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(module.declarations, encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Unable to write declarations to %s: %s", target, exc)
            return None
        self.logger.info("Declarations written to %s", target)
        return target

    # ------------------------------------------------------------------
    # Internal helpers

    def _next_generation(self) -> int:
        with self._counter_lock:
            self._generation += 1
            return self._generation

    def _notify(self, module: VirtualModule) -> None:
        for listener in list(self._listeners):
            listener(module)

    def _absolute(self, path: str) -> str:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.config.root / candidate
        return str(candidate.resolve())

    def _source_path(self, relative: str) -> Optional[str]:
        path = self._absolute(relative)
        return path if path in self.cache else None


__all__ = ["ChangeListener", "ExportEngine", "RESOLVED_PREFIX"]
