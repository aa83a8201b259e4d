"""Configuration loading for exportkit (.exportkit.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".exportkit.yml"

EXPORT_MODES = ("individual", "grouped", "mixed")
GROUP_KEYS = ("file", "folder")

DEFAULT_INCLUDE_DIRS = ["src/lib"]
DEFAULT_INCLUDE_PATTERNS = ["**/*.{ts,js}", "**/*.svelte.{ts,js}"]
DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/*.test.ts",
    "**/*.spec.ts",
    "**/*.d.ts",
]
DEFAULT_VIRTUAL_MODULE_ID = "virtual:exportkit"
DEFAULT_DECLARATION_PATH = "src/exportkit.d.ts"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ExportStrategy:
    """How discovered exports are organised in the virtual module."""

    mode: str = "individual"
    group_by: str = "file"
    group_prefix: Optional[str] = None

    @property
    def grouped(self) -> bool:
        return self.mode in {"grouped", "mixed"}


@dataclass
class IncludeKinds:
    """Which declaration kinds are re-exported."""

    functions: bool = True
    classes: bool = True
    constants: bool = False


@dataclass
class ExportKitConfig:
    """Represents the settings defined in .exportkit.yml."""

    root: Path
    include_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_DIRS))
    include_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    export_strategy: ExportStrategy = field(default_factory=ExportStrategy)
    include_kinds: IncludeKinds = field(default_factory=IncludeKinds)
    virtual_module_id: str = DEFAULT_VIRTUAL_MODULE_ID
    declaration_path: Optional[Path] = None
    env_variables: List[str] = field(default_factory=list)
    cache_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.declaration_path is None:
            self.declaration_path = self.root / DEFAULT_DECLARATION_PATH


def load_config(config_path: Path) -> ExportKitConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ExportKitConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
    return config_from_mapping(data, root=root)


def config_from_mapping(data: Dict[str, Any], *, root: Path) -> ExportKitConfig:
    """Build a config from an already-parsed mapping (YAML or host-supplied)."""
    config = ExportKitConfig(root=root)

    include_dirs = _pick(data, "include_dirs", "includeDirs")
    if include_dirs is not None:
        config.include_dirs = _as_str_list(include_dirs)
    include_patterns = _pick(data, "include_patterns", "includePatterns", "include")
    if include_patterns is not None:
        config.include_patterns = _as_str_list(include_patterns)
    exclude_patterns = _pick(data, "exclude_patterns", "excludePatterns", "exclude")
    if exclude_patterns is not None:
        config.exclude_patterns = _as_str_list(exclude_patterns)

    strategy_data = _as_dict(_pick(data, "export_strategy", "exportStrategy"))
    if strategy_data:
        mode = _as_str(strategy_data.get("mode")) or "individual"
        if mode not in EXPORT_MODES:
            raise ConfigError(
                f"export_strategy.mode must be one of {', '.join(EXPORT_MODES)}; got {mode!r}"
            )
        group_by = _as_str(_pick(strategy_data, "group_by", "groupBy")) or "file"
        if group_by not in GROUP_KEYS:
            raise ConfigError(
                f"export_strategy.group_by must be one of {', '.join(GROUP_KEYS)}; got {group_by!r}"
            )
        config.export_strategy = ExportStrategy(
            mode=mode,
            group_by=group_by,
            group_prefix=_as_str(_pick(strategy_data, "group_prefix", "groupPrefix")),
        )

    kinds_data = _as_dict(_pick(data, "include_kinds", "includeKinds", "includeTypes"))
    if kinds_data:
        defaults = IncludeKinds()
        config.include_kinds = IncludeKinds(
            functions=_bool_or(kinds_data.get("functions"), defaults.functions),
            classes=_bool_or(kinds_data.get("classes"), defaults.classes),
            constants=_bool_or(kinds_data.get("constants"), defaults.constants),
        )

    module_id = _as_str(_pick(data, "virtual_module_id", "virtualModuleId"))
    if module_id:
        config.virtual_module_id = module_id

    if "declaration_path" in data or "declarationPath" in data:
        # An explicit null disables the declaration artifact.
        declaration = _as_str(_pick(data, "declaration_path", "declarationPath"))
        config.declaration_path = root / declaration if declaration else None

    env_data = _as_dict(data.get("env"))
    if env_data:
        config.env_variables = _dedupe(_as_str_list(env_data.get("variables")))

    cache = _as_str(_pick(data, "cache_path", "cachePath"))
    if cache:
        config.cache_path = root / cache

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _bool_or(value: Any, default: bool) -> bool:
    parsed = _as_bool(value)
    return default if parsed is None else parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


def _dedupe(values: List[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ExportKitConfig",
    "ExportStrategy",
    "IncludeKinds",
    "config_from_mapping",
    "load_config",
]
