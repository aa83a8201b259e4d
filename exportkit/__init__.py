"""Virtual module generation for TypeScript/JavaScript source trees."""

from .config import ExportKitConfig, load_config
from .engine import ExportEngine

__all__ = ["ExportEngine", "ExportKitConfig", "load_config"]
