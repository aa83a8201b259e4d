"""Tree-sitter backed extraction and source transforms."""

from .extractor import DeclarationExtractor, extract
from .transforms import transform_env_imports
from .tree_sitter import ParseError

__all__ = ["DeclarationExtractor", "ParseError", "extract", "transform_env_imports"]
