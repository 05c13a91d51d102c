"""Tool catalog and built-in tool descriptors."""

from .builtin import BUILTIN_TOOLS, build_default_catalog
from .catalog import ParameterSpec, ToolCatalog, ToolDescriptor, ValidatedArguments

__all__ = [
    "BUILTIN_TOOLS",
    "ParameterSpec",
    "ToolCatalog",
    "ToolDescriptor",
    "ValidatedArguments",
    "build_default_catalog",
]
