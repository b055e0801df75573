"""Where command definitions are read from."""

from .convex import ConvexDefinitionSource
from .factory import build_definition_source, close_definition_source
from .yaml_source import YamlDefinitionSource

__all__ = [
    "ConvexDefinitionSource",
    "YamlDefinitionSource",
    "build_definition_source",
    "close_definition_source",
]
