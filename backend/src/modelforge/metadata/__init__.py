"""Metadata layer - sources, merging and definition types."""

from modelforge.metadata.definitions import FieldDefinition, ModelDefinition
from modelforge.metadata.engine import MetadataEngine
from modelforge.metadata.sources import (
    CORE_FIELDS_TEMPLATE,
    DictSourceLoader,
    MetadataSource,
    MetadataSourceLoader,
    YamlSourceLoader,
)

__all__ = [
    "CORE_FIELDS_TEMPLATE",
    "DictSourceLoader",
    "FieldDefinition",
    "MetadataEngine",
    "MetadataSource",
    "MetadataSourceLoader",
    "ModelDefinition",
    "YamlSourceLoader",
]
