"""ModelForge - metadata-driven models, fields and validation.

Usage:
    from modelforge import MetadataEngine, ModelFactory, YamlSourceLoader
    from modelforge.persistence import SQLiteStore

    engine = MetadataEngine(YamlSourceLoader(Path("metadata")))
    store = SQLiteStore(":memory:")
    store.connect()

    factory = ModelFactory(engine, store)
    book = factory.new("Books")
    book.populate_from_request({"title": "Dune", "isbn_10": "0306406152"})
    book.create()
"""

from modelforge.exceptions import (
    MetadataError,
    ModelForgeError,
    PersistenceError,
    StateError,
)
from modelforge.metadata import (
    DictSourceLoader,
    FieldDefinition,
    MetadataEngine,
    MetadataSource,
    ModelDefinition,
    YamlSourceLoader,
)
from modelforge.models import ModelEntity, ModelFactory, ValidationStatus
from modelforge.validation import ValidationEngine, ValidationResult, ValidationRule

__all__ = [
    # Errors
    "MetadataError",
    "ModelForgeError",
    "PersistenceError",
    "StateError",
    # Metadata
    "DictSourceLoader",
    "FieldDefinition",
    "MetadataEngine",
    "MetadataSource",
    "ModelDefinition",
    "YamlSourceLoader",
    # Models
    "ModelEntity",
    "ModelFactory",
    "ValidationStatus",
    # Validation
    "ValidationEngine",
    "ValidationResult",
    "ValidationRule",
]
