"""Shared fixtures: engine over the repo metadata, in-memory store, factory."""

from pathlib import Path

import pytest
import yaml

from modelforge.fields.password import PasswordHasher
from modelforge.metadata import CORE_FIELDS_TEMPLATE, MetadataEngine, YamlSourceLoader
from modelforge.models import ModelFactory
from modelforge.persistence import SQLiteStore, StaticUserProvider

# Path to the real metadata directory
REPO_ROOT = Path(__file__).resolve().parents[2]
METADATA_DIR = REPO_ROOT / "metadata"


@pytest.fixture
def core_fields():
    """The packaged core fields template as a plain dict."""
    with CORE_FIELDS_TEMPLATE.open() as fh:
        return yaml.safe_load(fh)


@pytest.fixture
def engine():
    return MetadataEngine(YamlSourceLoader(METADATA_DIR))


@pytest.fixture
def store():
    """Connected in-memory SQLite store."""
    store = SQLiteStore(":memory:")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def hasher():
    # Low work factor keeps the suite fast
    return PasswordHasher(rounds=1000)


@pytest.fixture
def factory(engine, store, hasher):
    """ModelFactory with every example model's table created."""
    factory = ModelFactory(engine, store, StaticUserProvider("user-1"), hasher)
    for name in factory.list_models():
        store.initialize_model(factory.new(name))
    return factory
