"""Metadata source loaders.

A loader returns the raw definition sources for a model in merge order:
the shared core-fields source first, then the model's own source. The
engine does not care whether sources come from files, a cache or memory.
"""

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from modelforge.exceptions import MetadataError

logger = logging.getLogger(__name__)

CORE_FIELDS_TEMPLATE = Path(__file__).parent / "templates" / "core_fields.yaml"


@dataclass(frozen=True)
class MetadataSource:
    """One raw metadata document.

    Attributes:
        name: Where the data came from (file path or label), for error reporting
        data: The parsed document
    """

    name: str
    data: Any


@runtime_checkable
class MetadataSourceLoader(Protocol):
    """Interface for anything that can supply metadata sources."""

    def load_sources(self, model_name: str) -> list[MetadataSource]: ...

    def list_models(self) -> list[str]: ...


def load_yaml_source(path: Path, model_name: str | None = None) -> MetadataSource:
    """Parse a YAML file into a MetadataSource.

    Raises:
        MetadataError: If the file is missing or is not valid YAML
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise MetadataError(
            f"Cannot read metadata source {path}: {exc}",
            model_name=model_name,
            source=str(path),
        ) from exc
    except yaml.YAMLError as exc:
        raise MetadataError(
            f"Invalid YAML in metadata source {path}: {exc}",
            model_name=model_name,
            source=str(path),
        ) from exc
    return MetadataSource(name=str(path), data=data)


class YamlSourceLoader:
    """Loads metadata from YAML files.

    Layout:
        <metadata_path>/models/<model>.yaml   model-specific source

    The core fields template shipped with the package is always loaded
    first unless another path (or None to disable) is given.
    """

    def __init__(
        self,
        metadata_path: Path,
        core_fields_path: Path | None = CORE_FIELDS_TEMPLATE,
    ):
        self.metadata_path = Path(metadata_path)
        self.core_fields_path = core_fields_path

    @property
    def models_path(self) -> Path:
        return self.metadata_path / "models"

    def load_sources(self, model_name: str) -> list[MetadataSource]:
        sources: list[MetadataSource] = []
        if self.core_fields_path is not None:
            sources.append(load_yaml_source(Path(self.core_fields_path), model_name))

        model_file = self._find_model_file(model_name)
        if model_file is None:
            raise MetadataError(
                f"No metadata file found for model '{model_name}' in {self.models_path}",
                model_name=model_name,
                source=str(self.models_path),
            )
        sources.append(load_yaml_source(model_file, model_name))

        logger.debug(
            "Loaded %d metadata source(s) for %s", len(sources), model_name
        )
        return sources

    def list_models(self) -> list[str]:
        """List model names declared by the YAML files (file stem as fallback)."""
        if not self.models_path.is_dir():
            return []
        names = []
        for yaml_file in sorted(self.models_path.glob("*.yaml")):
            source = load_yaml_source(yaml_file)
            if isinstance(source.data, dict) and source.data.get("name"):
                names.append(str(source.data["name"]))
            else:
                names.append(yaml_file.stem)
        return names

    def _find_model_file(self, model_name: str) -> Path | None:
        if not self.models_path.is_dir():
            return None

        exact = self.models_path / f"{model_name}.yaml"
        if exact.exists():
            return exact

        wanted = model_name.lower()
        for yaml_file in sorted(self.models_path.glob("*.yaml")):
            if yaml_file.stem.lower() == wanted:
                return yaml_file

        # Fall back to the declared name inside each file
        for yaml_file in sorted(self.models_path.glob("*.yaml")):
            source = load_yaml_source(yaml_file)
            if isinstance(source.data, dict) and str(source.data.get("name", "")).lower() == wanted:
                return yaml_file
        return None


class DictSourceLoader:
    """Serves metadata from in-memory dicts.

    Example:
        loader = DictSourceLoader(
            {"Books": {"name": "Books", "fields": {...}}},
            core_fields={"fields": {"id": {...}}},
        )
    """

    def __init__(
        self,
        models: dict[str, Any],
        core_fields: Any = None,
    ):
        self.models = models
        self.core_fields = core_fields

    def load_sources(self, model_name: str) -> list[MetadataSource]:
        if model_name not in self.models:
            raise MetadataError(
                f"No metadata registered for model '{model_name}'",
                model_name=model_name,
                source="memory",
            )
        sources = []
        if self.core_fields is not None:
            sources.append(MetadataSource(name="core_fields", data=copy.deepcopy(self.core_fields)))
        sources.append(MetadataSource(name=f"memory:{model_name}", data=copy.deepcopy(self.models[model_name])))
        return sources

    def list_models(self) -> list[str]:
        return list(self.models.keys())
