"""ModelFactory: builds ModelEntity instances by model name."""

import logging
from typing import Any

from modelforge.fields.factory import FieldFactory
from modelforge.fields.password import PasswordHasher
from modelforge.metadata.definitions import ModelDefinition
from modelforge.metadata.engine import MetadataEngine
from modelforge.models.base import ModelEntity
from modelforge.persistence.store import CurrentUserProvider, PersistenceStore

logger = logging.getLogger(__name__)


class ModelFactory:
    """Wires the metadata engine, field factory and collaborators together.

    Resolved model definitions are cached per factory; create a new factory
    to pick up metadata changes.

    Example:
        factory = ModelFactory(MetadataEngine(YamlSourceLoader(path)), store)
        user = factory.new("Users")
        user.populate_from_request({"username": "ada@example.com"})
        user.create()
    """

    def __init__(
        self,
        engine: MetadataEngine,
        store: PersistenceStore | None = None,
        current_user_provider: CurrentUserProvider | None = None,
        password_hasher: PasswordHasher | None = None,
    ):
        self.engine = engine
        self.store = store
        self.current_user_provider = current_user_provider
        self.field_factory = FieldFactory(
            store=store,
            model_resolver=self.get_definition,
            password_hasher=password_hasher,
        )
        self._definitions: dict[str, ModelDefinition] = {}
        self._model_classes: dict[str, type[ModelEntity]] = {}

    def get_definition(self, model_name: str) -> ModelDefinition:
        if model_name not in self._definitions:
            self._definitions[model_name] = self.engine.resolve_model(model_name)
        return self._definitions[model_name]

    def register_model_class(self, model_name: str, model_class: type[ModelEntity]) -> None:
        """Use ``model_class`` (a ModelEntity subclass) for ``model_name``."""
        if not issubclass(model_class, ModelEntity):
            raise TypeError(f"{model_class.__name__} is not a ModelEntity subclass")
        self._model_classes[model_name] = model_class

    def new(self, model_name: str) -> ModelEntity:
        """Build a fresh, transient instance of ``model_name``.

        Raises:
            MetadataError: If the model's metadata cannot be resolved
        """
        definition = self.get_definition(model_name)
        model_class = self._model_classes.get(model_name, ModelEntity)
        return model_class(
            definition,
            self.field_factory,
            self.store,
            self.current_user_provider,
        )

    def retrieve(self, model_name: str, record_id: str) -> ModelEntity | None:
        """Load a stored record, or None when it does not exist."""
        model = self.new(model_name)
        if not model.retrieve(record_id):
            logger.debug("%s %s not found", model_name, record_id)
            return None
        return model

    # Finders by model name; each runs against a throwaway prototype instance

    def find(
        self,
        model_name: str,
        criteria: dict[str, Any] | None = None,
        order_by: list[dict[str, str]] | None = None,
        limit: int | None = None,
        offset: int = 0,
        include_deleted: bool = False,
    ) -> list[ModelEntity]:
        return self.new(model_name).find(criteria, order_by, limit, offset, include_deleted)

    def find_by_id(self, model_name: str, record_id: Any, include_deleted: bool = False) -> ModelEntity | None:
        return self.new(model_name).find_by_id(record_id, include_deleted)

    def find_first(
        self,
        model_name: str,
        criteria: dict[str, Any] | None = None,
        order_by: list[dict[str, str]] | None = None,
        include_deleted: bool = False,
    ) -> ModelEntity | None:
        return self.new(model_name).find_first(criteria, order_by, include_deleted)

    def find_all(
        self,
        model_name: str,
        order_by: list[dict[str, str]] | None = None,
        include_deleted: bool = False,
    ) -> list[ModelEntity]:
        return self.new(model_name).find_all(order_by, include_deleted)

    def list_models(self) -> list[str]:
        return self.engine.list_models()
