"""
Schema registry for the entity store.

The registry is a configuration object: it is built once at process start,
usually by `ticketing.src.catalog.buildRegistry()`, and handed to the
`EntityStore`, which freezes it. It holds, per entity type:

- the pydantic document model used to validate writes,
- the key field and the declared indexes (the key is always unique),
- the status field with its transition table and terminal states,
- the whitelist of fields `update` may change,
- the append-only sequences and the immutable flag,
- the soft references discovered from `Reference` annotations.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, ValidationError

from ticketing.src import exceptions
from ticketing.src.functions import enumValue, referenceTarget
from ticketing.src.schemas import Violation


class IndexDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    fields: Tuple[str, ...]
    unique: bool = False

    @property
    def name(self) -> str:
        return ",".join(self.fields)


class EntityDefinition:
    """Everything the store needs to know about one entity type."""

    def __init__(
        self,
        name: str,
        model: type[BaseModel],
        key: str,
        collection: str,
        mutable: Iterable[str] = (),
        appendOnly: Iterable[str] = (),
        immutable: bool = False,
    ):
        self.name = name
        self.model = model
        self.key = key
        self.collection = collection
        self.mutable = frozenset(mutable)
        self.appendOnly = frozenset(appendOnly)
        self.immutable = immutable
        self.statusField: Optional[str] = None
        self.transitions: Dict[str, List[str]] = {}
        self.terminal: frozenset = frozenset()
        self.indexes: List[IndexDefinition] = [
            IndexDefinition(fields=(key,), unique=True)
        ]
        self.references: Dict[str, str] = {}
        for fieldName, field in model.model_fields.items():
            target = referenceTarget(field)
            if target is not None:
                self.references[fieldName] = target

    @property
    def uniqueIndexes(self) -> List[IndexDefinition]:
        return [index for index in self.indexes if index.unique]

    def indexedPaths(self) -> List[str]:
        """Distinct field paths used by any index, in declaration order."""
        paths: List[str] = []
        for index in self.indexes:
            for path in index.fields:
                if path not in paths:
                    paths.append(path)
        return paths

    def __repr__(self) -> str:
        return f"EntityDefinition({self.name!r}, collection={self.collection!r})"


class SchemaRegistry:
    def __init__(self):
        self._entities: Dict[str, EntityDefinition] = {}
        self._frozen = False

    # -----------------------------------------------------------------------
    # Declaration
    # -----------------------------------------------------------------------
    def register(
        self,
        entityType: str,
        schema: type[BaseModel],
        key: str,
        collection: Optional[str] = None,
        mutable: Iterable[str] = (),
        appendOnly: Iterable[str] = (),
        immutable: bool = False,
    ) -> EntityDefinition:
        """
        Register an entity type with its document model.

        Args:
            entityType (str): Name of the entity type, e.g. "ticket".
            schema (type[BaseModel]): Pydantic model validating documents.
            key (str): Identity field, implicitly a unique index.
            collection (Optional[str]): Collection name, defaults to
                `entityType + "s"`.
            mutable (Iterable[str]): Fields that `update` may change.
            appendOnly (Iterable[str]): List fields only `append` may grow.
            immutable (bool): Reject every write after creation.

        Returns:
            EntityDefinition: The new definition.

        Raises:
            ValueError: If the type is already registered or a named field
                does not exist on the model.
        """
        self._checkOpen()
        if entityType in self._entities:
            raise ValueError(f"Entity type '{entityType}' is already registered")
        mutable, appendOnly = list(mutable), list(appendOnly)
        for fieldName in (key, *mutable, *appendOnly):
            self._checkField(schema, fieldName)
        if key in mutable:
            raise ValueError(f"Key field '{key}' cannot be mutable")
        overlap = set(mutable) & set(appendOnly)
        if overlap:
            raise ValueError(f"Append-only fields {sorted(overlap)} cannot be mutable")

        definition = EntityDefinition(
            name=entityType,
            model=schema,
            key=key,
            collection=collection or f"{entityType}s",
            mutable=mutable,
            appendOnly=appendOnly,
            immutable=immutable,
        )
        self._entities[entityType] = definition
        return definition

    def declareIndex(
        self,
        entityType: str,
        fields: Union[str, Tuple[str, ...]],
        unique: bool = False,
    ) -> IndexDefinition:
        """
        Declare a single-field or compound index on an entity type.

        Declaring an index that already exists returns the existing one.
        A unique declaration upgrades an existing non-unique index.
        """
        self._checkOpen()
        definition = self.entity(entityType)
        if isinstance(fields, str):
            fields = (fields,)
        if not fields:
            raise ValueError("An index needs at least one field")
        for path in fields:
            self._checkField(definition.model, path.split(".")[0])

        index = IndexDefinition(fields=tuple(fields), unique=unique)
        for position, existing in enumerate(definition.indexes):
            if existing.fields == index.fields:
                if unique and not existing.unique:
                    definition.indexes[position] = index
                    return index
                return existing
        definition.indexes.append(index)
        return index

    def declareTransitions(
        self,
        entityType: str,
        field: str,
        transitions: Dict[Any, List[Any]],
        terminal: Iterable[Any],
    ):
        """
        Attach a forward-only status machine to an entity type.

        Args:
            entityType (str): Entity type owning the status field.
            field (str): Name of the status field.
            transitions (Dict[Any, List[Any]]): Allowed moves per state.
            terminal (Iterable[Any]): States accepting no further writes.
        """
        self._checkOpen()
        definition = self.entity(entityType)
        self._checkField(definition.model, field)
        if field in definition.mutable:
            raise ValueError(f"Status field '{field}' cannot be mutable")
        table = {
            enumValue(state): [enumValue(target) for target in targets]
            for state, targets in transitions.items()
        }
        terminal = frozenset(enumValue(state) for state in terminal)
        leaving = sorted(state for state in terminal if table.get(state))
        if leaving:
            raise ValueError(f"Terminal states {leaving} cannot have transitions")
        definition.statusField = field
        definition.transitions = table
        definition.terminal = terminal

    def freeze(self):
        self._frozen = True

    # -----------------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------------
    def entity(self, entityType: str) -> EntityDefinition:
        definition = self._entities.get(entityType)
        if definition is None:
            raise exceptions.UnknownEntityType(entityType)
        return definition

    def entityTypes(self) -> List[str]:
        return list(self._entities)

    def definitions(self) -> List[EntityDefinition]:
        return list(self._entities.values())

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------
    def validate(self, entityType: str, document: Any) -> List[Violation]:
        """
        Check a document against the schema of its entity type.

        This is a pure check: malformed input is reported, never raised.

        Args:
            entityType (str): Registered entity type.
            document (Any): A mapping or an instance of the document model.

        Returns:
            List[Violation]: Empty when the document is valid.

        Raises:
            exceptions.UnknownEntityType: If the type is not registered.
        """
        definition = self.entity(entityType)
        try:
            self._parse(definition, document)
        except ValidationError as e:
            return exceptions.violationsFrom(e)
        except TypeError as e:
            return [Violation(field="", reason=str(e))]
        return []

    def parse(self, entityType: str, document: Any) -> BaseModel:
        """
        Validate a document and return it as a model instance.

        Raises:
            exceptions.SchemaViolation: If the document is invalid.
            exceptions.UnknownEntityType: If the type is not registered.
        """
        definition = self.entity(entityType)
        try:
            return self._parse(definition, document)
        except ValidationError as e:
            raise exceptions.SchemaViolation(exceptions.violationsFrom(e))
        except TypeError as e:
            raise exceptions.SchemaViolation([Violation(field="", reason=str(e))])

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------
    def _parse(self, definition: EntityDefinition, document: Any) -> BaseModel:
        if isinstance(document, BaseModel):
            document = document.model_dump(exclude_unset=True)
        if not isinstance(document, dict):
            raise TypeError("A document must be a mapping of field names to values")
        return definition.model.model_validate(document)

    def _checkOpen(self):
        if self._frozen:
            raise RuntimeError("The registry is frozen once a store uses it")

    @staticmethod
    def _checkField(model: type[BaseModel], fieldName: str):
        if fieldName not in model.model_fields:
            raise ValueError(f"'{fieldName}' is not a field of {model.__name__}")
