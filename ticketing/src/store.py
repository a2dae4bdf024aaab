"""
Schema-validated entity store.

Every write is validated against the registered schema before it reaches
the database. Unique indexes are database constraints, so two concurrent
inserts of the same key cannot both succeed; the loser is reported as a
`UniquenessViolation` naming the index and the document already holding
the value. Read-modify-write operations (`update`, `transition`, `append`)
compare-and-set on the row version and retry on a lost race, re-checking
their guards each time.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import Engine, and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from pydantic import BaseModel

from ticketing.src import exceptions
from ticketing.src.constants import (
    FIELD_CREATED_AT,
    FIELD_UPDATED_AT,
    MAX_WRITE_RETRIES,
)
from ticketing.src.db import ORMbase, collectionTables
from ticketing.src.functions import (
    enumValue,
    fieldValue,
    indexColumn,
    indexValue,
    isValidTransition,
    utcNow,
)
from ticketing.src.linker import ReferentialLinker
from ticketing.src.loggers import logEvent
from ticketing.src.registry import EntityDefinition, SchemaRegistry
from ticketing.src.schemas import Violation


class EntityStore:
    def __init__(
        self,
        engine: Engine,
        registry: SchemaRegistry,
        maxRetries: int = MAX_WRITE_RETRIES,
    ):
        registry.freeze()
        self.engine = engine
        self.registry = registry
        self.maxRetries = maxRetries
        self.metadata, self.tables = collectionTables(registry)
        self.sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
        self.linker = ReferentialLinker(self.sessionMaker, registry, self.tables)

    # -----------------------------------------------------------------------
    # Schema management
    # -----------------------------------------------------------------------
    def createTables(self):
        ORMbase.metadata.create_all(self.engine)
        self.metadata.create_all(self.engine)

    def dropTables(self):
        self.metadata.drop_all(self.engine)
        ORMbase.metadata.drop_all(self.engine)

    def validate(self, entityType: str, document: Any) -> List[Violation]:
        """
        Check a document as the registry does, without writing it.

        `insert` stamps `createdAt`/`updatedAt` before validating, so a
        required `createdAt` reported missing here does not fail an insert.
        """
        return self.registry.validate(entityType, document)

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------
    def insert(self, entityType: str, document: Any) -> BaseModel:
        """
        Validate and insert a new document.

        `createdAt` and `updatedAt` are stamped with the current time when
        the schema declares them and the document leaves them unset.

        Args:
            entityType (str): Registered entity type.
            document (Any): A mapping or an instance of the document model.

        Returns:
            BaseModel: The stored document.

        Raises:
            exceptions.SchemaViolation: If the document is invalid.
            exceptions.UniquenessViolation: If a unique index value is taken.
            exceptions.UnknownEntityType: If the type is not registered.
        """
        definition = self.registry.entity(entityType)
        if isinstance(document, BaseModel):
            document = document.model_dump(exclude_unset=True)
        if isinstance(document, dict):
            now = utcNow()
            document = self._stamp(definition, dict(document), FIELD_CREATED_AT, now)
            document = self._stamp(definition, document, FIELD_UPDATED_AT, now)
        parsed = self.registry.parse(entityType, document)
        values = self._rowValues(definition, parsed)
        table = self.tables[entityType]

        try:
            session = self.sessionMaker()
            session.execute(table.insert().values(version=1, **values))
            self.linker.recordDocument(session, definition, parsed)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            conflict = self._uniqueConflict(session, definition, values)
            if conflict is not None:
                raise conflict from e
            exceptions.handle(e)
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

        logEvent(definition, "insert", {definition.key: getattr(parsed, definition.key)})
        return parsed

    def update(self, entityType: str, key: str, changes: Dict[str, Any]) -> BaseModel:
        """
        Change whitelisted fields of a document.

        The merged document is revalidated and its unique indexes rechecked.

        Raises:
            exceptions.ImmutableDocument: If the entity type is immutable.
            exceptions.ImmutableField: If a field is not whitelisted.
            exceptions.SchemaViolation: If the merged document is invalid.
            exceptions.UniquenessViolation: If a unique index value is taken.
            exceptions.UnknownDocument: If no document has this key.
        """
        definition = self.registry.entity(entityType)
        if definition.immutable:
            raise exceptions.ImmutableDocument(entityType)
        for fieldName in changes:
            if fieldName not in definition.mutable:
                raise exceptions.ImmutableField(entityType, fieldName)

        def merge(current: BaseModel) -> dict:
            document = current.model_dump()
            document.update(changes)
            return document

        return self._modify(definition, key, merge, "update", {"fields": sorted(changes)})

    def transition(self, entityType: str, key: str, newStatus: Any) -> BaseModel:
        """
        Move a document's status forward along its transition table.

        Raises:
            exceptions.TerminalStateViolation: If the status is terminal.
            exceptions.InvalidStateTransition: If the move is not allowed.
            exceptions.ImmutableDocument: If the entity type is immutable.
            exceptions.UnknownDocument: If no document has this key.
        """
        definition = self.registry.entity(entityType)
        if definition.immutable:
            raise exceptions.ImmutableDocument(entityType)
        if definition.statusField is None:
            raise ValueError(f"Entity type '{entityType}' has no status machine")
        statusField = definition.statusField
        newStatus = enumValue(newStatus)

        def move(current: BaseModel) -> dict:
            state = enumValue(getattr(current, statusField))
            if state in definition.terminal:
                raise exceptions.TerminalStateViolation(entityType, state)
            if not isValidTransition(definition.transitions, state, newStatus):
                raise exceptions.InvalidStateTransition(entityType, state, newStatus)
            document = current.model_dump()
            document[statusField] = newStatus
            return document

        return self._modify(
            definition, key, move, "transition", {statusField: newStatus}
        )

    def append(self, entityType: str, key: str, field: str, item: Any) -> BaseModel:
        """
        Append one item to an append-only sequence of a document.

        Existing items are never rewritten; the new item goes last.

        Raises:
            exceptions.ImmutableDocument: If the entity type is immutable.
            exceptions.SchemaViolation: If the field is not append-only or
                the item is invalid.
            exceptions.UnknownDocument: If no document has this key.
        """
        definition = self.registry.entity(entityType)
        if definition.immutable:
            raise exceptions.ImmutableDocument(entityType)
        if field not in definition.appendOnly:
            raise exceptions.SchemaViolation(
                [Violation(field=field, reason="Not an append-only sequence")]
            )
        if isinstance(item, BaseModel):
            item = item.model_dump(exclude_unset=True)

        def extend(current: BaseModel) -> dict:
            document = current.model_dump()
            document[field] = list(document.get(field) or []) + [item]
            return document

        return self._modify(definition, key, extend, "append", {"field": field})

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------
    def get(self, entityType: str, key: str) -> BaseModel:
        """
        Fetch a document by its key.

        Raises:
            exceptions.UnknownDocument: If no document has this key.
        """
        definition = self.registry.entity(entityType)
        table = self.tables[entityType]
        try:
            session = self.sessionMaker()
            row = session.execute(
                select(table.c.body).where(self._keyColumn(definition) == key)
            ).first()
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

        if row is None:
            raise exceptions.UnknownDocument(entityType, key)
        return definition.model.model_validate(row.body)

    def find(
        self,
        entityType: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        **equals,
    ) -> List[BaseModel]:
        """
        Find documents whose fields equal the given values.

        Indexed field paths are matched by the database. Other paths are
        matched on the loaded documents. Dotted paths go in `filters`.

        Args:
            entityType (str): Registered entity type.
            filters (Optional[Dict[str, Any]]): Field path to value.
            limit (Optional[int]): Maximum number of documents.
            **equals: Top level field name to value.

        Returns:
            List[BaseModel]: Matching documents in insertion order.

        Example:
            >>> store.find("ticket", userId="alice", status=TicketStatus.PAID)
            >>> store.find("trip", {"currentLocation.stopId": "STOP_001"})
        """
        definition = self.registry.entity(entityType)
        table = self.tables[entityType]
        criteria = dict(filters or {})
        criteria.update(equals)

        indexed = set(definition.indexedPaths())
        query = select(table.c.body).order_by(table.c.id)
        residual = {}
        for path, value in criteria.items():
            if path in indexed:
                column = table.c[indexColumn(path)]
                canonical = indexValue(value)
                query = query.where(
                    column.is_(None) if canonical is None else column == canonical
                )
            else:
                residual[path] = indexValue(value)
        if limit is not None and not residual:
            query = query.limit(limit)

        try:
            session = self.sessionMaker()
            rows = session.execute(query).all()
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

        documents = []
        for row in rows:
            document = definition.model.model_validate(row.body)
            if residual:
                dumped = document.model_dump()
                if any(
                    indexValue(fieldValue(dumped, path)) != value
                    for path, value in residual.items()
                ):
                    continue
            documents.append(document)
            if limit is not None and len(documents) >= limit:
                break
        return documents

    def count(self, entityType: str) -> int:
        self.registry.entity(entityType)
        table = self.tables[entityType]
        try:
            session = self.sessionMaker()
            return session.execute(select(func.count()).select_from(table)).scalar_one()
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------
    def _modify(
        self,
        definition: EntityDefinition,
        key: str,
        mutate: Callable[[BaseModel], dict],
        operation: str,
        details: dict,
    ) -> BaseModel:
        table = self.tables[definition.name]
        for _ in range(self.maxRetries):
            try:
                session = self.sessionMaker()
                row = session.execute(
                    select(table.c.id, table.c.version, table.c.body).where(
                        self._keyColumn(definition) == key
                    )
                ).first()
                if row is None:
                    raise exceptions.UnknownDocument(definition.name, key)

                current = definition.model.model_validate(row.body)
                document = self._stamp(
                    definition, mutate(current), FIELD_UPDATED_AT, utcNow(), overwrite=True
                )
                parsed = self.registry.parse(definition.name, document)
                values = self._rowValues(definition, parsed)

                result = session.execute(
                    update(table)
                    .where(table.c.id == row.id, table.c.version == row.version)
                    .values(version=row.version + 1, **values)
                )
                if result.rowcount == 0:
                    session.rollback()
                    continue
                self.linker.recordDocument(session, definition, parsed)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                conflict = self._uniqueConflict(session, definition, values, row.id)
                if conflict is not None:
                    raise conflict from e
                exceptions.handle(e)
            except Exception as e:
                exceptions.handle(e)
            finally:
                session.close()

            logEvent(definition, operation, {definition.key: key, **details})
            return parsed

        raise exceptions.WriteConflict(definition.name, key)

    def _uniqueConflict(
        self,
        session: Session,
        definition: EntityDefinition,
        values: Dict[str, Any],
        excludeRowId: Optional[int] = None,
    ) -> Optional[exceptions.UniquenessViolation]:
        """Find the first unique index whose values another row holds."""
        table = self.tables[definition.name]
        keyColumn = self._keyColumn(definition)
        for index in definition.uniqueIndexes:
            columns = [indexColumn(path) for path in index.fields]
            if any(values[column] is None for column in columns):
                continue
            criteria = [table.c[column] == values[column] for column in columns]
            if excludeRowId is not None:
                criteria.append(table.c.id != excludeRowId)
            holder = session.execute(
                select(keyColumn).where(and_(*criteria)).limit(1)
            ).first()
            if holder is not None:
                return exceptions.UniquenessViolation(index.name, holder[0])
        return None

    def _rowValues(self, definition: EntityDefinition, document: BaseModel) -> dict:
        dumped = document.model_dump()
        values = {
            indexColumn(path): indexValue(fieldValue(dumped, path))
            for path in definition.indexedPaths()
        }
        values["body"] = document.model_dump(mode="json", exclude_none=True)
        return values

    def _keyColumn(self, definition: EntityDefinition):
        return self.tables[definition.name].c[indexColumn(definition.key)]

    @staticmethod
    def _stamp(
        definition: EntityDefinition,
        document: dict,
        fieldName: str,
        moment: datetime,
        overwrite: bool = False,
    ) -> dict:
        if fieldName not in definition.model.model_fields:
            return document
        if overwrite or document.get(fieldName) is None:
            document[fieldName] = moment
        return document
