"""
Soft references between documents of different entity types.

Collections are owned by different services, so no single store can
enforce that a referenced document exists. The linker records the links
declared by `Reference` annotated fields, plus any recorded explicitly,
and answers existence questions on demand. Nothing here blocks a write.
"""

from typing import Dict, List, Optional
from sqlalchemy import Table, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from pydantic import BaseModel

from ticketing.src import exceptions
from ticketing.src.db import SoftReferenceRecord
from ticketing.src.functions import indexColumn
from ticketing.src.loggers import logEvent
from ticketing.src.registry import EntityDefinition, SchemaRegistry
from ticketing.src.schemas import SoftReference


def _softReference(record: SoftReferenceRecord) -> SoftReference:
    return SoftReference(
        sourceType=record.source_type,
        sourceId=record.source_id,
        targetType=record.target_type,
        targetId=record.target_id,
    )


class ReferentialLinker:
    def __init__(
        self,
        sessionMaker: sessionmaker,
        registry: SchemaRegistry,
        tables: Dict[str, Table],
    ):
        self.sessionMaker = sessionMaker
        self.registry = registry
        self.tables = tables

    # -----------------------------------------------------------------------
    # Recording
    # -----------------------------------------------------------------------
    def link(
        self, sourceType: str, sourceId: str, targetType: str, targetId: str
    ) -> SoftReference:
        """
        Record a soft reference from one document to another.

        Neither document has to exist. Recording the same link twice is a
        no-op.

        Raises:
            exceptions.UnknownEntityType: If either type is not registered.
        """
        definition = self.registry.entity(sourceType)
        self.registry.entity(targetType)
        reference = SoftReference(
            sourceType=sourceType,
            sourceId=sourceId,
            targetType=targetType,
            targetId=targetId,
        )
        try:
            session = self.sessionMaker()
            created = self.record(session, sourceType, sourceId, targetType, targetId)
            session.commit()
        except IntegrityError:
            # Recorded concurrently by another writer
            session.rollback()
            created = False
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

        if created:
            logEvent(definition, "link", reference.model_dump())
        return reference

    def record(
        self,
        session: Session,
        sourceType: str,
        sourceId: str,
        targetType: str,
        targetId: str,
    ) -> bool:
        """
        Add a link inside the caller's session unless it already exists.

        Returns:
            bool: True if a new link was added.
        """
        existing = (
            session.query(SoftReferenceRecord)
            .filter(
                SoftReferenceRecord.source_type == sourceType,
                SoftReferenceRecord.source_id == sourceId,
                SoftReferenceRecord.target_type == targetType,
                SoftReferenceRecord.target_id == targetId,
            )
            .first()
        )
        if existing is not None:
            return False
        session.add(
            SoftReferenceRecord(
                source_type=sourceType,
                source_id=sourceId,
                target_type=targetType,
                target_id=targetId,
            )
        )
        session.flush()
        return True

    def recordDocument(
        self, session: Session, definition: EntityDefinition, document: BaseModel
    ) -> List[SoftReference]:
        """Record the links held by the reference fields of a document."""
        sourceId = getattr(document, definition.key)
        recorded = []
        for fieldName, targetType in definition.references.items():
            targetId = getattr(document, fieldName, None)
            if targetId is None:
                continue
            if self.record(session, definition.name, sourceId, targetType, targetId):
                recorded.append(
                    SoftReference(
                        sourceType=definition.name,
                        sourceId=sourceId,
                        targetType=targetType,
                        targetId=targetId,
                    )
                )
        return recorded

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------
    def resolve(self, targetType: str, targetId: str) -> bool:
        """
        Check whether a referenced document exists right now.

        The answer is advisory: the document may be created or the
        reference may become dangling immediately afterwards.

        Raises:
            exceptions.UnknownEntityType: If the type is not registered.
        """
        definition = self.registry.entity(targetType)
        table = self.tables[targetType]
        keyColumn = table.c[indexColumn(definition.key)]
        try:
            session = self.sessionMaker()
            found = session.execute(
                select(table.c.id).where(keyColumn == targetId).limit(1)
            ).first()
            return found is not None
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

    def references(self, sourceType: str, sourceId: str) -> List[SoftReference]:
        """Links recorded from one document, oldest first."""
        self.registry.entity(sourceType)
        return self._query(
            SoftReferenceRecord.source_type == sourceType,
            SoftReferenceRecord.source_id == sourceId,
        )

    def referrers(self, targetType: str, targetId: str) -> List[SoftReference]:
        """Links recorded towards one document, oldest first."""
        self.registry.entity(targetType)
        return self._query(
            SoftReferenceRecord.target_type == targetType,
            SoftReferenceRecord.target_id == targetId,
        )

    def dangling(self, sourceType: Optional[str] = None) -> List[SoftReference]:
        """
        Links whose target document does not exist.

        Args:
            sourceType (Optional[str]): Only check links from this type.

        Returns:
            List[SoftReference]: Unresolved links, oldest first.
        """
        criteria = []
        if sourceType is not None:
            self.registry.entity(sourceType)
            criteria.append(SoftReferenceRecord.source_type == sourceType)
        links = self._query(*criteria)

        existing: Dict[str, set] = {}
        try:
            session = self.sessionMaker()
            for targetType in {link.targetType for link in links}:
                definition = self.registry.entity(targetType)
                table = self.tables[targetType]
                keyColumn = table.c[indexColumn(definition.key)]
                wanted = {link.targetId for link in links if link.targetType == targetType}
                rows = session.execute(select(keyColumn).where(keyColumn.in_(wanted)))
                existing[targetType] = {row[0] for row in rows}
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()

        return [link for link in links if link.targetId not in existing[link.targetType]]

    def _query(self, *criteria) -> List[SoftReference]:
        try:
            session = self.sessionMaker()
            records = (
                session.query(SoftReferenceRecord)
                .filter(*criteria)
                .order_by(SoftReferenceRecord.id)
                .all()
            )
            return [_softReference(record) for record in records]
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()
