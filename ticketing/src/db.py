from sqlalchemy import (
    JSON,
    TEXT,
    Column,
    DateTime,
    Engine,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB

from ticketing.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
    SOFT_REFERENCE_TABLE,
)
from ticketing.src.functions import indexColumn
from ticketing.src.registry import EntityDefinition, SchemaRegistry


# Default DBMS URL
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
ORMbase = declarative_base()
DocumentBody = JSON().with_variant(JSONB(), "postgresql")


def makeEngine(url: str = dbURL, **kwargs) -> Engine:
    return create_engine(url=url, echo=False, **kwargs)


# ----------------------------------- Fixed DB Models -----------------------------------------#
class SoftReferenceRecord(ORMbase):
    """
    Represents an advisory link from one document to another.

    Links are recorded but never enforced: the target may not exist when
    the link is written, or ever. Neither side is deleted in cascade.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the link.

        source_type (String(64)):
            Entity type of the referencing document, e.g. "ticket".

        source_id (TEXT):
            Key of the referencing document.

        target_type (String(64)):
            Entity type of the referenced document, e.g. "user".

        target_id (TEXT):
            Key of the referenced document.

        created_on (DateTime):
            Timestamp indicating when the link was recorded.

    Constraints:
        UniqueConstraint (source_type, source_id, target_type, target_id):
            A link is recorded once.
    """

    __tablename__ = SOFT_REFERENCE_TABLE
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", "target_type", "target_id"),
        Index("ix_soft_reference_target", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True)
    source_type = Column(String(64), nullable=False)
    source_id = Column(TEXT, nullable=False)
    target_type = Column(String(64), nullable=False)
    target_id = Column(TEXT, nullable=False)
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Collection Tables ---------------------------------------#
def collectionTable(metadata: MetaData, definition: EntityDefinition) -> Table:
    """
    Build the table storing one collection.

    Every document is one row. The validated document lives in `body`;
    each indexed field path is extracted into its own `ix_*` text column so
    the database enforces unique indexes atomically and serves lookups.

    Columns:
        id (Integer):
            Primary key, internal row identifier.

        ix_<path> (TEXT):
            Canonical value of an indexed field path. NULL when absent.
            The key field column is not nullable.

        version (Integer):
            Incremented by every write, used for compare-and-set updates.

        body (JSON / JSONB):
            The document as validated by its schema.

        updated_on (DateTime):
            Timestamp automatically updated whenever the row is modified.

        created_on (DateTime):
            Timestamp indicating when the row was created.

    Constraints:
        One UniqueConstraint per unique index, one Index per other index.
    """
    columns = [Column("id", Integer, primary_key=True)]
    for path in definition.indexedPaths():
        columns.append(
            Column(indexColumn(path), TEXT, nullable=(path != definition.key))
        )
    columns += [
        Column("version", Integer, nullable=False, default=1),
        Column("body", DocumentBody, nullable=False),
        Column("updated_on", DateTime(timezone=True), onupdate=func.now()),
        Column("created_on", DateTime(timezone=True), nullable=False, default=func.now()),
    ]

    constraints = []
    for index in definition.indexes:
        suffix = "_".join(path.replace(".", "_") for path in index.fields)
        indexColumns = [indexColumn(path) for path in index.fields]
        if index.unique:
            constraints.append(
                UniqueConstraint(*indexColumns, name=f"uq_{definition.collection}_{suffix}")
            )
        else:
            constraints.append(
                Index(f"ix_{definition.collection}_{suffix}", *indexColumns)
            )
    return Table(definition.collection, metadata, *columns, *constraints)


def collectionTables(registry: SchemaRegistry) -> tuple[MetaData, dict[str, Table]]:
    """Build the tables of every registered entity type on a fresh MetaData."""
    metadata = MetaData()
    tables = {
        definition.name: collectionTable(metadata, definition)
        for definition in registry.definitions()
    }
    return metadata, tables
