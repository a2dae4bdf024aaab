from ticketing.src.catalog import buildRegistry
from ticketing.src.db import dbURL, makeEngine
from ticketing.src.store import EntityStore


def createStore(url: str = dbURL, **engineOptions) -> EntityStore:
    """
    Build an entity store over the ten transport ticketing collections.

    Args:
        url (str): SQLAlchemy database URL, PostgreSQL by default.
        **engineOptions: Extra keyword arguments for `create_engine`.

    Returns:
        EntityStore: A store with a fresh registry. Tables are not created.
    """
    return EntityStore(makeEngine(url, **engineOptions), buildRegistry())
