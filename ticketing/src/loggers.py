import logging
from requests.exceptions import RequestException

from ticketing.src import openobserve
from ticketing.src.constants import OPENOBSERVE_ENABLED
from ticketing.src.registry import EntityDefinition

logger = logging.getLogger("ticketing.store")


def logEvent(
    definition: EntityDefinition,
    operation: str,
    data: dict,
    ship: bool = OPENOBSERVE_ENABLED,
) -> None:
    """
    Log a store event locally and, when enabled, to OpenObserve.

    Args:
        definition (EntityDefinition): Entity type the event concerns.
        operation (str): Store operation, e.g. "insert" or "transition".
        data (dict): Additional event-specific details to include in the log.
        ship (bool): Send the event to OpenObserve.

    Notes:
        - Automatically attaches `_entity`, `_operation` and `_collection`.
        - A failing OpenObserve request is logged as a warning; the write
          it describes has already been committed.
    """
    logDetails = {
        "_entity": definition.name,
        "_operation": operation,
        "_collection": definition.collection,
    }
    logDetails.update(data)
    logger.debug("%s %s %s", definition.name, operation, data)

    if not ship:
        return
    try:
        openobserve.logEvent(logDetails)
    except RequestException as e:
        logger.warning("OpenObserve rejected %s event: %s", operation, e)
