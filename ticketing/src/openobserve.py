import json, requests
from requests import Response
from requests.auth import HTTPBasicAuth

from ticketing.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_TIMEOUT,
    OPENOBSERVE_USERNAME,
)

streamURL = (
    f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
    f"/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"
)
auth = HTTPBasicAuth(OPENOBSERVE_USERNAME, OPENOBSERVE_PASSWORD)


def logEvent(eventData: dict) -> Response:
    """
    Ship one store event to the OpenObserve stream.

    Decimals and datetimes inside the event are sent as strings.

    Args:
        eventData (dict): The event, as built by `loggers.logEvent`.
            Example:
                {
                    "_entity": "ticket",
                    "_operation": "transition",
                    "_collection": "tickets",
                    "ticketId": "T1",
                    "status": "PAID"
                }

    Returns:
        requests.Response: The accepted response.

    Raises:
        requests.HTTPError: If OpenObserve rejects the event.
    """
    response = requests.post(
        streamURL,
        auth=auth,
        headers={"Content-type": "application/json"},
        data=json.dumps([eventData], default=str),
        timeout=OPENOBSERVE_TIMEOUT,
    )
    response.raise_for_status()
    return response
