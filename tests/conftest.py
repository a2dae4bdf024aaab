from copy import deepcopy
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.pool import StaticPool

from ticketing.src.catalog import buildRegistry
from ticketing.src.db import makeEngine
from ticketing.src.store import EntityStore


NOW = datetime(2026, 10, 16, 8, 30, tzinfo=timezone.utc)

VALID_DOCUMENTS = {
    "user": {
        "username": "alice",
        "email": "a@x.com",
        "password": "$argon2id$v=19$m=65536,t=3,p=4$c2FsdA$aGFzaA",
        "role": "PASSENGER",
        "fullName": "Alice Doe",
        "createdAt": NOW,
    },
    "route": {
        "routeId": "R1",
        "routeName": "Central - Airport",
        "transportType": "BUS",
        "startPoint": "Central",
        "endPoint": "Airport",
        "isActive": True,
    },
    "trip": {
        "tripId": "TR1",
        "routeId": "R1",
        "departureTime": NOW,
        "arrivalTime": NOW + timedelta(minutes=45),
    },
    "ticket": {
        "ticketId": "T1",
        "userId": "alice",
        "ticketType": "SINGLE",
        "status": "CREATED",
        "price": Decimal("2.50"),
    },
    "payment": {
        "paymentId": "P1",
        "userId": "alice",
        "ticketId": "T1",
        "amount": Decimal("2.50"),
        "method": "CARD",
        "status": "PENDING",
    },
    "notification": {
        "notificationId": "N1",
        "userId": "alice",
        "type": "TICKET_PURCHASED",
        "title": "Ticket purchased",
        "message": "Your ticket T1 is ready",
        "channels": ["EMAIL"],
    },
    "service_disruption": {
        "disruptionId": "D1",
        "title": "Signal failure",
        "severity": "HIGH",
        "status": "ACTIVE",
        "startTime": NOW,
    },
    "validation": {
        "validationId": "V1",
        "ticketId": "T1",
        "validatorId": "val1",
        "success": True,
        "validatedAt": NOW,
    },
    "analytics_report": {
        "reportId": "AR1",
        "reportType": "DAILY_SALES",
        "period": {"start": NOW - timedelta(days=1), "end": NOW},
        "metrics": {"ticketsSold": 10, "revenue": 25.0},
    },
    "system_log": {
        "logId": "L1",
        "service": "TICKETING_SERVICE",
        "level": "INFO",
        "message": "Ticket T1 created",
        "timestamp": NOW,
    },
}


@pytest.fixture
def validDocument():
    """Return a fresh valid document of an entity type, with overrides."""

    def build(entityType: str, **overrides) -> dict:
        document = deepcopy(VALID_DOCUMENTS[entityType])
        document.update(overrides)
        return document

    return build


@pytest.fixture
def registry():
    return buildRegistry()


@pytest.fixture
def store(registry):
    engine = makeEngine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = EntityStore(engine, registry)
    store.createTables()
    yield store
    store.dropTables()
    engine.dispose()
