from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest
from pydantic import BaseModel

from ticketing.src.enums import TicketStatus
from ticketing.src.functions import (
    MISSING,
    fieldValue,
    indexColumn,
    indexValue,
    isValidTransition,
    modelFields,
    referenceTarget,
)
from ticketing.src.schemas import RouteRef, TicketRef, UserRef


@pytest.mark.parametrize(
    "value,expected",
    [
        (MISSING, None),
        (None, None),
        (True, "true"),
        (False, "false"),
        (TicketStatus.PAID, "PAID"),
        ("PAID", "PAID"),
        (Decimal("2.50"), "2.5"),
        (Decimal("2.5"), "2.5"),
        (2.5, "2.5"),
        (7, "7"),
        (Decimal("7.00"), "7"),
        (Decimal("1E+2"), "100"),
        (datetime(2026, 10, 16, 8, 30), "2026-10-16T08:30:00"),
        (datetime(2026, 10, 16, 8, 30, tzinfo=timezone.utc), "2026-10-16T08:30:00"),
        (
            datetime(2026, 10, 16, 10, 30, tzinfo=timezone(timedelta(hours=2))),
            "2026-10-16T08:30:00",
        ),
    ],
)
def test_index_value(value, expected):
    assert indexValue(value) == expected


def test_field_value():
    document = {
        "seats": {"capacity": 40, "currentOccupancy": 0},
        "currentLocation": None,
        "qrCode": None,
    }
    assert fieldValue(document, "seats.capacity") == 40
    assert fieldValue(document, "seats.currentOccupancy") == 0
    assert fieldValue(document, "currentLocation.stopId") is MISSING
    assert fieldValue(document, "qrCode") is MISSING
    assert fieldValue(document, "delayInfo") is MISSING


def test_index_column():
    assert indexColumn("ticketId") == "ix_ticketId"
    assert indexColumn("currentLocation.stopId") == "ix_currentLocation_stopId"


def test_is_valid_transition():
    transitions = {"CREATED": ["PAID"], "PAID": ["VALIDATED"]}
    assert isValidTransition(transitions, "CREATED", "PAID")
    assert not isValidTransition(transitions, "CREATED", "VALIDATED")
    assert not isValidTransition(transitions, "VALIDATED", "PAID")
    assert not isValidTransition({}, "CREATED", "PAID")


class Boarding(BaseModel):
    passenger: UserRef
    route: Optional[RouteRef] = None
    ticket: TicketRef | None = None
    gate: str


def test_reference_target():
    fields = Boarding.model_fields
    assert referenceTarget(fields["passenger"]) == "user"
    assert referenceTarget(fields["route"]) == "route"
    assert referenceTarget(fields["ticket"]) == "ticket"
    assert referenceTarget(fields["gate"]) is None


def test_model_fields():
    assert modelFields(Boarding, required=True) == ["passenger", "gate"]
    assert modelFields(Boarding, required=False) == ["route", "ticket"]
