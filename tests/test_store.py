from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import false, inspect

from ticketing.src import exceptions, store as storeModule
from ticketing.src.catalog import buildRegistry
from ticketing.src.db import makeEngine
from ticketing.src.enums import TicketStatus, UserRole
from ticketing.src.schemas import Route, Ticket
from ticketing.src.store import EntityStore


KEYED_ENTITIES = [
    (definition.name, definition.key) for definition in buildRegistry().definitions()
]


def freezeClock(monkeypatch, *moments):
    """Make the store stamp the given moments, one per call, then the last."""
    remaining = list(moments)

    def now():
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    monkeypatch.setattr(storeModule, "utcNow", now)


# ----------------------------------- Schema management --------------------------------------#
def test_collections_are_created_with_their_indexes(store):
    inspector = inspect(store.engine)
    tables = set(inspector.get_table_names())
    assert {"users", "tickets", "system_logs", "soft_reference"} <= tables

    uniques = {
        constraint["name"] for constraint in inspector.get_unique_constraints("users")
    }
    assert uniques == {"uq_users_username", "uq_users_email"}
    indexes = {index["name"] for index in inspector.get_indexes("tickets")}
    assert "ix_tickets_validFrom_validUntil" in indexes
    assert "ix_tickets_status_validUntil" in indexes


# ----------------------------------- Insert ---------------------------------------------------#
def test_insert_then_get(store, validDocument):
    inserted = store.insert("ticket", validDocument("ticket"))
    fetched = store.get("ticket", "T1")

    assert fetched.model_dump() == inserted.model_dump()
    assert fetched.status == TicketStatus.CREATED
    assert fetched.price == Decimal("2.50")
    assert fetched.createdAt is not None
    assert fetched.updatedAt == fetched.createdAt


def test_insert_keeps_given_creation_time(store, validDocument):
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    store.insert("user", validDocument("user", createdAt=created))
    assert store.get("user", "alice").createdAt == created


def test_insert_stamps_missing_creation_time(store, validDocument, monkeypatch):
    moment = datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)
    freezeClock(monkeypatch, moment)
    document = validDocument("user")
    del document["createdAt"]

    assert store.insert("user", document).createdAt == moment


def test_validate_reports_what_insert_would_stamp(store, validDocument):
    document = validDocument("user")
    del document["createdAt"]

    assert [violation.field for violation in store.validate("user", document)] == [
        "createdAt"
    ]
    assert store.insert("user", document).createdAt is not None


def test_insert_accepts_model_instances(store, validDocument):
    store.insert("route", Route(**validDocument("route")))
    assert store.get("route", "R1").routeName == "Central - Airport"


def test_insert_rejects_invalid_document(store, validDocument):
    with pytest.raises(exceptions.SchemaViolation) as error:
        store.insert("user", validDocument("user", role="DRIVER"))
    assert error.value.field == "role"
    assert store.count("user") == 0


@pytest.mark.parametrize("isActive", ["yes", 1])
def test_insert_rejects_coercible_values(store, validDocument, isActive):
    with pytest.raises(exceptions.SchemaViolation) as error:
        store.insert("route", validDocument("route", isActive=isActive))
    assert error.value.field == "isActive"
    assert store.count("route") == 0


def test_insert_unknown_entity_type(store):
    with pytest.raises(exceptions.UnknownEntityType):
        store.insert("coupon", {"code": "FREE"})


def test_extra_fields_survive_a_round_trip(store, validDocument):
    store.insert("route", validDocument("route", operator="CityBus"))
    assert store.get("route", "R1").model_extra == {"operator": "CityBus"}


# ----------------------------------- Uniqueness -----------------------------------------------#
@pytest.mark.parametrize("entityType,key", KEYED_ENTITIES)
def test_duplicate_key_is_rejected(store, validDocument, entityType, key):
    document = validDocument(entityType)
    store.insert(entityType, document)

    with pytest.raises(exceptions.UniquenessViolation) as error:
        store.insert(entityType, validDocument(entityType))

    assert error.value.field == key
    assert error.value.conflictingId == document[key]
    assert store.count(entityType) == 1


def test_duplicate_email_names_the_holder(store, validDocument):
    store.insert("user", validDocument("user"))

    with pytest.raises(exceptions.UniquenessViolation) as error:
        store.insert("user", validDocument("user", username="bob"))

    assert error.value.field == "email"
    assert error.value.conflictingId == "alice"


def test_duplicate_ticket_id(store, validDocument):
    store.insert("ticket", validDocument("ticket", status="CREATED"))

    with pytest.raises(exceptions.UniquenessViolation) as error:
        store.insert("ticket", validDocument("ticket", userId="bob", status="PAID"))

    assert error.value.field == "ticketId"
    assert store.get("ticket", "T1").userId == "alice"


def test_failed_insert_records_no_links(store, validDocument):
    store.insert("ticket", validDocument("ticket"))
    with pytest.raises(exceptions.UniquenessViolation):
        store.insert("ticket", validDocument("ticket", userId="bob"))
    assert store.linker.referrers("user", "bob") == []


# ----------------------------------- Update ---------------------------------------------------#
def test_update_whitelisted_fields(store, validDocument, monkeypatch):
    inserted = datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)
    updated = datetime(2026, 10, 16, 9, 5, tzinfo=timezone.utc)
    freezeClock(monkeypatch, inserted, updated)
    store.insert("user", validDocument("user"))

    user = store.update("user", "alice", {"email": "alice@x.com", "phoneNumber": "555"})

    assert user.email == "alice@x.com"
    assert user.updatedAt == updated
    fetched = store.get("user", "alice")
    assert fetched.phoneNumber == "555"
    assert fetched.updatedAt == updated
    assert fetched.role == UserRole.PASSENGER
    assert store.find("user", email="alice@x.com")[0].username == "alice"
    assert store.find("user", email="a@x.com") == []


@pytest.mark.parametrize("fieldName", ["username", "role", "createdAt"])
def test_update_rejects_fields_outside_the_whitelist(store, validDocument, fieldName):
    store.insert("user", validDocument("user"))
    with pytest.raises(exceptions.ImmutableField) as error:
        store.update("user", "alice", {fieldName: "x"})
    assert error.value.field == fieldName


def test_update_status_goes_through_transition(store, validDocument):
    store.insert("ticket", validDocument("ticket"))
    with pytest.raises(exceptions.ImmutableField):
        store.update("ticket", "T1", {"status": "PAID"})


def test_update_revalidates(store, validDocument):
    store.insert("user", validDocument("user"))
    with pytest.raises(exceptions.SchemaViolation) as error:
        store.update("user", "alice", {"accountBalance": "lots"})
    assert error.value.field == "accountBalance"
    assert store.get("user", "alice").accountBalance is None


def test_update_checks_unique_indexes(store, validDocument):
    store.insert("user", validDocument("user"))
    store.insert("user", validDocument("user", username="bob", email="b@x.com"))

    with pytest.raises(exceptions.UniquenessViolation) as error:
        store.update("user", "alice", {"email": "b@x.com"})

    assert error.value.field == "email"
    assert error.value.conflictingId == "bob"
    assert store.get("user", "alice").email == "a@x.com"


def test_update_keeping_own_unique_value(store, validDocument):
    store.insert("user", validDocument("user"))
    assert store.update("user", "alice", {"email": "a@x.com"}).email == "a@x.com"


def test_update_unknown_document(store):
    with pytest.raises(exceptions.UnknownDocument):
        store.update("user", "nobody", {"email": "n@x.com"})


def test_get_unknown_document(store):
    with pytest.raises(exceptions.UnknownDocument) as error:
        store.get("ticket", "T404")
    assert error.value.key == "T404"


@pytest.mark.parametrize("entityType", ["validation", "analytics_report", "system_log"])
def test_immutable_documents_reject_writes(store, validDocument, entityType):
    definition = store.registry.entity(entityType)
    store.insert(entityType, validDocument(entityType))
    key = validDocument(entityType)[definition.key]

    with pytest.raises(exceptions.ImmutableDocument):
        store.update(entityType, key, {})
    with pytest.raises(exceptions.ImmutableDocument):
        store.transition(entityType, key, "ANY")
    with pytest.raises(exceptions.ImmutableDocument):
        store.append(entityType, key, "details", {})


# ----------------------------------- Find -----------------------------------------------------#
@pytest.fixture
def tickets(store, validDocument):
    store.insert("ticket", validDocument("ticket"))
    store.insert(
        "ticket",
        validDocument(
            "ticket", ticketId="T2", userId="bob", status="PAID", tripId="TR1"
        ),
    )
    store.insert(
        "ticket",
        validDocument(
            "ticket",
            ticketId="T3",
            status="PAID",
            ticketType="DAY_PASS",
            price=Decimal("7"),
            tripId="TR1",
        ),
    )
    return store


def ticketIds(documents):
    return [document.ticketId for document in documents]


def test_find_on_indexed_fields(tickets):
    assert ticketIds(tickets.find("ticket", userId="alice")) == ["T1", "T3"]
    assert ticketIds(
        tickets.find("ticket", userId="alice", status=TicketStatus.PAID)
    ) == ["T3"]
    assert ticketIds(tickets.find("ticket", {"status": "PAID"})) == ["T2", "T3"]


def test_find_on_other_fields(tickets):
    assert ticketIds(tickets.find("ticket", ticketType="DAY_PASS")) == ["T3"]
    assert ticketIds(tickets.find("ticket", price=Decimal("2.5"))) == ["T1", "T2"]
    assert ticketIds(tickets.find("ticket", price=7)) == ["T3"]


def test_find_missing_values(tickets):
    assert ticketIds(tickets.find("ticket", tripId=None)) == ["T1"]
    assert ticketIds(tickets.find("ticket", qrCode=None)) == ["T1", "T2", "T3"]


def test_find_limit(tickets):
    assert ticketIds(tickets.find("ticket", limit=2)) == ["T1", "T2"]
    assert ticketIds(tickets.find("ticket", status="PAID", limit=1)) == ["T2"]
    assert ticketIds(tickets.find("ticket", ticketType="SINGLE", limit=1)) == ["T1"]


def test_find_nested_path(store, validDocument):
    store.insert("trip", validDocument("trip", seats={"capacity": 40}))
    store.insert("trip", validDocument("trip", tripId="TR2"))

    found = store.find("trip", {"seats.capacity": 40})
    assert [trip.tripId for trip in found] == ["TR1"]


def test_count(tickets):
    assert tickets.count("ticket") == 3
    assert tickets.count("payment") == 0


# ----------------------------------- Concurrency ----------------------------------------------#
def test_lost_races_end_in_write_conflict(store, validDocument, monkeypatch):
    store.insert("ticket", validDocument("ticket"))
    real = storeModule.update
    attempts = []

    def alwaysStale(table):
        attempts.append(table.name)
        return real(table).where(false())

    monkeypatch.setattr(storeModule, "update", alwaysStale)

    with pytest.raises(exceptions.WriteConflict):
        store.transition("ticket", "T1", "PAID")
    assert len(attempts) == store.maxRetries

    monkeypatch.setattr(storeModule, "update", real)
    assert store.get("ticket", "T1").status == TicketStatus.CREATED


def test_write_succeeds_after_a_lost_race(store, validDocument, monkeypatch):
    store.insert("ticket", validDocument("ticket"))
    real = storeModule.update
    attempts = []

    def staleOnce(table):
        attempts.append(table.name)
        if len(attempts) == 1:
            return real(table).where(false())
        return real(table)

    monkeypatch.setattr(storeModule, "update", staleOnce)

    assert store.transition("ticket", "T1", "PAID").status == TicketStatus.PAID
    assert len(attempts) == 2


@pytest.fixture
def fileStore(tmp_path, registry):
    engine = makeEngine(f"sqlite:///{tmp_path / 'store.db'}")
    store = EntityStore(engine, registry)
    store.createTables()
    yield store
    store.dropTables()
    engine.dispose()


def test_status_guard_is_rechecked_after_a_lost_race(
    fileStore, validDocument, monkeypatch
):
    fileStore.insert("ticket", validDocument("ticket"))
    real = storeModule.update
    attempts = []

    def cancelledMeanwhile(table):
        attempts.append(table.name)
        if len(attempts) == 1:
            # Another writer cancels the ticket between our read and write
            monkeypatch.setattr(storeModule, "update", real)
            fileStore.transition("ticket", "T1", "CANCELLED")
            monkeypatch.setattr(storeModule, "update", cancelledMeanwhile)
        return real(table)

    monkeypatch.setattr(storeModule, "update", cancelledMeanwhile)

    with pytest.raises(exceptions.TerminalStateViolation) as error:
        fileStore.transition("ticket", "T1", "PAID")
    assert error.value.currentState == "CANCELLED"
    assert fileStore.get("ticket", "T1").status == TicketStatus.CANCELLED


def test_tickets_round_trip_as_models(store, validDocument):
    ticket = Ticket(**validDocument("ticket"))
    store.insert("ticket", ticket)
    assert store.get("ticket", "T1").ticketId == ticket.ticketId


def test_racing_inserts_of_one_key(fileStore, validDocument):
    start = Barrier(2)

    def insert(userId):
        start.wait()
        try:
            fileStore.insert("ticket", validDocument("ticket", userId=userId))
            return userId
        except exceptions.UniquenessViolation as e:
            return e

    with ThreadPoolExecutor(max_workers=2) as executor:
        outcomes = list(executor.map(insert, ["alice", "bob"]))

    winners = [outcome for outcome in outcomes if isinstance(outcome, str)]
    losers = [outcome for outcome in outcomes if not isinstance(outcome, str)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].field == "ticketId"
    assert losers[0].conflictingId == "T1"
    assert fileStore.get("ticket", "T1").userId == winners[0]
    assert fileStore.count("ticket") == 1
