import argparse
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from ticketing.main import createStore
from ticketing.src import argon2
from ticketing.src.db import dbURL
from ticketing.src.store import EntityStore
from ticketing.src.enums import TransportType, TripStatus, UserRole, Weekday
from ticketing.src.constants import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    ENTITY_ROUTE,
    ENTITY_TRIP,
    ENTITY_USER,
    SAMPLE_ROUTE_ID,
    SAMPLE_TRIP_ID,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables(store: EntityStore):
    store.dropTables()
    print("* All collections deleted")


def createTables(store: EntityStore):
    store.createTables()
    for definition in store.registry.definitions():
        print(f"* Created {definition.collection} collection with indexes")


def initDB(store: EntityStore):
    admin = {
        "username": ADMIN_USERNAME,
        "email": ADMIN_EMAIL,
        "password": argon2.makePassword(ADMIN_PASSWORD),
        "role": UserRole.ADMIN,
        "fullName": "Transport admin",
        "accountBalance": Decimal("0"),
        "notifications": {"email": True, "sms": False, "push": False},
    }
    store.insert(ENTITY_USER, admin)
    print("* Created admin user")


def testDB(store: EntityStore):
    route = {
        "routeId": SAMPLE_ROUTE_ID,
        "routeName": "Airport Express",
        "transportType": TransportType.TRAIN,
        "startPoint": "Central Station",
        "endPoint": "Airport Terminal 2",
        "intermediateStops": [
            {"stopId": "STOP_001", "stopName": "Central Station", "sequence": 1},
            {"stopId": "STOP_002", "stopName": "Airport Terminal 1", "sequence": 2},
            {"stopId": "STOP_003", "stopName": "Airport Terminal 2", "sequence": 3},
        ],
        "isActive": True,
    }
    store.insert(ENTITY_ROUTE, route)
    print("* Created sample route")

    today = datetime.now(timezone.utc).date()
    departure = datetime.combine(today, time(6, 0), tzinfo=timezone.utc)
    trip = {
        "tripId": SAMPLE_TRIP_ID,
        "routeId": SAMPLE_ROUTE_ID,
        "departureTime": departure,
        "arrivalTime": departure + timedelta(minutes=45),
        "status": TripStatus.SCHEDULED,
        "days": list(Weekday),
        "seats": {"capacity": 200, "currentOccupancy": 0},
    }
    store.insert(ENTITY_TRIP, trip)
    print("* Created sample trip")


def main(argv=None) -> EntityStore:
    parser = argparse.ArgumentParser()
    parser.add_argument("-rm", action="store_true", help="remove collections")
    parser.add_argument("-cr", action="store_true", help="create collections")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add sample data")
    parser.add_argument("--url", default=dbURL, help="database URL")
    args = parser.parse_args(argv)

    store = createStore(args.url)
    if args.cr:
        createTables(store)
    if args.init:
        initDB(store)
    if args.test:
        testDB(store)
    if args.rm:
        removeTables(store)
    return store


# Setup database
if __name__ == "__main__":
    main()
