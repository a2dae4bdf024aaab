"""
Canonical registry of the transport ticketing collections.

Where the historical initialisation scripts disagree, the superset is used:
ticket status includes PENDING_PAYMENT, users carry notification
preferences, route stops carry both a sequence and timings.
"""

from ticketing.src import schemas
from ticketing.src.registry import SchemaRegistry
from ticketing.src.enums import (
    DisruptionStatus,
    PaymentStatus,
    TicketStatus,
    TripStatus,
)
from ticketing.src.constants import (
    COLLECTION_ANALYTICS_REPORTS,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_PAYMENTS,
    COLLECTION_ROUTES,
    COLLECTION_SERVICE_DISRUPTIONS,
    COLLECTION_SYSTEM_LOGS,
    COLLECTION_TICKETS,
    COLLECTION_TRIPS,
    COLLECTION_USERS,
    COLLECTION_VALIDATIONS,
    ENTITY_ANALYTICS_REPORT,
    ENTITY_NOTIFICATION,
    ENTITY_PAYMENT,
    ENTITY_ROUTE,
    ENTITY_SERVICE_DISRUPTION,
    ENTITY_SYSTEM_LOG,
    ENTITY_TICKET,
    ENTITY_TRIP,
    ENTITY_USER,
    ENTITY_VALIDATION,
)


TICKET_TRANSITIONS = {
    TicketStatus.CREATED: [
        TicketStatus.PENDING_PAYMENT,
        TicketStatus.PAID,
        TicketStatus.CANCELLED,
        TicketStatus.EXPIRED,
    ],
    TicketStatus.PENDING_PAYMENT: [
        TicketStatus.PAID,
        TicketStatus.CANCELLED,
        TicketStatus.EXPIRED,
    ],
    TicketStatus.PAID: [
        TicketStatus.VALIDATED,
        TicketStatus.EXPIRED,
        TicketStatus.CANCELLED,
    ],
    TicketStatus.VALIDATED: [TicketStatus.EXPIRED, TicketStatus.CANCELLED],
}
TICKET_TERMINAL = [TicketStatus.EXPIRED, TicketStatus.CANCELLED]

TRIP_TRANSITIONS = {
    TripStatus.SCHEDULED: [
        TripStatus.DELAYED,
        TripStatus.IN_PROGRESS,
        TripStatus.CANCELLED,
    ],
    TripStatus.DELAYED: [TripStatus.IN_PROGRESS, TripStatus.CANCELLED],
    TripStatus.IN_PROGRESS: [TripStatus.COMPLETED],
}
TRIP_TERMINAL = [TripStatus.COMPLETED, TripStatus.CANCELLED]

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: [PaymentStatus.SUCCESS, PaymentStatus.FAILED],
    PaymentStatus.SUCCESS: [PaymentStatus.REFUNDED],
}
PAYMENT_TERMINAL = [PaymentStatus.FAILED, PaymentStatus.REFUNDED]

DISRUPTION_TRANSITIONS = {
    DisruptionStatus.ACTIVE: [DisruptionStatus.MONITORING, DisruptionStatus.RESOLVED],
    DisruptionStatus.MONITORING: [DisruptionStatus.RESOLVED],
}
DISRUPTION_TERMINAL = [DisruptionStatus.RESOLVED]


def buildRegistry() -> SchemaRegistry:
    """
    Build the registry of all ten collections with their indexes and
    status machines.

    Returns:
        SchemaRegistry: A fresh, unfrozen registry.
    """
    registry = SchemaRegistry()

    # Users
    registry.register(
        ENTITY_USER,
        schemas.User,
        key="username",
        collection=COLLECTION_USERS,
        mutable=[
            "email",
            "password",
            "fullName",
            "phoneNumber",
            "accountBalance",
            "notifications",
        ],
    )
    registry.declareIndex(ENTITY_USER, "email", unique=True)
    registry.declareIndex(ENTITY_USER, "role")

    # Routes
    registry.register(
        ENTITY_ROUTE,
        schemas.Route,
        key="routeId",
        collection=COLLECTION_ROUTES,
        mutable=["routeName", "startPoint", "endPoint", "intermediateStops", "isActive"],
    )
    registry.declareIndex(ENTITY_ROUTE, "transportType")
    registry.declareIndex(ENTITY_ROUTE, "isActive")
    registry.declareIndex(ENTITY_ROUTE, ("isActive", "transportType"))

    # Trips
    registry.register(
        ENTITY_TRIP,
        schemas.Trip,
        key="tripId",
        collection=COLLECTION_TRIPS,
        mutable=[
            "departureTime",
            "arrivalTime",
            "days",
            "seats",
            "currentLocation",
            "delayInfo",
        ],
    )
    registry.declareIndex(ENTITY_TRIP, "routeId")
    registry.declareIndex(ENTITY_TRIP, "status")
    registry.declareTransitions(ENTITY_TRIP, "status", TRIP_TRANSITIONS, TRIP_TERMINAL)

    # Tickets
    registry.register(
        ENTITY_TICKET,
        schemas.Ticket,
        key="ticketId",
        collection=COLLECTION_TICKETS,
        mutable=["validFrom", "validUntil", "ridesRemaining", "qrCode"],
        appendOnly=["validationHistory"],
    )
    registry.declareIndex(ENTITY_TICKET, "userId")
    registry.declareIndex(ENTITY_TICKET, "status")
    registry.declareIndex(ENTITY_TICKET, "tripId")
    registry.declareIndex(ENTITY_TICKET, ("validFrom", "validUntil"))
    registry.declareIndex(ENTITY_TICKET, ("status", "validUntil"))
    registry.declareTransitions(
        ENTITY_TICKET, "status", TICKET_TRANSITIONS, TICKET_TERMINAL
    )

    # Payments
    registry.register(
        ENTITY_PAYMENT,
        schemas.Payment,
        key="paymentId",
        collection=COLLECTION_PAYMENTS,
        mutable=["transactionReference", "failureReason"],
    )
    registry.declareIndex(ENTITY_PAYMENT, "ticketId")
    registry.declareIndex(ENTITY_PAYMENT, "userId")
    registry.declareIndex(ENTITY_PAYMENT, ("status", "createdAt"))
    registry.declareTransitions(
        ENTITY_PAYMENT, "status", PAYMENT_TRANSITIONS, PAYMENT_TERMINAL
    )

    # Notifications
    registry.register(
        ENTITY_NOTIFICATION,
        schemas.Notification,
        key="notificationId",
        collection=COLLECTION_NOTIFICATIONS,
        mutable=["deliveryStatus", "readAt"],
    )
    registry.declareIndex(ENTITY_NOTIFICATION, "userId")

    # Service disruptions
    registry.register(
        ENTITY_SERVICE_DISRUPTION,
        schemas.ServiceDisruption,
        key="disruptionId",
        collection=COLLECTION_SERVICE_DISRUPTIONS,
        mutable=["title", "description", "severity", "endTime"],
        appendOnly=["updates"],
    )
    registry.declareIndex(ENTITY_SERVICE_DISRUPTION, "status")
    registry.declareIndex(ENTITY_SERVICE_DISRUPTION, ("routeId", "status"))
    registry.declareTransitions(
        ENTITY_SERVICE_DISRUPTION,
        "status",
        DISRUPTION_TRANSITIONS,
        DISRUPTION_TERMINAL,
    )

    # Validations
    registry.register(
        ENTITY_VALIDATION,
        schemas.Validation,
        key="validationId",
        collection=COLLECTION_VALIDATIONS,
        immutable=True,
    )
    registry.declareIndex(ENTITY_VALIDATION, "ticketId")
    registry.declareIndex(ENTITY_VALIDATION, "validatorId")

    # Analytics reports
    registry.register(
        ENTITY_ANALYTICS_REPORT,
        schemas.AnalyticsReport,
        key="reportId",
        collection=COLLECTION_ANALYTICS_REPORTS,
        immutable=True,
    )
    registry.declareIndex(ENTITY_ANALYTICS_REPORT, "reportType")

    # System logs
    registry.register(
        ENTITY_SYSTEM_LOG,
        schemas.SystemLog,
        key="logId",
        collection=COLLECTION_SYSTEM_LOGS,
        immutable=True,
    )
    registry.declareIndex(ENTITY_SYSTEM_LOG, "service")
    registry.declareIndex(ENTITY_SYSTEM_LOG, "level")

    return registry
