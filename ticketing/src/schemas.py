"""
Document schemas for the transport ticketing collections.

Each top level model describes one collection. Required fields are the
ones without a default, enumerated fields use the enums from
`ticketing.src.enums`, nested objects are nested models and arrays are
`List[...]` annotations.

Identifier fields pointing at another collection are annotated with
`Reference`, which records the target entity without enforcing it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    ValidationInfo,
    field_validator,
)

from ticketing.src.constants import (
    ENTITY_ROUTE,
    ENTITY_TICKET,
    ENTITY_TRIP,
    ENTITY_USER,
)
from ticketing.src.enums import (
    DeliveryStatus,
    DisruptionSeverity,
    DisruptionStatus,
    LogLevel,
    NotificationChannel,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    ReportType,
    ServiceName,
    TicketStatus,
    TicketType,
    TransportType,
    TripStatus,
    UserRole,
    Weekday,
)


# ---------------------------------------------------------------------------
# Semantic types
# ---------------------------------------------------------------------------
def _dateNotNumber(value: Any) -> Any:
    if isinstance(value, (int, float)):
        raise ValueError("Input should be a date, not a number")
    return value


# Datetimes or ISO 8601 strings, never epoch numbers
Timestamp = Annotated[datetime, BeforeValidator(_dateNotNumber)]


# ---------------------------------------------------------------------------
# Soft references
# ---------------------------------------------------------------------------
class Reference:
    """Marks an identifier field as a soft reference to another entity type."""

    def __init__(self, entity: str):
        self.entity = entity

    def __repr__(self) -> str:
        return f"Reference({self.entity!r})"


UserRef = Annotated[str, Reference(ENTITY_USER)]
RouteRef = Annotated[str, Reference(ENTITY_ROUTE)]
TripRef = Annotated[str, Reference(ENTITY_TRIP)]
TicketRef = Annotated[str, Reference(ENTITY_TICKET)]


class SoftReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    sourceType: str
    sourceId: str
    targetType: str
    targetId: str


class Violation(BaseModel):
    field: str
    reason: str


class Document(BaseModel):
    # Unknown fields are kept, like a collection validator without
    # additionalProperties: false
    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class NotificationPreferences(BaseModel):
    email: StrictBool = True
    sms: StrictBool = False
    push: StrictBool = False


class User(Document):
    """
    Users collection schema
    Collection name: "users"
    """

    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., description="Argon2 hash of the password")
    role: UserRole
    fullName: str
    phoneNumber: Optional[str] = None
    accountBalance: Optional[Decimal] = None
    notifications: Optional[NotificationPreferences] = None
    createdAt: Timestamp
    updatedAt: Optional[Timestamp] = None


# ---------------------------------------------------------------------------
# Routes and trips
# ---------------------------------------------------------------------------
class Stop(BaseModel):
    stopId: str
    stopName: str
    sequence: Optional[StrictInt] = None
    arrivalTime: Optional[str] = None
    departureTime: Optional[str] = None


class Route(Document):
    """
    Routes collection schema
    Collection name: "routes"
    """

    routeId: str
    routeName: str
    transportType: TransportType
    startPoint: str
    endPoint: str
    intermediateStops: List[Stop] = []
    isActive: StrictBool
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None

    @field_validator("intermediateStops")
    @classmethod
    def orderedStops(cls, stops: List[Stop]) -> List[Stop]:
        sequences = [stop.sequence for stop in stops if stop.sequence is not None]
        if sequences != sorted(set(sequences)):
            raise ValueError("stop sequence numbers must be strictly increasing")
        return stops


class SeatAvailability(BaseModel):
    capacity: StrictInt = Field(..., ge=0)
    currentOccupancy: StrictInt = Field(0, ge=0)


class Location(BaseModel):
    latitude: StrictFloat = Field(..., ge=-90, le=90)
    longitude: StrictFloat = Field(..., ge=-180, le=180)
    stopId: Optional[str] = None
    updatedAt: Optional[Timestamp] = None


class DelayInfo(BaseModel):
    delayMinutes: StrictInt = Field(..., ge=0)
    reason: Optional[str] = None
    reportedAt: Optional[Timestamp] = None


class Trip(Document):
    """
    Trips collection schema (scheduled departures on routes)
    Collection name: "trips"
    """

    tripId: str
    routeId: RouteRef
    departureTime: Timestamp
    arrivalTime: Timestamp
    status: TripStatus = TripStatus.SCHEDULED
    days: List[Weekday] = []
    seats: Optional[SeatAvailability] = None
    currentLocation: Optional[Location] = None
    delayInfo: Optional[DelayInfo] = None
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None


# ---------------------------------------------------------------------------
# Tickets and payments
# ---------------------------------------------------------------------------
class ValidationRecord(BaseModel):
    validatorId: str
    validatedAt: Timestamp
    success: StrictBool
    validationId: Optional[str] = None
    location: Optional[str] = None


class Ticket(Document):
    """
    Tickets collection schema
    Collection name: "tickets"
    """

    ticketId: str
    userId: UserRef
    routeId: Optional[RouteRef] = None
    tripId: Optional[TripRef] = None
    ticketType: TicketType
    status: TicketStatus
    price: Decimal = Field(..., ge=0)
    purchaseDate: Optional[Timestamp] = None
    validFrom: Optional[Timestamp] = None
    validUntil: Optional[Timestamp] = None
    boardingStop: Optional[str] = None
    destinationStop: Optional[str] = None
    ridesRemaining: Optional[StrictInt] = Field(None, ge=0)
    qrCode: Optional[str] = None
    validationHistory: List[ValidationRecord] = []
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None

    @field_validator("validUntil")
    @classmethod
    def validityWindow(
        cls, validUntil: Optional[datetime], info: ValidationInfo
    ) -> Optional[datetime]:
        validFrom = info.data.get("validFrom")
        if validUntil is not None and validFrom is not None and validUntil < validFrom:
            raise ValueError("validUntil is earlier than validFrom")
        return validUntil


class Payment(Document):
    """
    Payments collection schema
    Collection name: "payments"
    """

    paymentId: str
    userId: UserRef
    ticketId: TicketRef
    amount: Decimal = Field(..., ge=0)
    method: PaymentMethod
    status: PaymentStatus
    transactionReference: Optional[str] = None
    failureReason: Optional[str] = None
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None


# ---------------------------------------------------------------------------
# Notifications and disruptions
# ---------------------------------------------------------------------------
class Notification(Document):
    """
    Notifications collection schema, one delivery status per channel
    Collection name: "notifications"
    """

    notificationId: str
    userId: UserRef
    type: NotificationType
    title: str
    message: str
    channels: List[NotificationChannel] = Field(..., min_length=1)
    deliveryStatus: Dict[NotificationChannel, DeliveryStatus] = {}
    readAt: Optional[Timestamp] = None
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None

    @field_validator("deliveryStatus")
    @classmethod
    def knownChannels(
        cls, deliveryStatus: Dict[NotificationChannel, DeliveryStatus], info: ValidationInfo
    ) -> Dict[NotificationChannel, DeliveryStatus]:
        channels = info.data.get("channels") or []
        for channel in deliveryStatus:
            if channel not in channels:
                raise ValueError(f"channel {channel.value} is not one of the channels")
        return deliveryStatus


class DisruptionUpdate(BaseModel):
    message: str
    timestamp: Timestamp
    status: Optional[DisruptionStatus] = None
    author: Optional[str] = None


class ServiceDisruption(Document):
    """
    Service disruptions collection schema
    Collection name: "service_disruptions"
    """

    disruptionId: str
    routeId: Optional[RouteRef] = None
    tripId: Optional[TripRef] = None
    title: str
    description: Optional[str] = None
    severity: DisruptionSeverity
    status: DisruptionStatus
    startTime: Timestamp
    endTime: Optional[Timestamp] = None
    updates: List[DisruptionUpdate] = []
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None


# ---------------------------------------------------------------------------
# Validations, reports and logs
# ---------------------------------------------------------------------------
class Validation(Document):
    """
    Ticket validations collection schema, immutable once created
    Collection name: "validations"
    """

    validationId: str
    ticketId: TicketRef
    validatorId: UserRef
    tripId: Optional[TripRef] = None
    success: StrictBool
    validatedAt: Timestamp
    location: Optional[str] = None
    ridesRemainingAfter: Optional[StrictInt] = Field(None, ge=0)
    failureReason: Optional[str] = None
    createdAt: Optional[Timestamp] = None


class ReportPeriod(BaseModel):
    start: Timestamp
    end: Timestamp

    @field_validator("end")
    @classmethod
    def endAfterStart(cls, end: datetime, info: ValidationInfo) -> datetime:
        start = info.data.get("start")
        if start is not None and end < start:
            raise ValueError("period end is earlier than its start")
        return end


class AnalyticsReport(Document):
    """
    Analytics reports collection schema (derived, read only)
    Collection name: "analytics_reports"
    """

    reportId: str
    reportType: ReportType
    period: ReportPeriod
    metrics: Dict[str, StrictFloat]
    generatedBy: Optional[str] = None
    createdAt: Optional[Timestamp] = None


class SystemLog(Document):
    """
    System logs collection schema (append only)
    Collection name: "system_logs"
    """

    logId: str
    service: ServiceName
    level: LogLevel
    message: str
    timestamp: Timestamp
    details: Optional[Dict[str, Any]] = None
    createdAt: Optional[Timestamp] = None
