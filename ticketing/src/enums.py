from enum import Enum


class UserRole(str, Enum):
    PASSENGER = "PASSENGER"
    ADMIN = "ADMIN"
    VALIDATOR = "VALIDATOR"


class TransportType(str, Enum):
    BUS = "BUS"
    TRAIN = "TRAIN"


class TripStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    DELAYED = "DELAYED"
    CANCELLED = "CANCELLED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Weekday(str, Enum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"


class TicketType(str, Enum):
    SINGLE = "SINGLE"
    RETURN = "RETURN"
    DAY_PASS = "DAY_PASS"
    WEEK_PASS = "WEEK_PASS"
    MONTH_PASS = "MONTH_PASS"


class TicketStatus(str, Enum):
    CREATED = "CREATED"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    VALIDATED = "VALIDATED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    MOBILE_MONEY = "MOBILE_MONEY"
    ACCOUNT_BALANCE = "ACCOUNT_BALANCE"
    CASH = "CASH"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class NotificationType(str, Enum):
    TICKET_PURCHASED = "TICKET_PURCHASED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    TRIP_DELAYED = "TRIP_DELAYED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    SERVICE_DISRUPTION = "SERVICE_DISRUPTION"
    TICKET_EXPIRING = "TICKET_EXPIRING"


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class DisruptionSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DisruptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    MONITORING = "MONITORING"


class ReportType(str, Enum):
    DAILY_SALES = "DAILY_SALES"
    ROUTE_USAGE = "ROUTE_USAGE"
    PASSENGER_TRAFFIC = "PASSENGER_TRAFFIC"
    REVENUE = "REVENUE"


class ServiceName(str, Enum):
    USER_SERVICE = "USER_SERVICE"
    TRANSPORT_SERVICE = "TRANSPORT_SERVICE"
    TICKETING_SERVICE = "TICKETING_SERVICE"
    PAYMENT_SERVICE = "PAYMENT_SERVICE"
    NOTIFICATION_SERVICE = "NOTIFICATION_SERVICE"
    ADMIN_SERVICE = "ADMIN_SERVICE"
    VALIDATION_SERVICE = "VALIDATION_SERVICE"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
