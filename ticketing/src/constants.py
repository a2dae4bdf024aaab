"""
Configuration and constants for the transport ticketing entity store.

This module centralizes environment-based configuration, collection names,
retry limits and sample data identifiers.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "transport_ticketing")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_ENABLED = environ.get("OPENOBSERVE_ENABLED", "false").lower() == "true"
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@ticketing.local")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "transport")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "entity-store")
OPENOBSERVE_TIMEOUT = 5  # HTTP timeout (in seconds)


# ---------------------------------------------------------------------------
# Write limits
# ---------------------------------------------------------------------------
MAX_WRITE_RETRIES = int(environ.get("MAX_WRITE_RETRIES", "3"))  # CAS retries


# ---------------------------------------------------------------------------
# Entity type names
# ---------------------------------------------------------------------------
ENTITY_USER = "user"
ENTITY_ROUTE = "route"
ENTITY_TRIP = "trip"
ENTITY_TICKET = "ticket"
ENTITY_PAYMENT = "payment"
ENTITY_NOTIFICATION = "notification"
ENTITY_SERVICE_DISRUPTION = "service_disruption"
ENTITY_VALIDATION = "validation"
ENTITY_ANALYTICS_REPORT = "analytics_report"
ENTITY_SYSTEM_LOG = "system_log"


# ---------------------------------------------------------------------------
# Collection names
# ---------------------------------------------------------------------------
COLLECTION_USERS = "users"
COLLECTION_ROUTES = "routes"
COLLECTION_TRIPS = "trips"
COLLECTION_TICKETS = "tickets"
COLLECTION_PAYMENTS = "payments"
COLLECTION_NOTIFICATIONS = "notifications"
COLLECTION_SERVICE_DISRUPTIONS = "service_disruptions"
COLLECTION_VALIDATIONS = "validations"
COLLECTION_ANALYTICS_REPORTS = "analytics_reports"
COLLECTION_SYSTEM_LOGS = "system_logs"
SOFT_REFERENCE_TABLE = "soft_reference"


# ---------------------------------------------------------------------------
# Document metadata fields
# ---------------------------------------------------------------------------
FIELD_CREATED_AT = "createdAt"
FIELD_UPDATED_AT = "updatedAt"


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------
SAMPLE_ROUTE_ID = "ROUTE_SAMPLE_001"
SAMPLE_TRIP_ID = "TRIP_SAMPLE_001"
ADMIN_USERNAME = "admin"
ADMIN_EMAIL = "admin@ticketing.local"
ADMIN_PASSWORD = environ.get("ADMIN_PASSWORD", "password")
