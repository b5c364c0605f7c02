"""Shared runtime constants for shelf audit services."""

SERVICE_NAMES = [
    "audit_api",
]
DEFAULT_CLICKHOUSE_URL = "http://clickhouse:8123"
DEFAULT_DATABASE = "shelf_audit"
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 8000

DEFAULT_TOP_PRODUCTS = 20
DEFAULT_TOP_BRANDS = 10
DEFAULT_TOP_FACING = 15
DEFAULT_TOP_PRICIEST = 10
DEFAULT_RECENT_DETECTIONS = 15
DEFAULT_RECENT_ACTIVITY_DAYS = 30

DEFAULT_CURRENCY_MARKERS = ["€", "$", "£", "EUR", "USD", "GBP"]

OPEN_TASK_STATUSES = ("pending", "in_progress")
VISIT_CATEGORY = "visit"
