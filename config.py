"""
Unified configuration and constants for the Volunteer Tracker application.
Centralizes file names, spreadsheet layout, and server constants.
"""

# ============================================================================
# FILE NAMES & PATHS
# ============================================================================
VOLUNTEERS_FILE_NAME = "volunteers.json"
EVENTS_FILE_NAME = "events.json"
CONFIG_FILE_NAME = "config.json"
DATA_DIR_NAME = "data"
PUBLIC_DIR_NAME = "public"
EXPORTS_DIR_NAME = "exports"
INDEX_FILE_NAME = "index.html"

# Environment overrides
DATA_DIR_ENV = "VOLUNTEER_DATA_DIR"
PUBLIC_DIR_ENV = "VOLUNTEER_PUBLIC_DIR"
LOG_LEVEL_ENV = "VOLUNTEER_LOG_LEVEL"
PORT_ENV = "PORT"

# ============================================================================
# DEFAULTS
# ============================================================================
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_PORT = 5000
DEFAULT_LOG_LEVEL = "INFO"
JSON_INDENT = 2

# ============================================================================
# GOOGLE SHEETS LAYOUT
# ============================================================================
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
SHEETS_API_NAME = "sheets"
SHEETS_API_VERSION = "v4"
VALUE_INPUT_OPTION = "RAW"

VOLUNTEERS_SHEET_TITLE = "Volunteers"
VOLUNTEERS_SHEET_HEADER = ["ID", "Name", "Phone", "Email", "Total Hours"]
EVENTS_SHEET_HEADER = ["ID", "Event", "Location", "Date", "Hours"]

# Per-volunteer worksheet titles
VOLUNTEER_SHEET_PREFIX = "Volunteer - "
SHEET_TITLE_MAX_LENGTH = 30

SERVICE_EMAIL_PLACEHOLDER = "the service account email"

# ============================================================================
# CSV EXPORT
# ============================================================================
CSV_EXPORT_FILES = ["volunteers.csv", "events.csv", "summary.csv"]
VOLUNTEER_CSV_FIELDS = ["id", "name", "phone", "email", "createdAt"]
EVENT_CSV_FIELDS = ["id", "volunteerId", "name", "location", "date", "hours", "createdAt"]

# ============================================================================
# STATIC FILES
# ============================================================================
MIME_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
}
DEFAULT_MIME_TYPE = "application/octet-stream"
