#!/usr/bin/env python3
"""
Volunteer Tracker Backend Module
Record helpers and flat-file JSON storage for volunteers, events and config.
"""

import os
import json
import uuid
import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from config import (
    CONFIG_FILE_NAME,
    DATA_DIR_ENV,
    DATA_DIR_NAME,
    DEFAULT_ADMIN_PASSWORD,
    EVENTS_FILE_NAME,
    JSON_INDENT,
    PUBLIC_DIR_ENV,
    PUBLIC_DIR_NAME,
    VOLUNTEERS_FILE_NAME,
)

logger = logging.getLogger(__name__)

# ============================================================================
# CORE CONSTANTS
# ============================================================================
BASE_DIR = Path(__file__).resolve().parent


def default_data_dir() -> Path:
    return Path(os.getenv(DATA_DIR_ENV, "").strip() or BASE_DIR / DATA_DIR_NAME)


def default_public_dir() -> Path:
    return Path(os.getenv(PUBLIC_DIR_ENV, "").strip() or BASE_DIR / PUBLIC_DIR_NAME)


def ensure_dirs(*paths) -> None:
    """Ensure directories exist, create if needed."""
    for path in paths:
        os.makedirs(path, exist_ok=True)


def default_config() -> Dict[str, Any]:
    return {"adminPassword": DEFAULT_ADMIN_PASSWORD, "sheetsConfig": None}


# ============================================================================
# ERRORS
# ============================================================================

class ValidationError(ValueError):
    """Raised when a request body cannot become a record."""


class VolunteerNotFoundError(LookupError):
    """Raised when no volunteer carries the requested id."""


class StoreWriteError(OSError):
    """Raised when a store document could not be written."""


# ============================================================================
# RECORD HELPERS
# ============================================================================

def generate_id() -> str:
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _normalize_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def validate_volunteer(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body")
    if not _normalize_text(payload.get("name")):
        raise ValidationError("Volunteer name is required")


def validate_event(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body")
    if not _normalize_text(payload.get("volunteerId")):
        raise ValidationError("Event volunteerId is required")


def new_volunteer(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build a volunteer record from a request body.

    The id and createdAt fields are always server-generated, overriding
    anything the client sent.
    """
    validate_volunteer(payload)
    record = {key: value for key, value in payload.items()}
    record["id"] = generate_id()
    record["createdAt"] = utc_timestamp()
    return record


def new_event(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build an event record from a request body; date defaults to now."""
    validate_event(payload)
    created_at = utc_timestamp()
    record = {key: value for key, value in payload.items()}
    record["id"] = generate_id()
    record["date"] = payload.get("date") or created_at
    record["createdAt"] = created_at
    return record


def events_for_volunteer(events: list, volunteer_id: str) -> list:
    return [event for event in events if isinstance(event, dict) and event.get("volunteerId") == volunteer_id]


def cascade_delete(volunteers: list, events: list, volunteer_id: str) -> tuple[list, list]:
    """Return (volunteers, events) with the volunteer and all of its events removed."""
    remaining = [v for v in volunteers if not (isinstance(v, dict) and v.get("id") == volunteer_id)]
    if len(remaining) == len(volunteers):
        raise VolunteerNotFoundError(volunteer_id)
    remaining_events = [
        event for event in events
        if not (isinstance(event, dict) and event.get("volunteerId") == volunteer_id)
    ]
    return remaining, remaining_events


# ============================================================================
# RECORD STORE
# ============================================================================

class RecordStore:
    """Whole-document JSON storage for volunteers, events and config."""

    def __init__(self, data_dir=None):
        self.data_dir = Path(data_dir) if data_dir is not None else default_data_dir()
        self.volunteers_file = self.data_dir / VOLUNTEERS_FILE_NAME
        self.events_file = self.data_dir / EVENTS_FILE_NAME
        self.config_file = self.data_dir / CONFIG_FILE_NAME

    def initialize(self) -> None:
        """Create the data directory and seed any missing documents."""
        ensure_dirs(self.data_dir)
        if not self.volunteers_file.exists():
            self._write(self.volunteers_file, [])
        if not self.events_file.exists():
            self._write(self.events_file, [])
        if not self.config_file.exists():
            self._write(self.config_file, default_config())

    def _read(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error reading file %s: %s", path, exc)
            return None

    def _write(self, path: Path, data: Any) -> None:
        # Write beside the target then swap, so readers never see a partial document.
        temp_path = None
        try:
            ensure_dirs(path.parent)
            fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=JSON_INDENT, ensure_ascii=False)
            os.replace(temp_path, path)
            temp_path = None
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Error writing file %s: %s", path, exc)
            raise StoreWriteError(f"Failed to write {path.name}") from exc
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def _load_list(self, path: Path) -> list:
        data = self._read(path)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error("Error reading file %s: expected a JSON array", path)
            return []
        return data

    def load_volunteers(self) -> list:
        return self._load_list(self.volunteers_file)

    def load_events(self) -> list:
        return self._load_list(self.events_file)

    def load_config(self) -> Dict[str, Any]:
        data = self._read(self.config_file)
        config = default_config()
        if isinstance(data, dict):
            config.update(data)
        elif data is not None:
            logger.error("Error reading config: expected a JSON object")
        return config

    def save_volunteers(self, volunteers: list) -> None:
        self._write(self.volunteers_file, volunteers)

    def save_events(self, events: list) -> None:
        self._write(self.events_file, events)

    def save_config(self, config: Dict[str, Any]) -> None:
        self._write(self.config_file, config)

    def delete_volunteer(self, volunteer_id: str) -> int:
        """Remove a volunteer and every event referencing it.

        Both documents are computed before anything is written. If the events
        write fails the previous volunteers document is put back. Returns the
        number of events removed.
        """
        volunteers = self.load_volunteers()
        events = self.load_events()
        remaining, remaining_events = cascade_delete(volunteers, events, volunteer_id)
        self.save_volunteers(remaining)
        try:
            self.save_events(remaining_events)
        except StoreWriteError:
            logger.error("Restoring volunteers after failed cascade delete of %s", volunteer_id)
            self.save_volunteers(volunteers)
            raise
        removed = len(events) - len(remaining_events)
        logger.info("Deleted volunteer %s and %d event(s)", volunteer_id, removed)
        return removed
