"""Mirror volunteers and their event hours into a Google Spreadsheet.

One "Volunteers" summary worksheet is written, followed by one worksheet per
volunteer that has events. Every worksheet is fully overwritten on each run
and display IDs are recomputed from scratch, so they only hold within a
single sync.
"""
import logging
import math
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

from config import (
    EVENTS_SHEET_HEADER,
    SHEET_TITLE_MAX_LENGTH,
    VOLUNTEER_SHEET_PREFIX,
    VOLUNTEERS_SHEET_HEADER,
    VOLUNTEERS_SHEET_TITLE,
)
from sheets_api import create_sheets_client, translate_error, update_worksheet
from tracker import events_for_volunteer

logger = logging.getLogger(__name__)

_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_TITLE_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")
_CENTS = Decimal("0.01")


# ============================================================================
# DERIVED VALUES
# ============================================================================

def _name_key(volunteer: Mapping[str, Any]) -> str:
    return str(volunteer.get("name") or "").lower()


def sort_volunteers(volunteers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Volunteers ordered by name, case-insensitive. Ties keep input order.

    Entries that are not objects are dropped.
    """
    return sorted((v for v in volunteers if isinstance(v, dict)), key=_name_key)


def parse_hours(value: Any) -> float:
    """Leading numeric value of ``value``; anything unparsable counts as 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER_RE.match(str(value))
        if not match:
            return 0.0
        number = float(match.group(1))
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def total_hours(events: List[Dict[str, Any]]) -> float:
    return sum(parse_hours(event.get("hours")) for event in events)


def format_hours(hours: float) -> str:
    """Two decimals, exact halves rounded up."""
    return str(Decimal(hours).quantize(_CENTS, rounding=ROUND_HALF_UP))


def worksheet_title(name: Any) -> str:
    """Per-volunteer worksheet title: non-alphanumerics become spaces, capped at 30 chars."""
    cleaned = _TITLE_UNSAFE_RE.sub(" ", str(name or ""))
    return f"{VOLUNTEER_SHEET_PREFIX}{cleaned}"[:SHEET_TITLE_MAX_LENGTH]


def _date_key(event: Mapping[str, Any]) -> tuple:
    raw = str(event.get("date") or "").strip()
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return (1, 0.0)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (0, parsed.timestamp())


def sort_events_by_date(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Chronological order; unparsable dates go last."""
    return sorted(events, key=_date_key)


# ============================================================================
# ROW BUILDERS
# ============================================================================

def build_volunteer_rows(sorted_volunteers: List[Dict[str, Any]], events: List[Dict[str, Any]]) -> List[list]:
    rows = []
    for index, volunteer in enumerate(sorted_volunteers, start=1):
        hours = total_hours(events_for_volunteer(events, volunteer.get("id")))
        rows.append([
            index,
            volunteer.get("name", ""),
            volunteer.get("phone", ""),
            volunteer.get("email", ""),
            format_hours(hours),
        ])
    return rows


def build_event_rows(volunteer_events: List[Dict[str, Any]]) -> List[list]:
    return [
        [index, event.get("name", ""), event.get("location", ""), event.get("date", ""), event.get("hours", "")]
        for index, event in enumerate(sort_events_by_date(volunteer_events), start=1)
    ]


# ============================================================================
# SYNC
# ============================================================================

def _failure(message: str, kind: str) -> Dict[str, Any]:
    return {"success": False, "error": message, "error_kind": kind}


def sync_to_sheets(
    sheets_config: Optional[Mapping[str, Any]],
    volunteers: List[Dict[str, Any]],
    events: List[Dict[str, Any]],
    client_factory: Callable[[Mapping[str, Any]], Any] = create_sheets_client,
) -> Dict[str, Any]:
    """Overwrite the spreadsheet with the current volunteers and events.

    Never raises. Returns ``{"success": True, "volunteers_count", "events_count"}``
    or ``{"success": False, "error", "error_kind"}`` where ``error_kind`` is one
    of ``config``, ``credentials``, ``permission``, ``not_found`` or
    ``transport``. The first failing worksheet aborts the rest; worksheets
    already written stay written.
    """
    if not isinstance(sheets_config, Mapping) or not sheets_config.get("spreadsheetId") or not sheets_config.get("credentials"):
        return _failure("Google Sheets configuration is incomplete", "config")

    spreadsheet_id = sheets_config["spreadsheetId"]
    logger.info("Starting Google Sheets sync with spreadsheet ID: %s", spreadsheet_id)

    try:
        service = client_factory(sheets_config["credentials"])

        sorted_volunteers = sort_volunteers(volunteers)
        logger.info("Updating Volunteers sheet with %d records...", len(sorted_volunteers))
        update_worksheet(
            service,
            spreadsheet_id,
            VOLUNTEERS_SHEET_TITLE,
            VOLUNTEERS_SHEET_HEADER,
            build_volunteer_rows(sorted_volunteers, events),
        )

        for volunteer in sorted_volunteers:
            volunteer_events = events_for_volunteer(events, volunteer.get("id"))
            if not volunteer_events:
                continue
            logger.info(
                "Updating individual sheet for %s with %d events...",
                volunteer.get("name"),
                len(volunteer_events),
            )
            update_worksheet(
                service,
                spreadsheet_id,
                worksheet_title(volunteer.get("name")),
                EVENTS_SHEET_HEADER,
                build_event_rows(volunteer_events),
            )
    except Exception as exc:
        error = translate_error(exc)
        logger.exception("Error syncing to Google Sheets")
        return _failure(str(error), error.kind)

    logger.info("Google Sheets sync completed successfully")
    return {
        "success": True,
        "volunteers_count": len(volunteers),
        "events_count": len(events),
    }
