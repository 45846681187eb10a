"""Google Sheets client helpers.

Builds an authenticated Sheets v4 service from service-account credentials
and overwrites whole worksheets. Remote failures are re-raised as tagged
``SheetsError`` subclasses so callers can branch on permission problems.
Only remote messages that mention permission are tagged that way. Nothing
here retries.
"""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from google.auth import exceptions as auth_exceptions
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config import (
    SERVICE_EMAIL_PLACEHOLDER,
    SHEETS_API_NAME,
    SHEETS_API_VERSION,
    SHEETS_SCOPES,
    VALUE_INPUT_OPTION,
)

logger = logging.getLogger(__name__)

SCOPES = SHEETS_SCOPES
PERMISSION_MARKER = "permission"


class SheetsError(Exception):
    """Base error for Sheets API failures."""

    kind = "transport"

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class SheetsCredentialsError(SheetsError):
    """The credential object could not produce a client."""

    kind = "credentials"


class SheetsPermissionError(SheetsError):
    """The service account may not read or edit the spreadsheet."""

    kind = "permission"


class SheetNotFoundError(SheetsError):
    """The spreadsheet id does not resolve."""

    kind = "not_found"


class SheetsTransportError(SheetsError):
    """Any other remote or transport failure."""


def service_account_email(credentials: Optional[Mapping[str, Any]]) -> str:
    if isinstance(credentials, Mapping):
        email = str(credentials.get("client_email") or "").strip()
        if email:
            return email
    return SERVICE_EMAIL_PLACEHOLDER


def create_sheets_client(credentials: Mapping[str, Any]):
    """Return an authenticated Sheets API service for a service-account info dict."""
    try:
        creds = service_account.Credentials.from_service_account_info(dict(credentials), scopes=SCOPES)
    except (ValueError, KeyError, TypeError) as exc:
        raise SheetsCredentialsError(f"Invalid service account credentials: {exc}") from exc
    return build(SHEETS_API_NAME, SHEETS_API_VERSION, credentials=creds, cache_discovery=False)


def _http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "resp", None), "status", None)
    try:
        return int(status)
    except (TypeError, ValueError):
        return 0


def _http_reason(exc: HttpError) -> str:
    reason = getattr(exc, "reason", None)
    if reason:
        return str(reason)
    return str(exc)


def is_permission_message(message: str) -> bool:
    return PERMISSION_MARKER in (message or "")


def translate_error(exc: Exception) -> SheetsError:
    """Map a Google client exception onto the tagged error hierarchy.

    Only messages mentioning permission are tagged as permission errors; a 401
    or a 403 for a disabled API keeps its raw text as a transport error.
    """
    if isinstance(exc, SheetsError):
        return exc
    if isinstance(exc, HttpError):
        status = _http_status(exc)
        message = _http_reason(exc)
        if is_permission_message(message):
            return SheetsPermissionError(message, status)
        if status == 404:
            return SheetNotFoundError(message, status)
        return SheetsTransportError(message, status)
    message = str(exc) or exc.__class__.__name__
    if is_permission_message(message):
        return SheetsPermissionError(message)
    return SheetsTransportError(message)


_SIMPLE_TITLE_RE = re.compile(r"^[A-Za-z0-9_]+$")


def quote_title(title: str) -> str:
    """Return a worksheet title safely formatted for A1 notation."""
    if _SIMPLE_TITLE_RE.fullmatch(title):
        return title
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


def _existing_titles(service, spreadsheet_id: str) -> List[str]:
    spreadsheet = service.spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
    titles = []
    for sheet in spreadsheet.get("sheets", []):
        title = sheet.get("properties", {}).get("title")
        if isinstance(title, str):
            titles.append(title)
    return titles


def _add_sheet(service, spreadsheet_id: str, title: str) -> None:
    request = {"addSheet": {"properties": {"title": title}}}
    service.spreadsheets().batchUpdate(
        spreadsheetId=spreadsheet_id,
        body={"requests": [request]},
    ).execute()


def update_worksheet(
    service,
    spreadsheet_id: str,
    title: str,
    header: Sequence[Any],
    rows: Sequence[Sequence[Any]],
) -> Dict[str, Any]:
    """Create ``title`` if missing, clear it, then write header and rows from A1.

    Values are written with RAW input so nothing is parsed as a formula.
    """
    try:
        if title not in _existing_titles(service, spreadsheet_id):
            logger.info("Creating new sheet: %s", title)
            _add_sheet(service, spreadsheet_id, title)

        values = [list(header)] + [list(row) for row in rows]
        quoted = quote_title(title)

        service.spreadsheets().values().clear(
            spreadsheetId=spreadsheet_id,
            range=quoted,
            body={},
        ).execute()

        return service.spreadsheets().values().update(
            spreadsheetId=spreadsheet_id,
            range=f"{quoted}!A1",
            valueInputOption=VALUE_INPUT_OPTION,
            body={"values": values},
        ).execute()
    except (HttpError, auth_exceptions.GoogleAuthError) as exc:
        logger.error("Error updating worksheet %s: %s", title, exc)
        raise translate_error(exc) from exc
