import csv
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import (
    CSV_EXPORT_FILES,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MIME_TYPE,
    DEFAULT_PORT,
    EVENT_CSV_FIELDS,
    EXPORTS_DIR_NAME,
    INDEX_FILE_NAME,
    LOG_LEVEL_ENV,
    MIME_TYPES,
    PORT_ENV,
    VOLUNTEER_CSV_FIELDS,
    VOLUNTEERS_SHEET_HEADER,
)
from sheets_api import is_permission_message, service_account_email
from sheets_sync import build_volunteer_rows, sort_volunteers, sync_to_sheets
from tracker import (
    RecordStore,
    StoreWriteError,
    ValidationError,
    VolunteerNotFoundError,
    default_public_dir,
    ensure_dirs,
    events_for_volunteer,
    new_event,
    new_volunteer,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _store(request: Request) -> RecordStore:
    return request.app.state.store


def _save(save, data) -> None:
    try:
        save(data)
    except StoreWriteError as exc:
        raise HTTPException(status_code=500, detail="Failed to save data.") from exc


def _find_volunteer(volunteers: list, volunteer_id: str) -> Optional[dict]:
    for volunteer in volunteers:
        if isinstance(volunteer, dict) and volunteer.get("id") == volunteer_id:
            return volunteer
    return None


# ============================================================================
# VOLUNTEERS & EVENTS
# ============================================================================

@router.get("/api/volunteers")
def list_volunteers(request: Request):
    return _store(request).load_volunteers()


@router.get("/api/volunteers/{volunteer_id}")
def get_volunteer(request: Request, volunteer_id: str):
    volunteer = _find_volunteer(_store(request).load_volunteers(), volunteer_id)
    if volunteer is None:
        raise HTTPException(status_code=404, detail="Volunteer not found")
    return volunteer


@router.post("/api/volunteers", status_code=201)
def create_volunteer(request: Request, payload: dict):
    try:
        volunteer = new_volunteer(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    store = _store(request)
    volunteers = store.load_volunteers()
    volunteers.append(volunteer)
    _save(store.save_volunteers, volunteers)
    return volunteer


@router.delete("/api/volunteers/{volunteer_id}")
def delete_volunteer(request: Request, volunteer_id: str):
    try:
        _store(request).delete_volunteer(volunteer_id)
    except VolunteerNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Volunteer not found") from exc
    except StoreWriteError as exc:
        raise HTTPException(status_code=500, detail="Failed to save data.") from exc
    return {"success": True}


@router.get("/api/events")
def list_events(request: Request):
    return _store(request).load_events()


@router.get("/api/volunteers/{volunteer_id}/events")
def list_volunteer_events(request: Request, volunteer_id: str):
    return events_for_volunteer(_store(request).load_events(), volunteer_id)


@router.post("/api/events", status_code=201)
def create_event(request: Request, payload: dict):
    try:
        event = new_event(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    store = _store(request)
    events = store.load_events()
    events.append(event)
    _save(store.save_events, events)
    return event


# ============================================================================
# ADMIN & SHEETS CONFIG
# ============================================================================

@router.get("/api/admin/password")
def get_admin_password(request: Request):
    return {"password": _store(request).load_config().get("adminPassword")}


@router.post("/api/admin/password")
def set_admin_password(request: Request, payload: dict):
    password = payload.get("password")
    if not password:
        raise HTTPException(status_code=400, detail="Password is required")
    store = _store(request)
    config = store.load_config()
    config["adminPassword"] = password
    _save(store.save_config, config)
    return {"success": True}


@router.get("/api/sheets/config")
def get_sheets_config(request: Request):
    return {"sheetsConfig": _store(request).load_config().get("sheetsConfig")}


@router.post("/api/sheets/config")
def set_sheets_config(request: Request, payload: dict):
    sheets_config = payload.get("sheetsConfig")
    if not sheets_config:
        raise HTTPException(status_code=400, detail="Sheets config is required")
    store = _store(request)
    config = store.load_config()
    config["sheetsConfig"] = sheets_config
    _save(store.save_config, config)
    return {"success": True}


# ============================================================================
# EXPORT & SYNC
# ============================================================================

def _write_csv(path: Path, fieldnames: list, rows: list) -> None:
    with open(path, "w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def export_csv_files(store: RecordStore) -> Path:
    """Write volunteers.csv, events.csv and summary.csv into the exports folder."""
    volunteers = [v for v in store.load_volunteers() if isinstance(v, dict)]
    events = [e for e in store.load_events() if isinstance(e, dict)]
    exports_dir = store.data_dir / EXPORTS_DIR_NAME
    ensure_dirs(exports_dir)
    volunteers_csv, events_csv, summary_csv = CSV_EXPORT_FILES
    summary = [
        dict(zip(VOLUNTEERS_SHEET_HEADER, row))
        for row in build_volunteer_rows(sort_volunteers(volunteers), events)
    ]
    _write_csv(exports_dir / volunteers_csv, VOLUNTEER_CSV_FIELDS, volunteers)
    _write_csv(exports_dir / events_csv, EVENT_CSV_FIELDS, events)
    _write_csv(exports_dir / summary_csv, VOLUNTEERS_SHEET_HEADER, summary)
    return exports_dir


@router.get("/api/export/csv")
def export_csv(request: Request):
    try:
        exports_dir = export_csv_files(_store(request))
        logger.info("CSV export written to %s", exports_dir)
    except OSError as exc:
        logger.error("CSV export failed: %s", exc)
    return {
        "success": True,
        "message": "CSV export completed",
        "files": list(CSV_EXPORT_FILES),
    }


@router.post("/api/sync/sheets")
def sync_sheets(request: Request):
    store = _store(request)
    config = store.load_config()
    sheets_config = config.get("sheetsConfig")
    if not isinstance(sheets_config, dict) or not sheets_config.get("spreadsheetId"):
        return JSONResponse({"success": False, "error": "Google Sheets not configured"}, status_code=400)

    volunteers = store.load_volunteers()
    events = store.load_events()
    spreadsheet_id = sheets_config["spreadsheetId"]
    service_email = service_account_email(sheets_config.get("credentials"))

    result = request.app.state.sync(sheets_config, volunteers, events)
    logger.info("Sync result: %s", result)

    if result.get("success"):
        return {
            "success": True,
            "message": f"Synced with Google Sheets successfully. Spreadsheet ID: {spreadsheet_id}",
            "newData": {
                "volunteers": result.get("volunteers_count", len(volunteers)),
                "events": result.get("events_count", len(events)),
            },
        }

    error = result.get("error") or ""
    kind = result.get("error_kind")
    if kind == "permission" or is_permission_message(error):
        return JSONResponse(
            {
                "success": False,
                "error": (
                    "Permission denied: The service account does not have access to this spreadsheet. "
                    f"Please share the spreadsheet with {service_email} and give it Editor permission."
                ),
                "serviceEmail": service_email,
            },
            status_code=403,
        )
    if kind == "config":
        return JSONResponse({"success": False, "error": error, "serviceEmail": service_email}, status_code=400)
    return JSONResponse(
        {
            "success": False,
            "error": error or "Unknown error during sync",
            "serviceEmail": service_email,
        },
        status_code=500,
    )


# ============================================================================
# FALLBACK ROUTES
# ============================================================================

@router.api_route("/api/{rest:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def unknown_api(rest: str):
    raise HTTPException(status_code=404, detail="API endpoint not found")


@router.api_route("/{file_path:path}", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
def static_file(request: Request, file_path: str):
    public_dir = Path(request.app.state.public_dir).resolve()
    candidate = (public_dir / (file_path or INDEX_FILE_NAME)).resolve()
    if not candidate.is_relative_to(public_dir) or not candidate.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    media_type = MIME_TYPES.get(candidate.suffix.lower(), DEFAULT_MIME_TYPE)
    return FileResponse(candidate, media_type=media_type)


# ============================================================================
# APPLICATION
# ============================================================================

def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


def _validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    app.state.store.initialize()
    yield


def create_app(store: Optional[RecordStore] = None, public_dir=None, sync=sync_to_sheets) -> FastAPI:
    """Build the application around an explicit store, static root and sync callable."""
    app = FastAPI(title="Volunteer Tracker", lifespan=_lifespan)
    app.state.store = store if store is not None else RecordStore()
    app.state.public_dir = Path(public_dir) if public_dir is not None else default_public_dir()
    app.state.sync = sync
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    logging.basicConfig(level=os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper())
    port = int(os.getenv(PORT_ENV, DEFAULT_PORT))
    logger.info("Server running on port %s", port)
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
