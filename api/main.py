"""
FastAPI application entry point.

On startup:
  1. Initialise the local sheet tables (STORE_BACKEND=sql only).
  2. Start the APScheduler:
       - Sightings ingest from the live feed every INGEST_POLL_SECONDS.
       - Departure-log reconciliation every RECONCILE_POLL_SECONDS.
       - Hourly rollover check (copies the log to "yesterday" at midnight).
     A job whose interval is 0 is not scheduled.

Endpoints (v1):
  GET  /health
  GET  /vehicles?lines=<route,route>
  GET  /feed
  GET  /sightings
  POST /sightings/ingest
  GET  /departures?yesterday=<bool>
  POST /departures/reconcile
  POST /departures/rollover
  POST /auth/{register,login,verify,users,users/status,me,favorites,password}
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from api.schemas import (
    ChangePasswordRequest,
    DeparturesResponse,
    FavoritesRequest,
    HealthResponse,
    IngestResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ReconcileResponse,
    RegisterRequest,
    RolloverResponse,
    SightingsResponse,
    StatusUpdateRequest,
    TokenRequest,
    UserDataResponse,
    UsersResponse,
    VehiclesResponse,
    VerifyResponse,
)
from auth.security import AuthError, now_ms
from auth.users import UserService
from config import (
    CORS_ORIGINS,
    INGEST_API_KEY,
    INGEST_POLL_SECONDS,
    RECONCILE_POLL_SECONDS,
    STORE_BACKEND,
)
from departures.clock import format_timestamp, local_now
from departures.reconcile import sighting_from_row
from departures.repository import DepartureLogRepository
from ingestion.gtfs_realtime import FeedUnavailable, fetch_feed, poll_vehicles
from ingestion.sightings import ingest_once
from store.base import TabularStore
from store.exceptions import StoreUnavailable
from store.factory import get_store, store_scope

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_ingest_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _require_ingest_key(key: str | None = Security(_ingest_key_header)) -> None:
    """
    Optional API-key guard for endpoints that write to the store on behalf
    of the scheduler (ingest, reconcile, rollover).

    If INGEST_API_KEY is not set the endpoints are open (local dev / testing).
    If it is set, the request must include the matching X-API-Key header.
    """
    if not INGEST_API_KEY:
        return  # no key configured → open
    if key != INGEST_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing X-API-Key header.")


def get_repository(store: TabularStore = Depends(get_store)) -> DepartureLogRepository:
    return DepartureLogRepository(store)


def get_user_service(store: TabularStore = Depends(get_store)) -> UserService:
    return UserService(store)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    return (
        request.headers.get("CF-Connecting-IP")
        or request.headers.get("X-Real-IP")
        or forwarded
        or (request.client.host if request.client else "")
        or "unknown"
    )


scheduler = AsyncIOScheduler()


async def _ingest_sightings_job() -> None:
    """
    Scheduled job: poll the live feed and append today's sightings.

    Opens its own store because APScheduler jobs run outside FastAPI's DI
    system.  Exceptions are logged so a transient feed or store failure
    cannot crash the scheduler.
    """
    try:
        with store_scope() as store:
            await ingest_once(DepartureLogRepository(store))
    except FeedUnavailable as exc:
        logger.warning("Sightings ingest skipped: %s", exc)
    except Exception as exc:
        logger.error("Sightings ingest failed: %s", exc, exc_info=True)


def _reconcile_job() -> None:
    """Scheduled job: merge today's sightings into the departure log."""
    try:
        with store_scope() as store:
            result = DepartureLogRepository(store).reconcile_today()
        logger.info(
            "Scheduled reconcile: %d new, %d updated (%s).",
            result.new_departures, result.updated_departures, result.message or "ok",
        )
    except Exception as exc:
        logger.error("Scheduled reconcile failed: %s", exc, exc_info=True)


def _rollover_job() -> None:
    """Scheduled job: hourly check, resets the departure log at local midnight."""
    try:
        with store_scope() as store:
            action = DepartureLogRepository(store).roll_over()
        logger.info("Rollover check: %s.", action)
    except Exception as exc:
        logger.error("Rollover failed: %s", exc, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if STORE_BACKEND == "sql":
        from db.session import init_db
        init_db()
        logger.info("Local sheet store initialised.")

    if INGEST_POLL_SECONDS > 0:
        scheduler.add_job(_ingest_sightings_job, "interval", seconds=INGEST_POLL_SECONDS, id="ingest_sightings")
        logger.info("Sightings ingest scheduled (every %ds).", INGEST_POLL_SECONDS)
    else:
        logger.info("Sightings ingest disabled (INGEST_POLL_SECONDS=0).")

    if RECONCILE_POLL_SECONDS > 0:
        scheduler.add_job(_reconcile_job, "interval", seconds=RECONCILE_POLL_SECONDS, id="reconcile_departures")
        logger.info("Departure reconciliation scheduled (every %ds).", RECONCILE_POLL_SECONDS)
    else:
        logger.info("Departure reconciliation disabled (RECONCILE_POLL_SECONDS=0).")

    scheduler.add_job(_rollover_job, "cron", minute=0, id="hourly_rollover")

    scheduler.start()
    logger.info("Scheduler started.")

    yield

    # Shutdown
    if scheduler.running:
        scheduler.shutdown()


app = FastAPI(
    title="Departure Board",
    description="Live vehicle feed proxy and daily departure log for city bus routes.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailable)
async def _store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Store request failed", "details": str(exc)},
    )


@app.exception_handler(FeedUnavailable)
async def _feed_unavailable_handler(request: Request, exc: FeedUnavailable) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": "Failed to fetch data", "details": str(exc)},
    )


@app.exception_handler(AuthError)
async def _auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check plus the next run time of each scheduled job."""
    jobs = {
        job.id: job.next_run_time.isoformat() if job.next_run_time else None
        for job in scheduler.get_jobs()
    }
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "store": STORE_BACKEND,
        "scheduler_running": scheduler.running,
        "jobs": jobs,
    }


# ---------------------------------------------------------------------------
# Live feed
# ---------------------------------------------------------------------------

@app.get("/vehicles", response_model=VehiclesResponse)
async def get_vehicles(
    lines: str | None = Query(None, description="Comma-separated route numbers to keep"),
) -> VehiclesResponse:
    """Current vehicle positions and trip destinations from the live feed."""
    wanted = {line.strip() for line in lines.split(",") if line.strip()} if lines else None
    snapshot = await poll_vehicles(wanted)
    return {**snapshot.to_dict(), "timestamp": now_ms()}


@app.get("/feed")
async def get_feed() -> dict:
    """Raw live feed, decoded but otherwise untouched."""
    return await fetch_feed()


# ---------------------------------------------------------------------------
# Sightings
# ---------------------------------------------------------------------------

@app.get("/sightings", response_model=SightingsResponse)
def get_sightings(repository: DepartureLogRepository = Depends(get_repository)) -> SightingsResponse:
    """All raw sightings rows (any date), in table order."""
    vehicles = []
    for row in repository.read_sightings():
        sighting = sighting_from_row(row)
        if sighting is None:
            continue
        vehicles.append({
            "vehicleLabel": sighting.vehicle_label,
            "routeId": sighting.route_id,
            "departureTime": sighting.departure_time,
            "direction": sighting.direction,
            "observedAt": sighting.observed_at,
            "date": sighting.date,
        })
    return {
        "success": True,
        "vehicles": vehicles,
        "count": len(vehicles),
        "lastUpdate": vehicles[-1]["observedAt"] if vehicles else None,
        "sheetName": repository.sightings_sheet,
    }


@app.post("/sightings/ingest", response_model=IngestResponse)
async def trigger_ingest(
    repository: DepartureLogRepository = Depends(get_repository),
    _: None = Depends(_require_ingest_key),
) -> IngestResponse:
    """Poll the live feed once and append its sightings (normally scheduled)."""
    appended = await ingest_once(repository)
    return {"success": True, "appended": appended, "timestamp": format_timestamp(local_now())}


# ---------------------------------------------------------------------------
# Departure log
# ---------------------------------------------------------------------------

@app.get("/departures", response_model=DeparturesResponse)
def get_departures(
    yesterday: bool = Query(False, description="Read yesterday's log instead of today's"),
    repository: DepartureLogRepository = Depends(get_repository),
) -> DeparturesResponse:
    sheet_name = repository.yesterday_sheet if yesterday else repository.departures_sheet
    routes = repository.load_log(sheet_name).to_dicts()
    return {
        "success": True,
        "routes": routes,
        "totalRoutes": len(routes),
        "sheetName": sheet_name,
    }


@app.post("/departures/reconcile", response_model=ReconcileResponse)
def trigger_reconcile(
    repository: DepartureLogRepository = Depends(get_repository),
    _: None = Depends(_require_ingest_key),
) -> ReconcileResponse:
    """
    Merge today's sightings into the departure log and rewrite the sheet.

    Safe to call repeatedly: sightings already in the log only refresh
    their last-seen time.
    """
    result = repository.reconcile_today()
    return {
        "success": True,
        "newDepartures": result.new_departures,
        "updatedDepartures": result.updated_departures,
        "totalRows": result.total_rows,
        "timestamp": result.timestamp,
        "sheetUsed": result.sheet_used,
        "message": result.message,
    }


@app.post("/departures/rollover", response_model=RolloverResponse)
def trigger_rollover(
    repository: DepartureLogRepository = Depends(get_repository),
    _: None = Depends(_require_ingest_key),
) -> RolloverResponse:
    now = local_now()
    action = repository.roll_over(now)
    return {"success": True, "time": format_timestamp(now), "action": action}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@app.post("/auth/register", response_model=MessageResponse)
def register(
    body: RegisterRequest,
    request: Request,
    users: UserService = Depends(get_user_service),
) -> MessageResponse:
    message = users.register(
        body.username, body.password, body.captcha,
        ip=_client_ip(request),
        user_agent=body.userAgent or request.headers.get("User-Agent"),
    )
    return {"success": True, "message": message}


@app.post("/auth/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    request: Request,
    users: UserService = Depends(get_user_service),
) -> LoginResponse:
    if not body.username or not body.password:
        raise AuthError("Nedostaju parametri", 400)
    session = users.login(
        body.username, body.password,
        ip=_client_ip(request),
        user_agent=body.userAgent or request.headers.get("User-Agent"),
    )
    return {"success": True, "message": "Uspešna prijava", **session}


@app.post("/auth/verify", response_model=VerifyResponse)
def verify(body: TokenRequest, users: UserService = Depends(get_user_service)) -> VerifyResponse:
    return {"success": True, **users.verify(body.token)}


@app.post("/auth/users", response_model=UsersResponse)
def list_users(body: TokenRequest, users: UserService = Depends(get_user_service)) -> UsersResponse:
    return {"success": True, "users": users.list_users(body.token)}


@app.post("/auth/users/status", response_model=MessageResponse)
def update_status(
    body: StatusUpdateRequest, users: UserService = Depends(get_user_service)
) -> MessageResponse:
    users.update_status(body.token, body.rowNumber, body.status)
    return {"success": True, "message": "Status ažuriran"}


@app.post("/auth/me", response_model=UserDataResponse)
def get_user_data(body: TokenRequest, users: UserService = Depends(get_user_service)) -> UserDataResponse:
    return {"success": True, **users.get_user_data(body.token)}


@app.post("/auth/favorites", response_model=MessageResponse)
def save_favorites(body: FavoritesRequest, users: UserService = Depends(get_user_service)) -> MessageResponse:
    users.save_favorites(body.token, body.favorites)
    return {"success": True, "message": "Omiljene linije sačuvane"}


@app.post("/auth/password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest, users: UserService = Depends(get_user_service)
) -> MessageResponse:
    users.change_password(body.token, body.currentPassword, body.newPassword)
    return {"success": True, "message": "Lozinka uspešno promenjena"}


if __name__ == "__main__":
    import uvicorn
    from config import API_HOST, API_PORT

    uvicorn.run("api.main:app", host=API_HOST, port=API_PORT)
