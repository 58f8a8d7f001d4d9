"""
FastAPI server: application inventory, NVD feed proxy and alert center.
"""
import logging
import math
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException

from Database import DatabaseManager
from Database.DatabaseConfig import SEVERITY_LEVELS, AppConfig, get_config
from exceptions import AuthError, ChainGuardError, UpstreamError, ValidationError
from Services.AlertStore import AlertStore
from Services.ApplicationInventory import ApplicationInventory, ApplicationPayload
from Services.AuthVerifier import AuthVerifier, TokenAuthVerifier
from Services.NVDFeedAdapter import DATE_FIELDS, DEFAULT_SINCE_DAYS, NVDFeedAdapter
from Services.VulnerabilityFilter import FilterCriteria, filter_and_project

logger = logging.getLogger(__name__)

FEED_CACHE_CONTROL = "s-maxage=300, stale-while-revalidate=86400"
# Longer windows are clamped again against the current date by the feed adapter
MAX_SINCE_DAYS = (datetime.max - datetime.min).days


# ==================== Pydantic Models ====================

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; responses carry the offset explicitly."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ApplicationResponse(BaseModel):
    id: str
    user_id: str = Field(serialization_alias="userId")
    name: str
    vendor: str
    version: Optional[str]
    category: Optional[str]
    added_date: Optional[datetime] = Field(serialization_alias="addedDate")
    deleted: bool
    deleted_at: Optional[datetime] = Field(serialization_alias="deletedAt")

    @validator("added_date", "deleted_at")
    def dates_are_utc(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class AlertResponse(BaseModel):
    id: str
    message: str
    severity: str
    timestamp: datetime
    vulnerability_id: str = Field(serialization_alias="vulnerabilityId")
    app_ids: List[str] = Field(serialization_alias="appIds")
    read: bool

    @validator("timestamp")
    def timestamp_is_utc(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class AlertStatsResponse(BaseModel):
    total: int
    unread: int
    critical: int
    high: int
    recent: int


class MarkReadRequest(BaseModel):
    ids: List[str] = Field(..., max_length=1000)


class FeedQuery(BaseModel):
    """Validated query of GET /vulnerabilities"""
    keyword: str = ""
    results_per_page: int = Field(default=20, ge=1, le=2000)
    since_days: int = Field(default=DEFAULT_SINCE_DAYS, ge=0)
    date_field: str = "published"
    severity_min: str = "LOW"
    exclude_rejected: bool = True
    start_index: int = Field(default=0, ge=0)


# ==================== Query parsing ====================

def _parse_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _parse_since_days(raw: Optional[str]) -> int:
    # Missing, zero or non-numeric means the default window; negatives clamp to 0
    try:
        value = float(raw) if raw is not None and raw.strip() else 0.0
    except ValueError:
        value = 0.0
    if math.isnan(value) or value == 0:
        return DEFAULT_SINCE_DAYS
    if value < 0:
        return 0
    return int(min(value, MAX_SINCE_DAYS))


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    # Only the literal "true" switches a flag on once the parameter is present
    if raw is None:
        return default
    return raw == "true"



def parse_feed_query(params) -> FeedQuery:
    date_field = params.get("dateField") or "published"
    if date_field not in DATE_FIELDS:
        raise ValidationError(f"dateField must be one of {', '.join(DATE_FIELDS)}")

    results_per_page = _parse_int("resultsPerPage", params.get("resultsPerPage"), 20)
    if not 1 <= results_per_page <= 2000:
        raise ValidationError("resultsPerPage must be between 1 and 2000")

    start_index = _parse_int("startIndex", params.get("startIndex"), 0)
    if start_index < 0:
        raise ValidationError("startIndex must be >= 0")

    return FeedQuery(
        keyword=(params.get("keywordSearch") or "").strip(),
        results_per_page=results_per_page,
        since_days=_parse_since_days(params.get("sinceDays")),
        date_field=date_field,
        severity_min=(params.get("severityMin") or "LOW").strip().upper(),
        exclude_rejected=_parse_bool(params.get("excludeRejected"), True),
        start_index=start_index,
    )


# ==================== CORS ====================

class NoContentPreflightCORS(CORSMiddleware):
    """CORSMiddleware whose accepted preflights on ``no_content_paths`` are a bodiless 204."""

    def __init__(self, app, no_content_paths=(), **kwargs):
        super().__init__(app, **kwargs)
        self.no_content_paths = frozenset(no_content_paths)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["method"] == "OPTIONS" and scope["path"] in self.no_content_paths:
            headers = Headers(scope=scope)
            if "origin" in headers and "access-control-request-method" in headers:
                response = self.preflight_response(request_headers=headers)
                if response.status_code == 200:
                    kept = {k: v for k, v in response.headers.items()
                            if k not in ("content-length", "content-type")}
                    response = Response(status_code=204, headers=kept)
                await response(scope, receive, send)
                return
        await super().__call__(scope, receive, send)


# ==================== Dependencies ====================

def get_db(request: Request):
    """Dependency for FastAPI"""
    yield from request.app.state.db.get_db()


def current_user(request: Request) -> str:
    """Verified identity subject, or 401 before any other work happens"""
    result = request.app.state.auth.verify(request)
    if not result.authorized:
        raise AuthError("Unauthorized", details={"error": result.error or "Invalid credentials"})
    if result.user is None or not result.user.sub:
        raise AuthError("User ID not found in token")
    return result.user.sub


# ==================== Application factory ====================

def create_app(config: Optional[AppConfig] = None, db: Optional[DatabaseManager] = None,
               auth: Optional[AuthVerifier] = None, feed: Optional[NVDFeedAdapter] = None) -> FastAPI:
    config = config or get_config()

    app = FastAPI(title="ChainGuardia Vulnerability API")
    app.state.config = config
    app.state.db = db or DatabaseManager.from_config(config)
    app.state.auth = auth or TokenAuthVerifier(
        config.security.api_tokens,
        require_authentication=config.security.require_authentication,
    )
    app.state.feed = feed or NVDFeedAdapter(config.nvd)

    app.state.db.create_all()

    @app.on_event("shutdown")
    async def shutdown():
        app.state.feed.close()
        logger.info("Feed client closed")

    _register_error_handlers(app)

    # Added last so it wraps everything above, error responses included
    app.add_middleware(
        NoContentPreflightCORS,
        no_content_paths=["/vulnerabilities"],
        allow_origins=config.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI):
    config: AppConfig = app.state.config

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(ChainGuardError)
    async def service_error_handler(request: Request, exc: ChainGuardError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail},
                            headers=getattr(exc, "headers", None))

    @app.middleware("http")
    async def catch_unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.url.path}")
            content = {"message": "Internal server error"}
            if not config.is_production:
                content["error"] = str(e)
            return JSONResponse(status_code=500, content=content)


def _register_routes(app: FastAPI):

    # ==================== Application Endpoints ====================

    @app.get("/applications", response_model=List[ApplicationResponse])
    def list_applications(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
        """Non-deleted applications owned by the caller"""
        return ApplicationInventory(db).list(user_id)

    @app.post("/applications", response_model=ApplicationResponse, status_code=201)
    def create_application(payload: ApplicationPayload, response: Response,
                           user_id: str = Depends(current_user), db: Session = Depends(get_db)):
        """Create an application, or restore a soft-deleted one with the same identity"""
        application, created = ApplicationInventory(db).create(user_id, payload)
        response.status_code = 201 if created else 200
        return application

    @app.delete("/applications")
    def delete_application(id: Optional[str] = None, user_id: str = Depends(current_user),
                           db: Session = Depends(get_db)):
        """Soft-delete an application owned by the caller"""
        if not id or not id.strip():
            raise ValidationError("Application ID is required")
        ApplicationInventory(db).soft_delete(user_id, id.strip())
        return {"message": "Application soft-deleted"}

    # ==================== Vulnerability Feed Endpoints ====================

    @app.options("/vulnerabilities")
    def vulnerabilities_options():
        return Response(status_code=204)

    @app.get("/vulnerabilities")
    def get_vulnerabilities(request: Request):
        """Proxy the NVD feed with server-side filtering"""
        query = parse_feed_query(request.query_params)

        result = request.app.state.feed.fetch(
            keyword=query.keyword,
            since_days=query.since_days,
            date_field=query.date_field,
            start_index=query.start_index,
            results_per_page=query.results_per_page,
        )
        criteria = FilterCriteria(min_severity=query.severity_min, exclude_rejected=query.exclude_rejected)
        items = filter_and_project(result.records, criteria)

        body = {
            "total": len(items),
            "dateFilter": result.window.to_dict(),
            "severityMin": query.severity_min,
            "excludeRejected": query.exclude_rejected,
            "items": [item.model_dump(by_alias=True) for item in items],
        }
        return JSONResponse(status_code=200, content=body, headers={"Cache-Control": FEED_CACHE_CONTROL})

    # ==================== Alert Endpoints ====================

    @app.get("/alerts", response_model=List[AlertResponse])
    def get_alerts(severity: Optional[str] = None, unreadOnly: bool = False,
                   limit: Optional[int] = Query(None, ge=1, le=500),
                   user_id: str = Depends(current_user), db: Session = Depends(get_db)):
        """Caller's alerts, newest first"""
        if severity and severity.upper() not in SEVERITY_LEVELS:
            raise ValidationError(f"severity must be one of {', '.join(SEVERITY_LEVELS)}")
        return AlertStore(db, user_id).filter(severity=severity, unread_only=unreadOnly, limit=limit)

    @app.get("/alerts/stats", response_model=AlertStatsResponse)
    def get_alert_stats(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
        return AlertStore(db, user_id).stats()

    @app.post("/alerts/read")
    def mark_alerts_read(body: MarkReadRequest, user_id: str = Depends(current_user),
                         db: Session = Depends(get_db)):
        updated = AlertStore(db, user_id).mark_as_read(body.ids)
        return {"updated": updated}

    @app.delete("/alerts/{alert_id}")
    def delete_alert(alert_id: str, strict: bool = False, user_id: str = Depends(current_user),
                     db: Session = Depends(get_db)):
        deleted = AlertStore(db, user_id).delete(alert_id, strict=strict)
        return {"message": "Alert deleted" if deleted else "Alert not found", "deleted": deleted}

    # ==================== Health Check ====================

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc)}
