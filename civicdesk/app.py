# Civic issue reporting backend
# FastAPI HTTP surface over accounts, the issue lifecycle and escalation

import time
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.datastructures import Headers
from starlette.requests import Request

from .auth import AccountService, Authenticator, build_authenticator
from .config import (CORS_ORIGINS, DEFAULT_CATEGORY, ESCALATION_DEPARTMENT,
                     ESCALATION_INTERVAL_SECONDS, ESCALATION_STALE_DAYS, HOST,
                     MAX_BODY_BYTES, PORT, RATE_LIMIT_LOGIN, RATE_LIMIT_SIGNUP,
                     SEED_DEMO_DATA, TOKEN_SCHEME)
from .errors import AuthenticationError, CivicDeskError
from .escalation import EscalationScheduler
from .lifecycle import IssueLifecycle
from .media import HeuristicMediaGate, MediaGate
from .models import (IssueCreate, IssueEnvelope, IssueFilter, IssueList, IssueStatus,
                     IssueUpdate, LoginRequest, Priority, SignupRequest, TokenResponse,
                     UserResponse, VerifyRequest, VerifyResponse)
from .seed import load_demo_data
from .store import InMemoryIssueStore, InMemoryUserStore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)
router = APIRouter()

BODY_TOO_LARGE = "Request body too large"

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info("%s %s %d %.1fms", request.method, request.url.path,
                    response.status_code, (time.perf_counter() - started) * 1000)
        return response

class BodySizeLimitMiddleware:
    """Answers 413 for request bodies larger than ``max_body_bytes``.

    A declared Content-Length is checked up front; the bytes actually received
    are counted too, so chunked uploads without that header hit the same limit.
    """

    def __init__(self, app, max_body_bytes: int = MAX_BODY_BYTES):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        length = Headers(scope=scope).get("content-length")
        if length and length.isdigit() and int(length) > self.max_body_bytes:
            response = JSONResponse(status_code=413, content={"detail": BODY_TOO_LARGE})
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    # raised while the route reads its body, before any response starts
                    raise HTTPException(status_code=413, detail=BODY_TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)

# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------
async def civicdesk_error_handler(request: Request, exc: CivicDeskError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message},
                        headers=headers)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts

def get_lifecycle(request: Request) -> IssueLifecycle:
    return request.app.state.lifecycle

def get_gate(request: Request) -> MediaGate:
    return request.app.state.gate

def _bearer_token(token: Optional[str] = Depends(oauth2_scheme),
                  legacy_token: Optional[str] = Header(None, alias="token")) -> str:
    # The existing web client sends the raw token in a "token" header
    raw = token or legacy_token
    if not raw:
        raise AuthenticationError("Not authenticated")
    return raw

async def get_current_user_id(token: str = Depends(_bearer_token),
                              accounts: AccountService = Depends(get_accounts)) -> str:
    return accounts.resolve(token)

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

# ---------------------------------------------------------------------------
# HEALTH
# ---------------------------------------------------------------------------
@router.get("/health")
async def health():
    return {"status": "ok"}

# ---------------------------------------------------------------------------
# AUTH ENDPOINTS
# ---------------------------------------------------------------------------
@router.post("/auth/signup", response_model=TokenResponse)
@limiter.limit(RATE_LIMIT_SIGNUP)
async def signup(request: Request, form: SignupRequest,
                 accounts: AccountService = Depends(get_accounts)):
    token, user = accounts.signup(form.email, form.national_id, form.password,
                                  form.role, form.language)
    return TokenResponse(token=token, user=UserResponse.from_user(user))

@router.post("/auth/login", response_model=TokenResponse)
@limiter.limit(RATE_LIMIT_LOGIN)
async def login(request: Request, form: LoginRequest,
                accounts: AccountService = Depends(get_accounts)):
    token, user = accounts.login(form.identifier, form.password)
    return TokenResponse(token=token, user=UserResponse.from_user(user))

@router.get("/auth/me", response_model=UserResponse)
async def get_me(token: str = Depends(_bearer_token),
                 accounts: AccountService = Depends(get_accounts)):
    return UserResponse.from_user(accounts.current_user(token))

# ---------------------------------------------------------------------------
# MEDIA VERIFICATION
# ---------------------------------------------------------------------------
@router.post("/verify", response_model=VerifyResponse, response_model_exclude_none=True)
async def verify(body: Optional[VerifyRequest] = None, gate: MediaGate = Depends(get_gate)):
    # Categorisation is done by the client-side classifier; we only echo the default.
    verdict = gate(body.media if body else None)
    return VerifyResponse(accepted=verdict.accepted, reason=verdict.reason,
                          category=DEFAULT_CATEGORY)

# ---------------------------------------------------------------------------
# ISSUE ENDPOINTS
# ---------------------------------------------------------------------------
@router.get("/issues", response_model=IssueList)
async def list_issues(
    category: Optional[str] = None, status: Optional[IssueStatus] = None,
    priority: Optional[Priority] = None,
    created_from: Optional[datetime] = Query(None, alias="from"),
    created_to: Optional[datetime] = Query(None, alias="to"),
    lifecycle: IssueLifecycle = Depends(get_lifecycle)):
    filters = IssueFilter(category=category, status=status, priority=priority,
                          created_from=_as_utc(created_from), created_to=_as_utc(created_to))
    return IssueList(issues=lifecycle.list(filters))

@router.post("/issues", response_model=IssueEnvelope)
async def create_issue(data: IssueCreate, user_id: str = Depends(get_current_user_id),
                       lifecycle: IssueLifecycle = Depends(get_lifecycle)):
    issue = lifecycle.create(
        user_id, data.description, data.priority, category=data.category,
        emergency=data.emergency, location=data.location, media=data.media,
        voice=data.voice, department=data.department)
    return IssueEnvelope(issue=issue)

@router.get("/issues/{issue_id}", response_model=IssueEnvelope)
async def get_issue(issue_id: str, lifecycle: IssueLifecycle = Depends(get_lifecycle)):
    return IssueEnvelope(issue=lifecycle.get(issue_id))

# TODO: require an Admin token here; any caller can currently change any issue.
@router.patch("/issues/{issue_id}", response_model=IssueEnvelope)
async def update_issue(issue_id: str, data: IssueUpdate,
                       lifecycle: IssueLifecycle = Depends(get_lifecycle)):
    changes = {"status": data.status, "priority": data.priority}
    if "department" in data.model_fields_set:
        changes["department"] = data.department
    return IssueEnvelope(issue=lifecycle.update_status(issue_id, **changes))

# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(authenticator: Optional[Authenticator] = None,
               gate: Optional[MediaGate] = None,
               seed_demo: bool = SEED_DEMO_DATA,
               start_scheduler: bool = True,
               escalation_interval: float = ESCALATION_INTERVAL_SECONDS,
               max_body_bytes: int = MAX_BODY_BYTES) -> FastAPI:
    users = InMemoryUserStore()
    issues = InMemoryIssueStore()
    gate = gate or HeuristicMediaGate()
    accounts = AccountService(users, authenticator or build_authenticator(TOKEN_SCHEME))
    lifecycle = IssueLifecycle(issues, users, gate=gate)
    scheduler = EscalationScheduler(
        lifecycle, interval=escalation_interval,
        stale_after=timedelta(days=ESCALATION_STALE_DAYS), department=ESCALATION_DEPARTMENT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if seed_demo:
            load_demo_data(accounts, lifecycle)
        if start_scheduler:
            scheduler.start()
        logger.info("Civic issue API ready")
        yield
        await scheduler.stop()

    app = FastAPI(title="Civic Issue Reporting API", lifespan=lifespan)
    app.state.limiter = limiter
    app.state.accounts = accounts
    app.state.lifecycle = lifecycle
    app.state.gate = gate
    app.state.scheduler = scheduler
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(CivicDeskError, civicdesk_error_handler)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=max_body_bytes)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host=HOST, port=PORT)
