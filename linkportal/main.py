import secrets
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .auth import PinLockout, client_ip, require_admin, verify_pin
from .catalog import CatalogService
from .claims import ClaimService
from .config import Settings, get_settings
from .errors import InvalidInput, PayloadTooLarge, PortalError
from .models import ClaimIn, FolderIn, IdIn, LinkIn, PinIn, read_body
from .observability import setup_logging
from .storage import SnapshotStore

VISITOR_COOKIE = "divine_uid"
VISITOR_COOKIE_MAX_AGE = 10 * 365 * 24 * 3600  # seconds


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_claims(request: Request) -> ClaimService:
    return request.app.state.claims


# Public: catalog listing and claims
public_router = APIRouter()


@public_router.get("/links")
async def list_links(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.list_folders()


@public_router.post("/claim")
async def claim_link(request: Request, claims: ClaimService = Depends(get_claims)):
    body = await read_body(request, ClaimIn)
    if not body.id:
        raise InvalidInput("Missing id")
    url = await claims.claim(request.state.visitor_id, body.id)
    return {"ok": True, "url": url}


# Admin: PIN check is open, everything else needs the session flag.
# Admin handlers read their body themselves so the gate runs before any parsing.
auth_router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_admin)])


@auth_router.post("/verify-pin")
async def verify_admin_pin(request: Request):
    settings: Settings = request.app.state.settings
    body = await read_body(request, PinIn)
    ip = client_ip(request, settings.trust_proxy_headers)
    verify_pin(request.app.state.lockout, ip, body.pin, settings.admin_pin)
    request.session["isAdmin"] = True
    return {"ok": True}


@admin_router.post("/add-folder")
async def add_folder(request: Request, catalog: CatalogService = Depends(get_catalog)):
    body = await read_body(request, FolderIn)
    folder_id = await catalog.add_folder(body.title)
    return {"ok": True, "id": folder_id}


@admin_router.post("/remove-folder")
async def remove_folder(request: Request, catalog: CatalogService = Depends(get_catalog)):
    body = await read_body(request, IdIn)
    await catalog.remove_folder(body.id)
    return {"ok": True}


@admin_router.post("/add-link")
async def add_link(request: Request, catalog: CatalogService = Depends(get_catalog)):
    body = await read_body(request, LinkIn)
    link_id = await catalog.add_link(body.folder_id, body.name, body.url)
    return {"ok": True, "id": link_id}


@admin_router.post("/remove-link")
async def remove_link(request: Request, catalog: CatalogService = Depends(get_catalog)):
    body = await read_body(request, IdIn)
    await catalog.remove_link(body.id)
    return {"ok": True}


@admin_router.post("/clear-my-timer")
async def clear_my_timer(request: Request, catalog: CatalogService = Depends(get_catalog)):
    await catalog.clear_claim_timer(request.state.visitor_id)
    return {"ok": True}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_json)
    # make sure the snapshot exists before the first request
    await app.state.store.load()
    if not settings.admin_pin:
        logger.warning("ADMIN_PIN is not set. Administrative endpoints will always reject.")
    logger.info("Link portal ready, data file {}", settings.data_file)
    yield
    await app.state.store.close()
    logger.info("Link portal shutting down")


def register_error_handlers(app: FastAPI, api_prefix: str) -> None:
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.debug("Validation error on {}: {}", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"ok": False, "message": "invalid request"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and request.url.path.startswith(api_prefix):
            return JSONResponse(status_code=404, content={"ok": False, "message": "not found"})
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error("Unhandled exception on {}", request.url.path)
        return JSONResponse(status_code=500, content={"ok": False, "message": "internal error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    prefix = settings.path_prefix

    app = FastAPI(title="LinkPortal", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = SnapshotStore(settings.data_file)
    app.state.catalog = CatalogService(app.state.store)
    app.state.claims = ClaimService(app.state.store)
    app.state.lockout = PinLockout()

    session_secret = settings.admin_session_secret
    if not session_secret:
        logger.warning("ADMIN_SESSION_SECRET is not set; admin sessions end on restart")
        session_secret = secrets.token_urlsafe(32)
    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        same_site="strict",
        https_only=False,  # set behind TLS in production
    )

    @app.middleware("http")
    async def assign_visitor(request: Request, call_next):
        visitor_id = request.cookies.get(VISITOR_COOKIE)
        issued = not visitor_id
        if issued:
            visitor_id = str(uuid.uuid4())
        request.state.visitor_id = visitor_id
        response = await call_next(request)
        if issued:
            response.set_cookie(
                VISITOR_COOKIE,
                visitor_id,
                max_age=VISITOR_COOKIE_MAX_AGE,
                httponly=True,
                samesite="strict",
                path="/",
            )
        return response

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            return JSONResponse(status_code=413, content=PayloadTooLarge().to_response())
        return await call_next(request)

    register_error_handlers(app, prefix + "/api")

    app.include_router(public_router, prefix=prefix + "/api/sites")
    app.include_router(auth_router, prefix=prefix + "/admin/sites")
    app.include_router(admin_router, prefix=prefix + "/admin/sites")

    @app.get("/_health")
    def health():
        return {"ok": True}

    # mounted last so the API routes win
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()
