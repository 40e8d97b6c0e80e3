from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .api import install_envelope_handlers, router
from .config import settings
from .db import Base, SessionLocal, engine
from .observability import request_tracing_middleware, setup_logging

_MAINTENANCE_BYPASS_PREFIXES = (
    "/health",
    "/ping",
    "/docs",
    "/redoc",
    "/openapi.json",
)

if settings.DATABASE_URL.startswith("sqlite") or bool(settings.DB_AUTO_CREATE_ALL):
    Base.metadata.create_all(bind=engine)
setup_logging()

app = FastAPI(
    title="careflow",
    description="Home-care visit and care log store",
    version="0.1.0",
)
install_envelope_handlers(app)


@app.middleware("http")
async def maintenance_mode_middleware(request: Request, call_next):
    path = request.url.path or ""
    method = request.method.upper()
    retry_after = str(max(1, int(settings.MAINTENANCE_RETRY_AFTER_SECONDS)))

    if bool(settings.MAINTENANCE_MODE):
        if not any(path.startswith(prefix) for prefix in _MAINTENANCE_BYPASS_PREFIXES):
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "message": "Service temporarily unavailable: maintenance mode",
                    "data": None,
                },
                headers={"Retry-After": retry_after},
            )

    if bool(settings.MAINTENANCE_READ_ONLY):
        if method not in {"GET", "HEAD", "OPTIONS"}:
            return JSONResponse(
                status_code=503,
                content={"success": False, "message": "Service is in read-only mode", "data": None},
                headers={"Retry-After": retry_after},
            )
    return await call_next(request)


@app.middleware("http")
async def app_request_tracing_middleware(request: Request, call_next):
    return await request_tracing_middleware(request, call_next)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if bool(settings.SECURITY_HEADERS_ENABLED):
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
    return response


@app.get("/ping")
def ping():
    return {"ok": True}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/health/ready")
def ready():
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        return JSONResponse(status_code=503, content={"status": "not_ready", "checks": {"db": "error"}})
    return {"status": "ready", "checks": {"db": "ok"}}


app.include_router(router)
