from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

import app.db.base  # noqa: F401  (registra os models no metadata)
from app.api.main import api_router
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging, get_logger
from app.core.settings import Env, settings
from app.middlewares.telemetry import RequestContextMiddleware
from app.version import APP_VERSION, BUILD_TIME_UTC, GIT_SHA

configure_logging(json=settings.LOG_JSON, level=settings.LOG_LEVEL)

app = FastAPI(title="Clínica - Agendamentos", version=APP_VERSION, debug=settings.DEBUG)

# --- Middlewares de contexto/log
app.add_middleware(RequestContextMiddleware)

# --- CORS
allowed_origins = []
for host in settings.ALLOWED_HOSTS.split(","):
    _host = host.strip()
    if not _host:
        continue
    # aceita tanto com quanto sem protocolo
    if _host.startswith("http"):
        allowed_origins.append(_host)
    else:
        allowed_origins.append(f"http://{_host}")
        allowed_origins.append(f"https://{_host}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=(allowed_origins or ["*"]) if settings.DEBUG else allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Segurança: HTTPS only em prod
if settings.APP_ENV == Env.PROD:
    app.add_middleware(HTTPSRedirectMiddleware)


# --- Security headers (HSTS, X-Content-Type-Options, etc.)
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)

    if settings.APP_ENV == Env.PROD:
        # 6 meses + inclui subdomínios
        response.headers["Strict-Transport-Security"] = (
            "max-age=15552000; includeSubDomains; preload"
        )

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


register_exception_handlers(app)

app.include_router(api_router)


# --- Endpoints
@app.get("/healthz", tags=["ops"])
def healthz():
    get_logger().info("health.check")
    return {"status": "ok", "env": settings.APP_ENV.value, "version": APP_VERSION}


@app.get("/version", tags=["ops"])
def version():
    return {
        "version": APP_VERSION,
        "git_sha": GIT_SHA,
        "build_time_utc": BUILD_TIME_UTC,
        "env": settings.APP_ENV.value,
        "debug": settings.DEBUG,
    }
