# app.py — mounts routers, exposes health, and surfaces mount failures

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.db import DatabaseError
from api.errors import database_exception_handler
from api.middleware.limits import rate_limit_exception_handler
from api.middleware.roles import RoleResolutionMiddleware
from config import current_config, load_config
from core.limits import RateLimitExceeded
from core.rbac import configure_resolver

# Try to load config, but don't exit - create app anyway to show error
_config_error = None
try:
    CFG = load_config()
except RuntimeError as e:
    _config_error = str(e)
    print("=" * 80, file=sys.stderr)
    print(f"FATAL: Failed to load configuration: {e}", file=sys.stderr)
    print("Required variables: SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_JWT_SECRET", file=sys.stderr)
    print("=" * 80, file=sys.stderr)
    CFG = current_config()

logging.basicConfig(
    level=CFG.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Technique Catalog",
    version="0.1.0",
    description="Surgical technique catalog: scoped browsing, per-user lists, and admin roles.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CFG.get("CORS_ALLOW_ORIGINS") or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RoleResolutionMiddleware)

app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
app.add_exception_handler(DatabaseError, database_exception_handler)


def _load_profile(user_id: str):
    from api.deps import get_db
    return get_db().get_profile(user_id)


if CFG.get("SUPABASE_JWT_SECRET"):
    configure_resolver(supabase_jwt_secret=CFG["SUPABASE_JWT_SECRET"], profile_loader=_load_profile)
else:
    logger.warning("SUPABASE_JWT_SECRET not set; every request resolves as anonymous")

# Track router mount failures so 404s aren't mysteries.
_router_failures = []
_mounted = []


def _mount(router_module_name: str, package: str = "router"):
    try:
        mod = __import__(f"{package}.{router_module_name}", fromlist=["router"])
        app.include_router(mod.router)
        _mounted.append(router_module_name)
        logger.info(f"[routers] mounted {package}.{router_module_name}")
    except Exception as e:
        msg = repr(e)
        _router_failures.append({"router": router_module_name, "error": msg})
        logger.error(f"[routers] failed to mount '{router_module_name}': {msg}", exc_info=True)


_mount("catalog")
_mount("interactions")
_mount("rep")
_mount("auth")
_mount("debug")
_mount("roles", package="api.admin")
_mount("curation", package="api.admin")
_mount("review", package="api.admin")
_mount("companies", package="api.admin")
_mount("analytics", package="api.admin")
_mount("messages", package="api.admin")


@app.get("/debug/routers")
def debug_routers():
    """Shows which routers mounted successfully and which failed at import time."""
    return {
        "mounted": _mounted,
        "failures": _router_failures,
    }


@app.get("/healthz")
async def healthz():
    """Liveness check; degraded when configuration failed to load."""
    if _config_error:
        return {"status": "degraded", "config_error": _config_error}
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"service": app.title, "version": app.version}
