"""Carts FastAPI application.

Serves live carts, saved carts and cart maintenance over HTTP. Each request
is wrapped in the carts domain context; the write-behind worker lives for
the lifetime of the application.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from domain.toml:
#   - "test" / unset → in-memory provider
#   - "production"   → PostgreSQL via DATABASE_URL
from carts.domain import carts  # noqa: E402
from carts.services import get_services  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

carts.init()


@asynccontextmanager
async def lifespan(app: FastAPI):
    coordinator = get_services().coordinator
    # The worker task inherits the domain context it is started in
    with carts.domain_context():
        coordinator.write_behind.start()
        yield
        await coordinator.write_behind.stop()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Carts API",
    description="Cart persistence, recovery and merge",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the carts domain context for cart requests."""
    if request.url.path.startswith(("/carts", "/saved-carts")):
        with carts.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from carts.api import cart_router, maintenance_router, saved_cart_router  # noqa: E402

# Maintenance routes first so /carts/maintenance/* is never read as a session id
app.include_router(maintenance_router)
app.include_router(cart_router)
app.include_router(saved_cart_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    write_behind = get_services().coordinator.write_behind
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"carts": {"name": carts.name}},
            "write_behind": {"running": write_behind.running, **write_behind.stats.as_dict()},
        }
    )
