"""FastAPI application setup."""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import hashlib
import logging
import re
import time

from api.routes import chat, resources
from api.routes.health import router as health_router
from config.logging_config import setup_logging
from config.settings import settings
from database.client import init_supabase
from core.dependencies import init_dependencies, shutdown_dependencies

logger = logging.getLogger(__name__)

_UNLIMITED_PATHS = ("/health", "/ready")
_CHAT_MESSAGE_PATH_RE = re.compile(r"^/api/conversations/[^/]+/messages/?$")


def _is_strict_request(request: Request) -> bool:
    """Search and chat replies are the expensive requests."""
    path = request.url.path
    if request.method == "POST" and _CHAT_MESSAGE_PATH_RE.match(path):
        return True
    return path.rstrip("/") == "/api/resources" and bool(request.query_params.get("search"))


# ---------------------------------------------------------------------------
# Lifespan (replaces deprecated @app.on_event)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # STARTUP
    logger.info("Initializing database connection...")
    init_supabase()
    init_dependencies()
    logger.info("Application started")
    yield
    # SHUTDOWN
    await shutdown_dependencies()
    logger.info("Application shut down")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    # Setup logging
    setup_logging(settings.LOG_LEVEL)

    # Create app with lifespan
    app = FastAPI(
        title="Resource Finder API",
        description="Community resource directory with ranked search and a guided chat assistant",
        version="1.0.0",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # CORS: never combine allow_credentials=True with allow_origins=["*"]
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Simple in-process rate limiter (per-IP, per-minute, two tiers)
    # Uses a bounded dict with periodic eviction to prevent memory leaks.
    # Sharded into N locks to reduce contention under concurrency.
    # -----------------------------------------------------------------------
    _MAX_RATE_BUCKETS = 10_000
    _rate_buckets: dict[str, list[float]] = {}
    _last_eviction: float = time.time()
    _NUM_SHARDS = 16
    _rate_locks = [asyncio.Lock() for _ in range(_NUM_SHARDS)]
    RATE_LIMIT = settings.RATE_LIMIT_PER_MINUTE
    STRICT_RATE_LIMIT = settings.STRICT_RATE_LIMIT_PER_MINUTE

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        nonlocal _last_eviction

        # Skip rate limiting for health checks
        if request.url.path in _UNLIMITED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:16]
        if _is_strict_request(request):
            bucket_key = "strict:" + ip_hash
            limit = STRICT_RATE_LIMIT
        else:
            bucket_key = "ip:" + ip_hash
            limit = RATE_LIMIT

        shard_idx = hash(bucket_key) % _NUM_SHARDS
        async with _rate_locks[shard_idx]:
            now = time.time()

            # Periodic full eviction every 5 minutes to reclaim abandoned keys
            if now - _last_eviction > 300:
                stale_keys = [
                    k for k, v in _rate_buckets.items()
                    if not v or (now - v[-1]) > 120
                ]
                for k in stale_keys:
                    del _rate_buckets[k]
                if len(_rate_buckets) > _MAX_RATE_BUCKETS:
                    sorted_keys = sorted(
                        _rate_buckets,
                        key=lambda k: _rate_buckets[k][-1] if _rate_buckets[k] else 0,
                    )
                    for k in sorted_keys[: len(sorted_keys) // 2]:
                        del _rate_buckets[k]
                _last_eviction = now

            bucket = _rate_buckets.get(bucket_key, [])
            bucket = [t for t in bucket if now - t < 60]
            if len(bucket) >= limit:
                logger.warning(f"Rate limit exceeded for {bucket_key} on {request.url.path}")
                return Response(
                    content='{"detail":"Rate limit exceeded. Try again later."}',
                    status_code=429,
                    media_type="application/json",
                )
            bucket.append(now)
            _rate_buckets[bucket_key] = bucket

        response = await call_next(request)
        return response

    # Include routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(resources.router, prefix="/api", tags=["Resources"])
    app.include_router(chat.router, prefix="/api/conversations", tags=["Chat"])

    logger.info("FastAPI application created")
    return app
