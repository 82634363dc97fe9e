import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blog_panel.cache import cache
from blog_panel.config import settings
from blog_panel.error_handlers import register_error_handlers
from blog_panel.logging_config import setup_logging
from blog_panel.middleware import CacheShieldMiddleware, TimingMiddleware
from blog_panel.routers import auth, posts, roles, users

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    await cache.connect()  # degrades to no cache when Redis is down
    logger.info("Blog panel started (env=%s, cache=%s)", settings.APP_ENV, cache.enabled)
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Blog Panel API",
    description="Admin-panel backend for a blog: accounts, roles, sessions and posts",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware (last added runs first)
app.add_middleware(CacheShieldMiddleware)
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["auth_token"],
)

register_error_handlers(app)

# Routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(roles.router)
app.include_router(posts.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION, "cache": cache.stats}
