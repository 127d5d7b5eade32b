import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from conduit.config import settings, validate_security_settings
from conduit.database import engine
from conduit.errors import install_exception_handlers
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles, users
from conduit.services import password_service

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_security_settings()
    logger.info("Conduit API starting (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    password_service.shutdown()
    await engine.dispose()

app = FastAPI(
    title="Conduit API",
    description="Social blogging platform: users, profiles, articles, comments",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
