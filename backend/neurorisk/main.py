import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from neurorisk.routers import assessments, profiles

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Rate limiter: 100 requests/minute per IP by default
# Disable in test mode (TESTING env var set by conftest.py)
_rate_limit_enabled = os.getenv("TESTING", "").lower() != "true"
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
    enabled=_rate_limit_enabled,
)

app = FastAPI(
    title="NeuroRisk API",
    description="Dementia risk screening from cognitive tasks and speech analysis",
    version="1.0.0"
)

# Attach rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(assessments.router, prefix="/api/assessments", tags=["assessments"])
app.include_router(profiles.router, prefix="/api/profile", tags=["profile"])


@app.on_event("startup")
async def startup_event():
    """Initialize database tables on startup."""
    from neurorisk.models.database import init_db
    init_db()
    logger.info("Database initialized")


@app.get("/")
async def root():
    return {"message": "NeuroRisk API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
