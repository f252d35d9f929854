import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jiralert.api.deps import get_config
from jiralert.api.routes import alerts, health
from jiralert.config import get_settings

settings = get_settings()

# ─── Logging ─────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


# ─── Lifespan ───────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    # Fail at startup rather than on the first notification.
    config = get_config()
    logger.info(
        f"Serving receivers: {', '.join(r.name for r in config.receivers)} "
        f"(hash_jira_label={settings.hash_jira_label})"
    )
    yield
    logger.info(f"Shutting down {settings.app_name}")


# ─── App ─────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Alertmanager webhook receiver that manages Jira issues",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ─── Routes ──────────────────────────────────────────────

# Health, config and metrics at root level (no auth; used by probes and scrapers)
app.include_router(health.router)

# Alertmanager posts notifications to /alert
app.include_router(alerts.router)
