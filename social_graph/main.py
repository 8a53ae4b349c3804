from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from social_graph.config import settings
from social_graph.database import create_tables
from social_graph.dependencies import get_counter_sync, get_notifier
from social_graph.logging_config import configure_logging
from social_graph.routers import social
from social_graph.utils.logger import get_logger

# Configure logging first
configure_logging()
logger = get_logger(__name__)

docs_config = {}
if not settings.DEBUG:
    docs_config = {"docs_url": None, "redoc_url": None, "openapi_url": None}

app = FastAPI(
    title="Trader's Journal Social API",
    description="Friends, blocks, trade setup comments and reactions",
    version="1.0.0",
    **docs_config
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(social.router)


@app.on_event("startup")
async def startup_event():
    create_tables()
    # Wire the change feed into the counter cache before the first request
    get_counter_sync()
    logger.info(f"Social API started (debug={settings.DEBUG})")


@app.on_event("shutdown")
async def shutdown_event():
    await get_notifier().drain()


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "social-graph"}
