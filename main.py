from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from config import settings
from db.connection import init_db
from routes import search

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Catalog tables ready")
    yield


app = FastAPI(
    title="Catalog Search API",
    description="""
    Product search for the storefront: relevance-ranked, filtered and
    paginated results with cached pages and autocomplete suggestions.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Include routers
app.include_router(search.router)


@app.get("/")
def read_root():
    return {"name": app.title, "version": app.version, "docs": "/docs"}
