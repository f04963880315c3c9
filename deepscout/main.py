from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deepscout.api.routes import research
from deepscout.config import settings
from deepscout.models.schemas import HealthResponse
from deepscout.services.research_cache import ResearchCache
from deepscout.tools.content_extractor import PageContentService
from deepscout.tools.search_provider import WebSearchClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app.state.research_cache = ResearchCache(ttl_seconds=settings.research_cache_ttl_seconds)
    app.state.search_client = WebSearchClient()
    app.state.page_content = PageContentService()
    yield
    # Shutdown
    app.state.research_cache.clear()


app = FastAPI(
    title="deepscout",
    description="Deep research retrieval, ranking and illustration engine",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)


@app.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", service="deepscout")
