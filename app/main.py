"""FastAPI application entry point for the Avacyn chat API."""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.ai.provider import ModelProvider
from app.api.routes.agents import router as agents_router
from app.api.routes.chat import router as chat_router
from app.api.routes.document import router as document_router
from app.api.routes.vote import router as vote_router
from app.config import settings
from app.database import init_db, session_factory
from app.services.chat_service import ChatService
from app.services.orchestrator import TurnOrchestrator
from app.tools.search_engine import TavilySearchClient

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_orchestrator(provider: ModelProvider, http_client: httpx.AsyncClient, factory) -> TurnOrchestrator:
    """Wire the turn orchestrator from process-wide clients."""
    return TurnOrchestrator(
        provider=provider,
        chat_service=ChatService(provider, title_model=settings.TITLE_MODEL),
        session_factory=factory,
        max_steps=settings.MAX_STEPS,
        http_client=http_client,
        search_client=TavilySearchClient(http_client, settings.TAVILY_API_KEY, settings.TAVILY_URL),
        search_model=settings.SEARCH_MODEL,
        weather_url=settings.WEATHER_URL,
        max_suggestions=settings.MAX_SUGGESTIONS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the provider clients, close them on shutdown."""
    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database init skipped: {e}")

    http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
    provider = ModelProvider.from_settings(settings)
    app.state.orchestrator = build_orchestrator(provider, http_client, session_factory())

    yield

    await provider.close()
    await http_client.aclose()


app = FastAPI(
    title="Avacyn Chat API",
    description="Streaming chat with tool calling, documents and suggestions",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(chat_router)
app.include_router(document_router)
app.include_router(vote_router)
app.include_router(agents_router)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Hide internal error details from clients."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
