"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vaultpilot import __version__
from vaultpilot.api.endpoints import router
from vaultpilot.clients.auth import get_auth_client
from vaultpilot.clients.copilot import get_copilot_client
from vaultpilot.config import load_settings
from vaultpilot.utils.logging import LogConfig, get_logger, setup_logging

settings = load_settings()
setup_logging(LogConfig(level=settings.log_level))

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(f"VaultPilot {__version__} serving vault {settings.vault_path} with model {settings.model.value}")
    yield
    await get_copilot_client().aclose()
    await get_auth_client().aclose()


app = FastAPI(
    title="VaultPilot",
    description=(
        "A conversational assistant over the GitHub Copilot chat API that reads "
        "and edits a Markdown vault through tool calls."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Conversation",
            "description": "Send messages, cancel runs and discard sessions.",
        },
        {
            "name": "Models",
            "description": "Chat models available to the signed-in account.",
        },
        {
            "name": "Auth",
            "description": "GitHub device login and sign-out.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Local clients only; the service edits files on disk.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["app://obsidian.md", "http://localhost", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("vaultpilot.main:app", host="127.0.0.1", port=8000, reload=True, log_level=settings.log_level.lower())
