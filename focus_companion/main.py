import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from focus_companion.api.routes import router
from focus_companion.core.config import settings
from focus_companion.llm.client import build_chat_client

logger = logging.getLogger("focus_companion")

def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Build process-wide resources on startup, release them on shutdown.
    """
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting Focus Companion API...")
    app.state.chat_client = build_chat_client(settings)

    yield

    logger.info("Shutting down Focus Companion API...")
    app.state.chat_client = None

app = FastAPI(
    title="Focus Companion",
    description="Backend for an ADHD-friendly productivity app: advice, recipes and an AI assistant",
    version="1.0.0",
    lifespan=lifespan
)

# Include API routes
app.include_router(router)

@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "service": "Focus Companion",
        "version": "1.0.0",
        "endpoints": {
            "advice": "GET /api/advice",
            "random_recipes": "GET /api/food/random",
            "recipe_search": "GET /api/food/search",
            "recipe": "GET /api/food/{id}",
            "categories": "GET /api/food/categories",
            "recommend": "POST /api/food/ai-recommend",
            "chat": "POST /api/ai/chat",
            "task_breakdown": "POST /api/ai/task-breakdown",
            "focus_plan": "POST /api/ai/focus-plan",
            "health": "GET /health"
        }
    }

def run():
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run("focus_companion.main:app", host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    run()
