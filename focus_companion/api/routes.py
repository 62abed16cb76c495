import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status

from focus_companion.api.deps import get_chat_client, get_transport, require_user
from focus_companion.chat.navigation import match_navigation
from focus_companion.fetch.base import FetchError
from focus_companion.llm.client import ChatUnavailable
from focus_companion.schemas import (
    AdviceResponse,
    ChatRequest,
    ChatResponse,
    FocusPlanRequest,
    FocusPlanResponse,
    MealsResponse,
    RecommendRequest,
    RecommendResponse,
    TaskBreakdownRequest,
    TaskBreakdownResponse,
)
from focus_companion.services import advice as advice_service
from focus_companion.services import recipes as recipe_service
from focus_companion.services.task_breakdown import break_down_task

logger = logging.getLogger(__name__)

router = APIRouter()
api = APIRouter(prefix="/api", dependencies=[Depends(require_user)])

ADVICE_UNAVAILABLE = "No advice available at the moment. Please try again later."
RECIPES_UNAVAILABLE = "Unable to fetch recipes at the moment. Please try again later."

def _unavailable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)

def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

def _configured(chat_client):
    if chat_client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="LLM API key not configured",
        )
    return chat_client

@api.get("/advice", response_model=AdviceResponse)
async def get_advice(
    count: int = 1,
    search: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    """
    Random advice slips, or advice matching `search`.

    `count` is capped at ADVICE_MAX_COUNT. Partial results are returned as-is;
    503 only when nothing could be fetched.
    """
    try:
        if search:
            advices = await advice_service.search_advice(search, count, transport=transport)
        else:
            advices = await advice_service.random_advice(count, transport=transport)
    except FetchError as e:
        logger.error("Advice lookup failed: %s", e)
        raise _unavailable(ADVICE_UNAVAILABLE)
    return {"advices": advices}

@api.get("/food/random", response_model=MealsResponse)
async def get_random_recipes(
    count: int = 1,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    try:
        meals = await recipe_service.random_recipes(count, transport=transport)
    except FetchError as e:
        logger.error("Random recipe fetch failed: %s", e)
        raise _unavailable("No recipes available at the moment. Please try again later.")
    return {"meals": meals}

@api.get("/food/search")
async def search_recipes(
    q: Optional[str] = None,
    search_type: str = Query("name", alias="type"),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    """Search recipes by name, ingredient or category. Returns the upstream payload."""
    if not q:
        raise _bad_request("Query parameter required")
    try:
        return await recipe_service.search_recipes(q, search_type, transport=transport)
    except recipe_service.InvalidSearchType as e:
        raise _bad_request(str(e))
    except FetchError as e:
        logger.error("Recipe search failed: %s", e)
        raise _unavailable(RECIPES_UNAVAILABLE)

@api.get("/food/categories")
async def recipe_categories(transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport)):
    try:
        return await recipe_service.list_categories(transport=transport)
    except FetchError as e:
        logger.error("Recipe categories fetch failed: %s", e)
        raise _unavailable(RECIPES_UNAVAILABLE)

@api.post("/food/ai-recommend", response_model=RecommendResponse)
async def recommend_recipes(
    request: RecommendRequest,
    chat_client=Depends(get_chat_client),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    """Recipe suggestions for a free-text description, searched with model-extracted terms."""
    description = request.description.strip()
    if not description:
        raise _bad_request("Description required")
    chat_client = _configured(chat_client)

    try:
        return await recipe_service.recommend_recipes(description, chat_client, transport=transport)
    except ChatUnavailable as e:
        raise _unavailable(str(e))
    except FetchError as e:
        logger.error("Recipe recommendation failed: %s", e)
        raise _unavailable(RECIPES_UNAVAILABLE)

@api.get("/food/{recipe_id}")
async def get_recipe(
    recipe_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    try:
        meal = await recipe_service.get_recipe(recipe_id, transport=transport)
    except FetchError as e:
        logger.error("Recipe lookup for %s failed: %s", recipe_id, e)
        raise _unavailable(RECIPES_UNAVAILABLE)
    if meal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return meal

@api.post("/ai/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(request: ChatRequest, chat_client=Depends(get_chat_client)):
    """Chat with the assistant; `navigateTo` is set when the message asks for a page."""
    message = request.message.strip()
    if not message:
        raise _bad_request("Message required")
    chat_client = _configured(chat_client)

    navigate_to = match_navigation(message)
    try:
        reply = await chat_client.reply(message, request.personality, request.user_name)
    except ChatUnavailable as e:
        raise _unavailable(str(e))

    return ChatResponse(response=reply, navigate_to=navigate_to)

@api.post("/ai/task-breakdown", response_model=TaskBreakdownResponse)
async def task_breakdown(request: TaskBreakdownRequest, chat_client=Depends(get_chat_client)):
    """Break a task into timed micro-steps."""
    task = request.task.strip()
    if not task:
        raise _bad_request("Task required")
    chat_client = _configured(chat_client)

    try:
        return await break_down_task(task, chat_client)
    except ChatUnavailable as e:
        raise _unavailable(str(e))

@api.post("/ai/focus-plan", response_model=FocusPlanResponse)
async def focus_plan(request: FocusPlanRequest, chat_client=Depends(get_chat_client)):
    topic = request.topic.strip()
    if not topic:
        raise _bad_request("Topic required")
    chat_client = _configured(chat_client)

    try:
        advice = await chat_client.focus_advice(topic)
    except ChatUnavailable as e:
        raise _unavailable(str(e))
    return {"advice": advice}

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "Focus Companion"}

router.include_router(api)
