import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from focus_companion.core.config import settings
from focus_companion.fetch.base import FetchPolicy, UpstreamUnavailable
from focus_companion.fetch.gateway import fan_out, fetch_with_retry, gather_slots

logger = logging.getLogger(__name__)

# search type -> (endpoint, query parameter)
SEARCH_TYPES = {
    "name": ("search.php", "s"),
    "ingredient": ("filter.php", "i"),
    "category": ("filter.php", "c"),
}

class InvalidSearchType(ValueError):
    pass

def recipe_policy() -> FetchPolicy:
    return FetchPolicy(
        max_attempts=settings.RECIPE_MAX_ATTEMPTS,
        timeout_ms=settings.RECIPE_TIMEOUT_MS,
        backoff_base_ms=settings.FETCH_BACKOFF_BASE_MS,
    )

def parse_random_meal(response: httpx.Response) -> Optional[Dict[str, Any]]:
    meals = response.json().get("meals")
    if not meals:
        return None
    if not isinstance(meals[0], dict):
        raise ValueError(f"unexpected meal entry: {meals[0]!r}")
    return meals[0]

def _json_payload(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamUnavailable(f"Invalid JSON from {response.request.url}: {e}") from e
    if not isinstance(data, dict):
        raise UpstreamUnavailable(f"Unexpected payload from {response.request.url}")
    return data

async def random_recipes(
    count: int,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> List[Dict[str, Any]]:
    """Fetch up to RECIPE_MAX_COUNT random meals concurrently."""
    return await fan_out(
        f"{settings.MEALDB_API_URL}/random.php",
        count,
        settings.RECIPE_MAX_COUNT,
        recipe_policy(),
        parse_random_meal,
        transport=transport,
        sleep=sleep,
    )

def build_search_url(query: str, search_type: str = "name") -> str:
    if search_type not in SEARCH_TYPES:
        raise InvalidSearchType(
            f"Unknown search type '{search_type}', expected one of: {', '.join(SEARCH_TYPES)}"
        )
    endpoint, param = SEARCH_TYPES[search_type]
    return f"{settings.MEALDB_API_URL}/{endpoint}?{param}={quote(query, safe='')}"

async def search_recipes(
    query: str,
    search_type: str = "name",
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> Dict[str, Any]:
    """Search the recipe database by name, ingredient or category."""
    url = build_search_url(query, search_type)
    response = await fetch_with_retry(url, recipe_policy(), transport=transport, sleep=sleep)
    return _json_payload(response)

async def get_recipe(
    recipe_id: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> Optional[Dict[str, Any]]:
    """Look up one meal by id; None when the upstream does not know it."""
    url = f"{settings.MEALDB_API_URL}/lookup.php?i={quote(recipe_id, safe='')}"
    response = await fetch_with_retry(url, recipe_policy(), transport=transport, sleep=sleep)
    meals = _json_payload(response).get("meals")
    if not meals:
        return None
    return meals[0]

async def list_categories(
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> Dict[str, Any]:
    url = f"{settings.MEALDB_API_URL}/categories.php"
    response = await fetch_with_retry(url, recipe_policy(), transport=transport, sleep=sleep)
    return _json_payload(response)

MAX_SEARCH_TERMS = 3
MAX_INGREDIENTS = 2
MAX_RECOMMENDATIONS = 20
FALLBACK_LIMIT = 10

def parse_meal_list(response: httpx.Response) -> List[Dict[str, Any]]:
    """All meals in a search payload; an empty list when the upstream found none."""
    meals = response.json().get("meals")
    if not isinstance(meals, list):
        return []
    return [meal for meal in meals if isinstance(meal, dict)]

def parse_search_params(ai_text: str, description: str) -> Dict[str, Any]:
    """Pull the JSON object out of the model's analysis, falling back to the raw description."""
    json_match = re.search(r'\{.*\}', ai_text or "", re.DOTALL)
    if json_match:
        try:
            params = json.loads(json_match.group())
            if isinstance(params, dict):
                return params
        except json.JSONDecodeError:
            pass
    logger.warning("Could not parse recipe analysis, searching for the description as-is")
    return {"searchTerms": [description]}

def _terms(value: Any, limit: int) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [term.strip() for term in value if isinstance(term, str) and term.strip()][:limit]

def build_recommend_urls(params: Dict[str, Any]) -> List[str]:
    urls = [build_search_url(term, "name") for term in _terms(params.get("searchTerms"), MAX_SEARCH_TERMS)]
    urls += [build_search_url(item, "ingredient") for item in _terms(params.get("ingredients"), MAX_INGREDIENTS)]
    urls += [build_search_url(category, "category") for category in _terms(params.get("category"), 1)]
    return urls

def merge_meals(results: List[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Flatten search results in slot order, keeping the first meal seen per idMeal."""
    seen = set()
    merged = []
    for meals in results:
        for meal in meals:
            meal_id = meal.get("idMeal")
            if meal_id is not None:
                if meal_id in seen:
                    continue
                seen.add(meal_id)
            merged.append(meal)
    return merged

async def recommend_recipes(
    description: str,
    chat_client,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> Dict[str, Any]:
    """
    Recipe suggestions for a free-text request.

    The chat model turns the request into search terms, the name/ingredient/category
    searches run concurrently and their meals are merged without duplicates. When
    nothing matches, the first word of the description is searched as a last resort.
    """
    ai_text = await chat_client.recipe_analysis(description)
    params = parse_search_params(ai_text, description)
    urls = build_recommend_urls(params)

    batch = await gather_slots(urls, recipe_policy(), parse_meal_list, transport=transport, sleep=sleep)
    if batch.failed:
        logger.info("Recipe recommendation: %d/%d searches failed", batch.failed, len(urls))
    meals = merge_meals(batch.items)

    if not meals:
        fallback_url = build_search_url(description.split()[0], "name")
        response = await fetch_with_retry(fallback_url, recipe_policy(), transport=transport, sleep=sleep)
        try:
            meals = parse_meal_list(response)[:FALLBACK_LIMIT]
        except (ValueError, AttributeError) as e:
            raise UpstreamUnavailable(f"Invalid recipe search payload: {e}") from e

    return {
        "meals": meals[:MAX_RECOMMENDATIONS],
        "search_params": params,
        "ai_analysis": ai_text,
    }
