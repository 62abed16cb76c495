import json
import logging
from typing import Optional

from focus_companion.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_PERSONALITY = "warm-accountability"

PERSONALITY_TONES = {
    "strict-structured": "Short, direct, no fluff. Give commands, not suggestions.",
    "warm-accountability": "Encouraging, calm, non-judgmental.",
    "hyper-focused": "High-energy but organized.",
    "minimalist-robot": "Emotionless, ultra-brief.",
    "flexible-problem-solver": "Analytical, calm, logical.",
    "calm-monk": "Slow, grounding, minimalist.",
    "compassionate-firm": "Kind but strict.",
    "chaos-wrangler": "Casual, understanding of ADHD randomness.",
}

PAGES = "Dashboard (/dashboard), Tasks (/tasks), Timer (/timer), Sounds (/sounds), Notes (/notes), Food (/food), Settings (/settings)"

RECIPE_ANALYSIS_PROMPT = (
    "You are a food recommendation assistant. From the user's food request extract the main ingredients "
    "(max 3), the meal category, dietary preferences, cooking style and 1-3 keywords for a recipe-name search.\n"
    "Respond ONLY with JSON in this exact format:\n"
    '{"ingredients": ["ingredient1"], "category": "category_name", "dietary": "preference", '
    '"style": "style_name", "searchTerms": ["term1", "term2"]}\n'
    "Use null for anything not mentioned."
)

TASK_BREAKDOWN_PROMPT = (
    "You are an ADHD-friendly task breakdown assistant. Break the task into small, specific, sequential "
    "steps of 5-15 minutes each, starting each with an action verb.\n"
    "Format:\n"
    "TOTAL_TIME: [total minutes]\n\n"
    "1. Step description (X min)\n"
    "2. Step description (X min)\n"
    "Do not include any explanation or additional text."
)

FOCUS_COACH_PROMPT = (
    "You are an ADHD coach who gives practical and encouraging advice. "
    "Respond in English in a concise and actionable manner."
)

class ChatUnavailable(Exception):
    """The chat model could not produce a reply."""

def build_system_prompt(personality: str, user_name: str) -> str:
    tone = PERSONALITY_TONES.get(personality, PERSONALITY_TONES[DEFAULT_PERSONALITY])
    return (
        f"You are Pom, an AI assistant designed for people with ADHD. The user's name is {user_name}, "
        "but use it sparingly.\n"
        f"Tone: {tone}\n"
        f"Available pages: {PAGES}. When the user asks to navigate, acknowledge briefly.\n"
        "Always respond in English."
    )

class ChatClient:
    """Assistant features on top of a single completion call."""

    async def complete(self, system_prompt: str, message: str, max_output_tokens: Optional[int] = None) -> str:
        raise NotImplementedError

    async def reply(self, message: str, personality: str = DEFAULT_PERSONALITY, user_name: str = "User") -> str:
        return await self.complete(build_system_prompt(personality, user_name), message)

    async def recipe_analysis(self, description: str) -> str:
        return await self.complete(RECIPE_ANALYSIS_PROMPT, f"Find recipes for: {description}", 300)

    async def task_breakdown(self, task: str) -> str:
        return await self.complete(
            TASK_BREAKDOWN_PROMPT,
            f"Break down this task into ADHD-friendly micro-steps with time estimates: {task}",
            1000,
        )

    async def focus_advice(self, topic: str) -> str:
        return await self.complete(FOCUS_COACH_PROMPT, f"Give me advice on: {topic}")

class GeminiChatClient(ChatClient):
    """Chat replies backed by Gemini. Build once per process and share."""

    def __init__(self, api_key: str, model_name: str, max_output_tokens: int = 500):
        try:
            import google.generativeai as genai  # lazy import to allow tests without package
        except Exception as e:
            raise ImportError("google-generativeai package is required to use Gemini client") from e

        genai.configure(api_key=api_key)
        self._genai = genai
        self.model_name = model_name
        self.max_output_tokens = max_output_tokens

    async def complete(self, system_prompt: str, message: str, max_output_tokens: Optional[int] = None) -> str:
        model = self._genai.GenerativeModel(self.model_name, system_instruction=system_prompt)
        try:
            response = await model.generate_content_async(
                message,
                generation_config={"max_output_tokens": max_output_tokens or self.max_output_tokens},
            )
            text = response.text
        except Exception as e:
            logger.error("Gemini request failed: %s", e)
            raise ChatUnavailable(f"Gemini chat failed: {e}") from e

        return (text or "").strip()

class MockChatClient(ChatClient):
    """Canned replies for local development and tests."""

    async def complete(self, system_prompt: str, message: str, max_output_tokens: Optional[int] = None) -> str:
        return f"Here is a small next step for: {message}"

    async def reply(self, message: str, personality: str = DEFAULT_PERSONALITY, user_name: str = "User") -> str:
        tone = PERSONALITY_TONES.get(personality, PERSONALITY_TONES[DEFAULT_PERSONALITY])
        return f"[{personality}] Got it, {user_name}. ({tone})"

    async def recipe_analysis(self, description: str) -> str:
        terms = [word for word in description.lower().split() if len(word) > 3][:3]
        return json.dumps({
            "ingredients": None,
            "category": None,
            "dietary": None,
            "style": None,
            "searchTerms": terms or [description],
        })

    async def task_breakdown(self, task: str) -> str:
        return (
            "TOTAL_TIME: 20\n\n"
            "1. Clear a space to work (5 min)\n"
            f"2. Write down the first action for: {task} (5 min)\n"
            "3. Do that first action (10 min)"
        )

def build_chat_client(settings: Settings) -> Optional[ChatClient]:
    """Create the process-wide chat client, or None when no backend is configured."""
    if settings.USE_MOCK:
        logger.info("Using mock chat client")
        return MockChatClient()
    if not settings.GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY not set, AI features are disabled")
        return None
    return GeminiChatClient(settings.GOOGLE_API_KEY, settings.LLM_MODEL, settings.LLM_MAX_OUTPUT_TOKENS)
