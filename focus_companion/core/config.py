import os
from typing import Optional

class Settings:
    # Auth
    API_TOKEN: Optional[str] = os.getenv("API_TOKEN")

    # LLM
    GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gemini-2.5-flash")
    LLM_MAX_OUTPUT_TOKENS: int = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "500"))

    # Development
    USE_MOCK: bool = os.getenv("USE_MOCK", "0").lower() in ("1", "true", "yes")

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Upstreams
    ADVICE_API_URL: str = os.getenv("ADVICE_API_URL", "https://api.adviceslip.com")
    MEALDB_API_URL: str = os.getenv("MEALDB_API_URL", "https://www.themealdb.com/api/json/v1/1")

    # Outbound fetch policy (timeouts in milliseconds)
    FETCH_BACKOFF_BASE_MS: int = int(os.getenv("FETCH_BACKOFF_BASE_MS", "1000"))
    ADVICE_TIMEOUT_MS: int = int(os.getenv("ADVICE_TIMEOUT_MS", "10000"))
    ADVICE_MAX_ATTEMPTS: int = int(os.getenv("ADVICE_MAX_ATTEMPTS", "3"))
    ADVICE_MAX_COUNT: int = int(os.getenv("ADVICE_MAX_COUNT", "5"))
    RECIPE_TIMEOUT_MS: int = int(os.getenv("RECIPE_TIMEOUT_MS", "30000"))
    RECIPE_MAX_ATTEMPTS: int = int(os.getenv("RECIPE_MAX_ATTEMPTS", "3"))
    RECIPE_MAX_COUNT: int = int(os.getenv("RECIPE_MAX_COUNT", "20"))

settings = Settings()
