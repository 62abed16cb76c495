from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union

class Advice(BaseModel):
    id: Union[int, str]
    advice: str

class AdviceResponse(BaseModel):
    advices: List[Advice]

class MealsResponse(BaseModel):
    meals: List[Dict[str, Any]]

class ChatRequest(BaseModel):
    message: str = ""
    personality: str = Field(default="warm-accountability", description="Assistant personality key")
    user_name: str = Field(default="User", description="Name the assistant may address the user by")

# Response field names follow the web client's camelCase keys
class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    navigate_to: Optional[str] = Field(None, alias="navigateTo", description="Page path the client should open, if any")

class RecommendRequest(BaseModel):
    description: str = ""

class RecommendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meals: List[Dict[str, Any]]
    search_params: Dict[str, Any] = Field(alias="searchParams")
    ai_analysis: str = Field(alias="aiAnalysis")

class TaskBreakdownRequest(BaseModel):
    task: str = ""

class TaskBreakdownResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    steps: List[str]
    total_time: Optional[int] = Field(None, alias="totalTime", description="Total estimate in minutes")

class FocusPlanRequest(BaseModel):
    topic: str = ""

class FocusPlanResponse(BaseModel):
    advice: str
