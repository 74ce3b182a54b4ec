# src/playground_api/config.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class GenerationParams(BaseModel):
    """Sampling parameters shared by the chat and language endpoints.

    No range constraints here: out-of-range values are clamped when the
    backend payload is built, never rejected.
    """
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 512
    top_p: float = 0.9


class ChatRequest(GenerationParams):
    messages: List[ChatMessage]
    system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT

    @field_validator('messages')
    @classmethod
    def validate_messages(cls, v):
        if not v:
            raise ValueError("Messages list cannot be empty")
        return v


class LanguageRequest(GenerationParams):
    prompt: str
    task: str = "completion"

    @field_validator('prompt')
    @classmethod
    def validate_prompt(cls, v):
        if not v.strip():
            raise ValueError("Prompt cannot be empty")
        return v


class ChatCompletionResponse(BaseModel):
    """Non-streaming chat response: the backend's fields plus our usage estimate."""
    response: str
    model: str
    created_at: Optional[str] = None
    done: bool = True
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    eval_count: Optional[int] = None
    tokens_used: int
    response_time: float


class LanguageResponse(BaseModel):
    response: str
    model: str
    task: str
    tokens_used: int
    response_time: float
    created_at: Optional[str] = None
    done: bool = True


class ModelListResponse(BaseModel):
    models: List[Dict]
    status: Literal["online", "offline"] = "online"


class AnalyticsEntry(BaseModel):
    """One analytics record as posted to /api/analytics (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    timestamp: Optional[datetime] = None
    model: str = "unknown"
    tokens: int = 0
    response_time: float = Field(0.0, alias="responseTime")
    success: bool = False
    cost: float = 0.0


class AudioRequest(BaseModel):
    text: str = ""
    voice: str = "alloy"
    speed: float = 1.0
    pitch: float = 1.0
    format: str = "mp3"


class AudioResponse(BaseModel):
    audio_url: str
    duration: int
    format: str
    voice: str
    text: str
    created_at: str
    file_size: int


class ImageRequest(BaseModel):
    prompt: str = ""
    style: str = "realistic"
    size: str = "square"
    quality: str = "standard"


class ImageResponse(BaseModel):
    prompt: str
    style: str
    size: str
    quality: str
    image_url: str
    generation_time: float
    created_at: str
    model: Optional[str] = None


class Hyperparameters(BaseModel):
    n_epochs: int = 3
    batch_size: int = 4
    learning_rate: float = 0.0001


class FineTuningJobRequest(BaseModel):
    model: Optional[str] = None
    training_file: Optional[str] = None
    validation_file: Optional[str] = None
    hyperparameters: Optional[Dict] = None


class MCPRequest(BaseModel):
    action: Optional[str] = None
    tool: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    context_id: Optional[str] = None


class WorkflowActionRequest(BaseModel):
    action: Optional[str] = None
    workflow_id: Optional[str] = None
    input_data: Optional[Dict[str, Any]] = None
    workflow: Optional[Dict[str, Any]] = None
