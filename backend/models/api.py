"""API request/response models."""
from typing import Any, Optional
from pydantic import BaseModel, field_validator


class ChatRequest(BaseModel):
    """Body of POST /chat."""
    prompt: str

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt must not be blank")
        return v


class ChatResponse(BaseModel):
    """Successful SQL generation."""
    prompt: str
    response: Any  # Usually the SQL string; raw model output when no text field exists


class ErrorResponse(BaseModel):
    """Error body returned for 4xx/5xx responses."""
    error: str
    details: Optional[str] = None
