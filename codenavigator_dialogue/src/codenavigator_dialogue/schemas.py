"""
Request / Response Models

Pydantic models for the dialogue's inbound request and outbound response.
Wire names are camelCase (``sessionId``, ``suggestedActions``); attribute
names are snake_case and both are accepted on input.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ConversationType(str, Enum):
    LEARNING_GOAL_SETTING = "LEARNING_GOAL_SETTING"
    LEARNING_PATH_QUERY = "LEARNING_PATH_QUERY"
    TASK_ASSISTANCE = "TASK_ASSISTANCE"
    CODE_REVIEW = "CODE_REVIEW"
    GENERAL_QUESTION = "GENERAL_QUESTION"


class ResponseType(str, Enum):
    TEXT_RESPONSE = "TEXT_RESPONSE"
    CLARIFICATION_NEEDED = "CLARIFICATION_NEEDED"
    LEARNING_PATH_GENERATED = "LEARNING_PATH_GENERATED"
    ERROR_MESSAGE = "ERROR_MESSAGE"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ConversationRequest(_WireModel):
    """
    Inbound message.

    Missing or malformed fields are replaced with defaults instead of
    rejecting the request.
    """
    user_id: str = "anonymous"
    message: str = ""
    session_id: Optional[str] = None
    type: Optional[ConversationType] = None
    preferred_provider: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_id", mode="before")
    @classmethod
    def _default_user(cls, value):
        if value is None or not str(value).strip():
            return "anonymous"
        return str(value)

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value):
        return "" if value is None else str(value)

    @field_validator("session_id", "preferred_provider", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value):
        if isinstance(value, ConversationType):
            return value
        try:
            return ConversationType(str(value).upper()) if value else None
        except ValueError:
            return None

    @field_validator("context", mode="before")
    @classmethod
    def _context_mapping(cls, value):
        return dict(value) if isinstance(value, dict) else {}


class SuggestedAction(_WireModel):
    label: str
    action: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ConversationResponse(_WireModel):
    """Outbound reply; confidence is validated to [0, 1] at construction."""
    type: ResponseType
    message: str
    confidence: float = Field(ge=0.0, le=1.0)
    session_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    suggested_actions: Optional[List[SuggestedAction]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
