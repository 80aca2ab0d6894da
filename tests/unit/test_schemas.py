"""
Unit Tests for Request / Response Models

Tests lenient request parsing, camelCase wire names and confidence bounds.
"""

import pytest
import sys
import os
from pydantic import ValidationError

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "codenavigator_dialogue", "src"))

from codenavigator_dialogue.schemas import (
    ConversationRequest,
    ConversationResponse,
    ConversationType,
    ResponseType,
    SuggestedAction,
)


class TestConversationRequest:
    """Test suite for ConversationRequest parsing."""

    def test_camel_case_input(self):
        request = ConversationRequest.model_validate({
            "userId": "u1",
            "sessionId": "s1",
            "message": "你好",
            "type": "learning_goal_setting",
            "preferredProvider": "deepseek",
        })

        assert request.user_id == "u1"
        assert request.session_id == "s1"
        assert request.type == ConversationType.LEARNING_GOAL_SETTING
        assert request.preferred_provider == "deepseek"

    def test_snake_case_input(self):
        request = ConversationRequest(user_id="u1", session_id="s1", message="hi")
        assert request.session_id == "s1"

    def test_defaults_for_missing_fields(self):
        request = ConversationRequest.model_validate({})
        assert request.user_id == "anonymous"
        assert request.message == ""
        assert request.session_id is None
        assert request.type is None
        assert request.context == {}

    def test_malformed_fields_replaced(self):
        request = ConversationRequest.model_validate({
            "userId": "  ",
            "message": None,
            "sessionId": "",
            "type": "SMALL_TALK",
            "context": ["not", "a", "dict"],
        })

        assert request.user_id == "anonymous"
        assert request.message == ""
        assert request.session_id is None
        assert request.type is None
        assert request.context == {}


class TestConversationResponse:
    """Test suite for ConversationResponse."""

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            ConversationResponse(type=ResponseType.TEXT_RESPONSE, message="x", confidence=1.5)
        with pytest.raises(ValidationError):
            ConversationResponse(type=ResponseType.TEXT_RESPONSE, message="x", confidence=-0.1)

    def test_wire_format(self):
        response = ConversationResponse(
            type=ResponseType.LEARNING_PATH_GENERATED,
            message="ok",
            confidence=0.85,
            session_id="s1",
            suggested_actions=[SuggestedAction(label="开始学习", action="start_learning", parameters={"pathId": "p1"})],
        )

        wire = response.to_wire()

        assert wire["type"] == "LEARNING_PATH_GENERATED"
        assert wire["sessionId"] == "s1"
        assert wire["suggestedActions"][0] == {"label": "开始学习", "action": "start_learning", "parameters": {"pathId": "p1"}}
        assert "data" not in wire

    def test_responses_are_immutable(self):
        response = ConversationResponse(type=ResponseType.TEXT_RESPONSE, message="x", confidence=0.5)
        with pytest.raises(ValidationError):
            response.message = "y"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
