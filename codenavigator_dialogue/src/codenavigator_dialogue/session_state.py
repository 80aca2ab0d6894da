"""
Session State Data Model

Defines the Session dataclass persisted for every conversation, the phase and
level enums that drive the dialogue, and the transient classification result.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from codenavigator_dialogue.errors import InvalidTransition

MAX_HISTORY = 20


class Phase(Enum):
    """Conversation phases, in the order a learner normally moves through them."""
    GREETING = "GREETING"
    GOAL_IDENTIFICATION = "GOAL_IDENTIFICATION"
    SKILL_ASSESSMENT = "SKILL_ASSESSMENT"
    PATH_PLANNING = "PATH_PLANNING"
    TASK_EXECUTION = "TASK_EXECUTION"
    REVIEW_FEEDBACK = "REVIEW_FEEDBACK"


class UserLevel(Enum):
    """Assessed skill level of a learner."""
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


@dataclass
class ClassificationResult:
    """Output of the language classifier for one message (not persisted)."""
    intent: str
    entities: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.5


@dataclass
class Session:
    """Persisted state of one conversation."""
    session_id: str
    user_id: str = "anonymous"
    phase: Phase = Phase.GREETING
    learning_goal: Optional[str] = None
    user_level: Optional[UserLevel] = None
    message_count: int = 0
    context: Dict[str, Any] = field(default_factory=dict)
    # Recent turns: [{"role": "user", "content": "..."}, {"role": "assistant", ...}]
    conversation_history: List[Dict[str, str]] = field(default_factory=list)
    last_interaction: datetime = field(default_factory=datetime.now)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.session_id:
            raise ValueError("session_id must not be empty")
        if isinstance(self.phase, str):
            self.phase = Phase(self.phase)
        if isinstance(self.user_level, str):
            self.user_level = UserLevel(self.user_level)
        if self.message_count < 0:
            raise ValueError("message_count must not be negative")

    def advance_to(self, phase: Phase):
        """
        Move the session to a new phase.

        Entering TASK_EXECUTION requires a resolved learning goal and an
        assessed user level.
        """
        if phase == Phase.TASK_EXECUTION and (not self.learning_goal or self.user_level is None):
            raise InvalidTransition(
                f"Session {self.session_id} cannot enter {phase.value} "
                f"without learning_goal and user_level"
            )
        self.phase = phase

    def add_turn(self, role: str, content: str):
        """Append a message to the bounded conversation history."""
        self.conversation_history.append({"role": role, "content": content})
        if len(self.conversation_history) > MAX_HISTORY:
            del self.conversation_history[:-MAX_HISTORY]

    def recent_turns(self, limit: int = 3) -> List[Dict[str, str]]:
        return self.conversation_history[-limit:] if limit > 0 else []

    def touch(self, now: Optional[datetime] = None):
        """Count a processed message and refresh the interaction timestamp."""
        self.message_count += 1
        self.last_interaction = now or datetime.now()

    def is_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self.last_interaction < now - ttl

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert Session to a JSON-compatible dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "phase": self.phase.value,
            "learning_goal": self.learning_goal,
            "user_level": self.user_level.value if self.user_level else None,
            "message_count": self.message_count,
            "context": self.context,
            "conversation_history": self.conversation_history,
            "last_interaction": self.last_interaction.isoformat(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """
        Convert dictionary to Session object.

        Args:
            data: Dictionary produced by to_dict()

        Returns:
            Session object
        """
        last_interaction = datetime.fromisoformat(data["last_interaction"]) if data.get("last_interaction") else datetime.now()
        created_at = datetime.fromisoformat(data["created_at"]) if data.get("created_at") else last_interaction

        return cls(
            session_id=data["session_id"],
            user_id=data.get("user_id") or "anonymous",
            phase=Phase(data.get("phase") or Phase.GREETING.value),
            learning_goal=data.get("learning_goal"),
            user_level=UserLevel(data["user_level"]) if data.get("user_level") else None,
            message_count=data.get("message_count", 0),
            context=dict(data.get("context") or {}),
            conversation_history=list(data.get("conversation_history") or []),
            last_interaction=last_interaction,
            created_at=created_at,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, raw: str) -> "Session":
        return cls.from_dict(json.loads(raw))
