"""
Language Classifier

Rule-based, deterministic interpretation of learner messages. Maps a raw
message plus the session's current phase to an intent, a set of entities and
a confidence score. Matching is case-insensitive substring lookup against the
Lexicon, plus two numeric extractors (durations and years of experience).

Intent precedence, highest first:
1. A question marker while in GREETING -> ``ask_question``
2. The phase-forced intent (GOAL_IDENTIFICATION, SKILL_ASSESSMENT,
   PATH_PLANNING always force one; GREETING and TASK_EXECUTION force one only
   on matching keywords)
3. The generic intent keyword table, in lexicon order
4. ``general_question``
"""

import logging
import re
from typing import Any, Dict, Iterable, Optional

from codenavigator_dialogue.lexicon import Lexicon
from codenavigator_dialogue.session_state import ClassificationResult, Phase, UserLevel

logger = logging.getLogger(__name__)

DURATION_PATTERN = re.compile(r"(\d+)\s*(天|周|月|小时|分钟)")
EXPERIENCE_PATTERN = re.compile(r"(\d+)\s*年")

# Intents whose confidence gets a bonus when their anchor entity is present
ANCHOR_ENTITIES = {
    "set_learning_goal": "technology",
    "assess_skill": "skill_level",
}

BASE_CONFIDENCE = 0.5
ENTITY_WEIGHT = 0.1
ANCHOR_BONUS = 0.3


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


class LanguageClassifier:
    """
    Deterministic phase-aware classifier.

    The classifier holds no mutable state; the same (text, phase) always
    yields the same result.
    """

    def __init__(self, lexicon: Optional[Lexicon] = None):
        self.lexicon = lexicon or Lexicon.default()
        # Goal words are ASCII identifiers (technology names), never CJK runs
        self._goal_patterns = [
            re.compile(rf"{re.escape(verb)}\s*(\w+)", re.ASCII) for verb in self.lexicon.goal_verbs
        ]

    def classify(self, text: str, session) -> ClassificationResult:
        """Run intent, entity and confidence extraction for one message."""
        intent = self.extract_intent(text, session)
        entities = self.extract_entities(text)
        confidence = self.calculate_confidence(intent, entities)
        logger.debug(f"🔤 [Classifier] phase={session.phase.value} intent={intent} entities={entities} confidence={confidence:.2f}")
        return ClassificationResult(intent=intent, entities=entities, confidence=confidence)

    def extract_intent(self, text: str, session) -> str:
        normalized = (text or "").lower()
        phase = session.phase
        intents = self.lexicon.intents

        if phase == Phase.GREETING:
            if _contains_any(normalized, self.lexicon.question_markers):
                return "ask_question"
            if _contains_any(normalized, intents.get("set_learning_goal", ())):
                return "set_learning_goal"
        elif phase == Phase.GOAL_IDENTIFICATION:
            return "set_learning_goal"
        elif phase == Phase.SKILL_ASSESSMENT:
            return "assess_skill"
        elif phase == Phase.PATH_PLANNING:
            return "plan_path"
        elif phase == Phase.TASK_EXECUTION:
            if _contains_any(normalized, intents.get("ask_question", ())):
                return "ask_question"
            if _contains_any(normalized, intents.get("request_review", ())):
                return "request_review"
            return "task_help"

        for intent, keywords in intents.items():
            if _contains_any(normalized, keywords):
                return intent

        return "general_question"

    def extract_entities(self, text: str) -> Dict[str, Any]:
        """
        Extract typed entities from a message.

        Returns:
            Dict with any of ``technology`` (str), ``skill_level``
            (UserLevel) and ``time_duration`` (matched text, e.g. ``"8周"``)
        """
        text = text or ""
        normalized = text.lower()
        entities: Dict[str, Any] = {}

        technology = self._match_technology(normalized)
        if technology:
            entities["technology"] = technology

        level = self._match_level(normalized)
        if level:
            entities["skill_level"] = level

        duration = DURATION_PATTERN.search(text)
        if duration:
            entities["time_duration"] = duration.group(0)

        return entities

    def extract_learning_goal(self, text: str) -> Optional[str]:
        text = text or ""

        technology = self._match_technology(text.lower())
        if technology:
            return technology

        for pattern in self._goal_patterns:
            match = pattern.search(text)
            if not match:
                continue
            goal = match.group(1)
            goal_lower = goal.lower()
            for tech in self.lexicon.technologies:
                tech_lower = tech.lower()
                if goal_lower in tech_lower or tech_lower in goal_lower:
                    return tech
            return goal

        return None

    def assess_user_level(self, text: str) -> UserLevel:
        """Assess skill level from keywords, then years of experience; defaults to INTERMEDIATE."""
        text = text or ""

        level = self._match_level(text.lower())
        if level:
            return level

        match = EXPERIENCE_PATTERN.search(text)
        if match:
            years = int(match.group(1))
            if years < 2:
                return UserLevel.BEGINNER
            if years < 5:
                return UserLevel.INTERMEDIATE
            return UserLevel.ADVANCED

        return UserLevel.INTERMEDIATE

    def calculate_confidence(self, intent: str, entities: Dict[str, Any]) -> float:
        confidence = BASE_CONFIDENCE + len(entities) * ENTITY_WEIGHT

        anchor = ANCHOR_ENTITIES.get(intent)
        if anchor and anchor in entities:
            confidence += ANCHOR_BONUS

        return max(0.0, min(confidence, 1.0))

    def _match_technology(self, normalized: str) -> Optional[str]:
        for technology, keywords in self.lexicon.technologies.items():
            if _contains_any(normalized, keywords):
                return technology
        return None

    def _match_level(self, normalized: str) -> Optional[UserLevel]:
        for level, keywords in self.lexicon.levels.items():
            if _contains_any(normalized, keywords):
                return level
        return None
