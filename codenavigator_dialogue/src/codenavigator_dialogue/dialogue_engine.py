"""
Dialogue Engine - phase-based conversation orchestration

Per message:
1. Resolve the session (store lookup, or a fresh GREETING session)
2. Classify the message against the session's phase
3. Dispatch to the single handler for that phase
4. Apply the requested phase transition (guarded)
5. Record the turn, persist, and return one response

process_message never raises: any unexpected failure becomes a single
ERROR_MESSAGE response and nothing from that turn is persisted.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from codenavigator_dialogue.chat_backend import ChatBackend, ChatReply, OpenAIChatBackend
from codenavigator_dialogue.config import DialogueSettings
from codenavigator_dialogue.errors import ClassificationFailure, UnsupportedProviderError
from codenavigator_dialogue.language_classifier import LanguageClassifier
from codenavigator_dialogue.lexicon import Lexicon
from codenavigator_dialogue.logger import get_logger
from codenavigator_dialogue.path_generator import PathGenerator, TemplatePathGenerator
from codenavigator_dialogue.schemas import (
    ConversationRequest,
    ConversationResponse,
    ResponseType,
    SuggestedAction,
)
from codenavigator_dialogue.session_state import ClassificationResult, Phase, Session
from codenavigator_dialogue.session_store import SessionStore, create_primary_backend

logger = get_logger(__name__)

DEFAULT_CHAT_CONFIDENCE = 0.7
RECENT_TURNS_IN_PROMPT = 3

GREETING_MESSAGE = (
    "你好！我是CodeNavigator的学习助手，可以帮你制定个性化的技术学习路径。"
    "告诉我你想学习什么技术，或者目前遇到了什么学习困难？"
)
GOAL_CLARIFICATION_MESSAGE = "我还没有理解你的学习目标，能具体说说你想学习哪项技术吗？"
LEVEL_CLARIFICATION_MESSAGE = "在生成学习路径之前，能先告诉我你目前的技术水平吗？"
PATH_ERROR_MESSAGE = "抱歉，生成学习路径时出现了问题，请稍后再试。"
CHAT_ERROR_MESSAGE = "抱歉，我暂时无法回答这个问题，请稍后再试。"
GENERIC_ERROR_MESSAGE = "抱歉，我遇到了一些问题，请稍后再试。"


@dataclass
class Turn:
    """A handler's output: the reply and the phase to move to (if any)."""
    response: ConversationResponse
    next_phase: Optional[Phase] = None


def _reply(
    response_type: ResponseType,
    message: str,
    confidence: float,
    data: Optional[Dict[str, Any]] = None,
    actions: Optional[list] = None,
) -> ConversationResponse:
    return ConversationResponse(
        type=response_type,
        message=message,
        confidence=confidence,
        data=data,
        suggested_actions=actions,
    )


class DialogueEngine:
    """
    Moore-machine conversation engine.

    The handler is selected solely by ``session.phase``; each handler sees the
    request, the working copy of the session and the classification result.
    """

    def __init__(
        self,
        store: SessionStore,
        classifier: LanguageClassifier,
        chat_backend: ChatBackend,
        path_generator: PathGenerator,
        chat_timeout_seconds: float = 60.0,
        path_timeout_seconds: float = 90.0,
    ):
        self.store = store
        self.classifier = classifier
        self.chat_backend = chat_backend
        self.path_generator = path_generator
        self.chat_timeout_seconds = chat_timeout_seconds
        self.path_timeout_seconds = path_timeout_seconds

        self._handlers: Dict[Phase, Callable[..., Awaitable[Turn]]] = {
            Phase.GREETING: self._handle_greeting,
            Phase.GOAL_IDENTIFICATION: self._handle_goal_identification,
            Phase.SKILL_ASSESSMENT: self._handle_skill_assessment,
            Phase.PATH_PLANNING: self._handle_path_planning,
            Phase.TASK_EXECUTION: self._handle_task_execution,
            Phase.REVIEW_FEEDBACK: self._handle_review_feedback,
        }

    @classmethod
    def from_settings(cls, settings: DialogueSettings) -> "DialogueEngine":
        lexicon = Lexicon.from_json(settings.lexicon_path) if settings.lexicon_path else Lexicon.default()
        return cls(
            store=SessionStore(primary=create_primary_backend(settings), ttl=settings.session_ttl),
            classifier=LanguageClassifier(lexicon),
            chat_backend=OpenAIChatBackend.from_settings(settings),
            path_generator=TemplatePathGenerator(),
            chat_timeout_seconds=settings.chat_timeout_seconds,
            path_timeout_seconds=settings.path_timeout_seconds,
        )

    async def process_message(
        self, request: Union[ConversationRequest, Mapping[str, Any]]
    ) -> ConversationResponse:
        """
        Process one inbound message and return exactly one response.

        Args:
            request: ConversationRequest or a mapping with the same fields

        Returns:
            ConversationResponse stamped with the session id
        """
        started = time.perf_counter()
        session_id = ""

        try:
            if not isinstance(request, ConversationRequest):
                request = ConversationRequest.model_validate(dict(request))
            session_id = request.session_id or ""

            session = await self._resolve_session(request)
            session_id = session.session_id
            phase_before = session.phase

            classification = self._classify(request.message, session)
            turn = await self._handlers[session.phase](request, session, classification)

            if turn.next_phase is not None and turn.next_phase != session.phase:
                session.advance_to(turn.next_phase)

            self._record_turn(session, request, classification, turn.response)
            session.touch()
            await self.store.save_state(session)

            logger.turn(
                session_id,
                phase_before.value,
                session.phase.value,
                turn.response.type.value,
                duration=time.perf_counter() - started,
            )
            return turn.response.model_copy(update={"session_id": session_id})

        except Exception as e:
            logger.error("❌ [DialogueEngine] Error processing conversation message", error=e, data={"session_id": session_id})
            return ConversationResponse(
                type=ResponseType.ERROR_MESSAGE,
                message=GENERIC_ERROR_MESSAGE,
                confidence=0.0,
                session_id=session_id,
            )

    async def _resolve_session(self, request: ConversationRequest) -> Session:
        if request.session_id:
            session = await self.store.get_state(request.session_id)
            if session is not None:
                return session

        session = Session(
            session_id=request.session_id or str(uuid.uuid4()),
            user_id=request.user_id,
            phase=Phase.GREETING,
            message_count=0,
        )
        logger.info(f"💬 [DialogueEngine] Created session {session.session_id} for user {request.user_id}")
        return session

    def _classify(self, message: str, session: Session) -> ClassificationResult:
        try:
            return self.classifier.classify(message, session)
        except Exception as e:
            raise ClassificationFailure(f"Could not classify message for session {session.session_id}") from e

    def _record_turn(
        self,
        session: Session,
        request: ConversationRequest,
        classification: ClassificationResult,
        response: ConversationResponse,
    ):
        """Merge recognised slots into the session context and append the turn to history."""
        for key, value in classification.entities.items():
            session.context[key] = getattr(value, "value", value)
        session.context.update(request.context)
        session.context["last_intent"] = classification.intent

        session.add_turn("user", request.message)
        session.add_turn("assistant", response.message)

    # ==================== Phase handlers ====================

    async def _handle_greeting(self, request, session, classification) -> Turn:
        actions = [
            SuggestedAction(
                label=f"学习{tech}",
                action="set_learning_goal",
                parameters={"technology": tech},
            )
            for tech in self.classifier.lexicon.greeting_suggestions
        ]
        next_phase = Phase.GOAL_IDENTIFICATION if classification.intent == "set_learning_goal" else None
        return Turn(_reply(ResponseType.TEXT_RESPONSE, GREETING_MESSAGE, 1.0, actions=actions), next_phase)

    async def _handle_goal_identification(self, request, session, classification) -> Turn:
        goal = self.classifier.extract_learning_goal(request.message)
        if not goal:
            return Turn(_reply(ResponseType.CLARIFICATION_NEEDED, GOAL_CLARIFICATION_MESSAGE, 0.3))

        session.learning_goal = goal
        message = (
            f"很好！我理解你想学习{goal}。为了给你制定最合适的学习路径，"
            "能告诉我你目前的技术水平吗？比如是初学者、有一定经验，还是已经比较熟练？"
        )
        return Turn(_reply(ResponseType.TEXT_RESPONSE, message, 0.8), Phase.SKILL_ASSESSMENT)

    async def _handle_skill_assessment(self, request, session, classification) -> Turn:
        session.user_level = self.classifier.assess_user_level(request.message)
        message = "好的，我会根据你的技术水平生成一个定制的学习路径。发送任意消息即可开始生成。"
        return Turn(_reply(ResponseType.TEXT_RESPONSE, message, 0.9), Phase.PATH_PLANNING)

    async def _handle_path_planning(self, request, session, classification) -> Turn:
        if not session.learning_goal:
            return Turn(
                _reply(ResponseType.CLARIFICATION_NEEDED, GOAL_CLARIFICATION_MESSAGE, 0.3),
                Phase.GOAL_IDENTIFICATION,
            )
        if session.user_level is None:
            return Turn(
                _reply(ResponseType.CLARIFICATION_NEEDED, LEVEL_CLARIFICATION_MESSAGE, 0.3),
                Phase.SKILL_ASSESSMENT,
            )

        try:
            path = await asyncio.wait_for(
                self.path_generator.generate_path(session.learning_goal, session.user_level, dict(session.context)),
                timeout=self.path_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"❌ [DialogueEngine] Learning path generation timed out after {self.path_timeout_seconds}s")
            return Turn(_reply(ResponseType.ERROR_MESSAGE, PATH_ERROR_MESSAGE, 0.0))
        except Exception as e:
            logger.error("❌ [DialogueEngine] Error generating learning path", error=e)
            return Turn(_reply(ResponseType.ERROR_MESSAGE, PATH_ERROR_MESSAGE, 0.0))

        module_count = len(path.modules)
        message = (
            f"我已经为你生成了学习路径！这个路径包含{module_count}个学习模块，"
            f"预计需要{path.estimated_duration_days}天完成。你可以查看详细内容并开始学习。"
        )
        data = {"learning_path": path.to_dict(), "summary": path.summary()}
        path_id = getattr(path, "id", None)
        actions = [
            SuggestedAction(label="开始学习", action="start_learning", parameters={"pathId": path_id}),
            SuggestedAction(label="自定义路径", action="customize_path", parameters={"pathId": path_id}),
        ]
        return Turn(
            _reply(ResponseType.LEARNING_PATH_GENERATED, message, 0.85, data=data, actions=actions),
            Phase.TASK_EXECUTION,
        )

    async def _handle_task_execution(self, request, session, classification) -> Turn:
        if classification.intent == "request_review":
            message = "收到，我会帮你检查当前的学习任务。请把需要评估的内容发给我。"
            return Turn(_reply(ResponseType.TEXT_RESPONSE, message, 0.7))

        try:
            answer = await self._ask_chat_backend(self.build_prompt(request.message, session), request.preferred_provider)
        except asyncio.TimeoutError:
            logger.error(f"❌ [DialogueEngine] Chat backend timed out after {self.chat_timeout_seconds}s")
            return Turn(_reply(ResponseType.ERROR_MESSAGE, CHAT_ERROR_MESSAGE, 0.0))
        except Exception as e:
            logger.error("❌ [DialogueEngine] Error generating AI response", error=e)
            return Turn(_reply(ResponseType.ERROR_MESSAGE, CHAT_ERROR_MESSAGE, 0.0))

        if isinstance(answer, ChatReply):
            confidence = answer.confidence if answer.confidence is not None else DEFAULT_CHAT_CONFIDENCE
            text = answer.content
        else:
            confidence, text = DEFAULT_CHAT_CONFIDENCE, answer
        return Turn(_reply(ResponseType.TEXT_RESPONSE, text, max(0.0, min(confidence, 1.0))))

    async def _handle_review_feedback(self, request, session, classification) -> Turn:
        return Turn(_reply(ResponseType.TEXT_RESPONSE, "让我们一起回顾一下你的学习进展。", 0.7))

    # ==================== Chat backend ====================

    async def _ask_chat_backend(self, prompt: str, preferred_provider: Optional[str]) -> Union[str, ChatReply]:
        """Ask the chat backend, retrying once on the default provider if the preferred one is unsupported."""
        if preferred_provider:
            try:
                return await asyncio.wait_for(
                    self.chat_backend.send_message(prompt, preferred_provider),
                    timeout=self.chat_timeout_seconds,
                )
            except UnsupportedProviderError as e:
                logger.warning(f"⚠️ [DialogueEngine] Preferred provider {preferred_provider!r} unavailable, falling back to default: {e}")

        return await asyncio.wait_for(self.chat_backend.send_message(prompt), timeout=self.chat_timeout_seconds)

    def build_prompt(self, message: str, session: Session) -> str:
        """Build the chat prompt from the session's goal, level, phase and recent turns."""
        lines = ["你是CodeNavigator的AI学习助手，专门帮助用户制定技术学习路径和解答编程问题。", ""]

        if session.learning_goal:
            lines.append(f"用户学习目标: {session.learning_goal}")
        if session.user_level is not None:
            lines.append(f"用户技能水平: {session.user_level.value}")
        lines.append(f"会话阶段: {session.phase.value}")

        recent = session.recent_turns(RECENT_TURNS_IN_PROMPT)
        if recent:
            lines.append("")
            lines.append("最近对话:")
            for turn in recent:
                speaker = "用户" if turn.get("role") == "user" else "助手"
                lines.append(f"{speaker}: {turn.get('content', '')}")

        lines.append("")
        lines.append(f"当前用户消息: {message}")
        lines.append("")
        lines.append("请基于以上信息给出专业、有帮助的回复。回复应简洁明了，并提供具体的学习建议或解答。")
        return "\n".join(lines)


_engine_instance: Optional[DialogueEngine] = None


def get_engine(settings: Optional[DialogueSettings] = None) -> DialogueEngine:
    """
    Get or create the singleton DialogueEngine.

    Settings are only used on first creation; they default to the environment.
    """
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = DialogueEngine.from_settings(settings or DialogueSettings.from_env())
    return _engine_instance
