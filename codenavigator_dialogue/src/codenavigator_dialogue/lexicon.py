"""
Keyword Lexicon

Immutable keyword tables consumed by the LanguageClassifier. A lexicon is
built once at startup (the built-in default, or a JSON override) and shared
by reference; tables are read-only mappings of tuples.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple, Union

from codenavigator_dialogue.session_state import UserLevel

DEFAULT_TECHNOLOGIES = {
    "Spring": ("spring", "springboot", "spring boot", "spring framework", "依赖注入", "ioc", "aop"),
    "Kafka": ("kafka", "消息队列", "mq", "message queue", "stream", "流处理"),
    "Netty": ("netty", "nio", "网络编程", "socket", "tcp", "udp", "异步"),
    "MySQL": ("mysql", "数据库", "sql", "关系数据库", "jdbc"),
    "Redis": ("redis", "缓存", "cache", "nosql", "内存数据库"),
    "Docker": ("docker", "容器", "container", "微服务", "k8s", "kubernetes"),
    "Java": ("java", "jvm", "多线程", "并发", "集合", "泛型"),
}

DEFAULT_LEVELS = {
    UserLevel.BEGINNER: ("初学者", "新手", "刚开始", "零基础", "不会", "不懂", "菜鸟"),
    UserLevel.INTERMEDIATE: ("有点经验", "一般", "了解一些", "会一点", "中等", "有基础"),
    UserLevel.ADVANCED: ("熟练", "经验丰富", "很熟悉", "专家", "精通", "资深"),
}

# Order matters: the generic intent table is scanned top to bottom
DEFAULT_INTENTS = {
    "set_learning_goal": ("学习", "想学", "掌握", "了解", "深入", "提升"),
    "ask_question": ("什么是", "如何", "怎么", "为什么", "问题"),
    "get_help": ("帮助", "帮忙", "协助", "指导"),
    "show_progress": ("进度", "完成", "学了", "掌握了"),
    "request_review": ("检查", "review", "评估", "反馈"),
}

DEFAULT_QUESTION_MARKERS = ("?", "？")
DEFAULT_GOAL_VERBS = ("学习", "想学", "掌握", "了解")
DEFAULT_GREETING_SUGGESTIONS = ("Spring", "Kafka", "Netty")
GREETING_SUGGESTION_COUNT = 3


def _freeze(table: Mapping[Any, Any]) -> Mapping[Any, Tuple[str, ...]]:
    return MappingProxyType({key: tuple(kw.lower() for kw in keywords) for key, keywords in table.items()})


@dataclass(frozen=True)
class Lexicon:
    """Read-only keyword tables for deterministic message classification."""
    technologies: Mapping[str, Tuple[str, ...]]
    levels: Mapping[UserLevel, Tuple[str, ...]]
    intents: Mapping[str, Tuple[str, ...]]
    question_markers: Tuple[str, ...] = DEFAULT_QUESTION_MARKERS
    goal_verbs: Tuple[str, ...] = DEFAULT_GOAL_VERBS
    greeting_suggestions: Tuple[str, ...] = DEFAULT_GREETING_SUGGESTIONS

    def __post_init__(self):
        if len(self.greeting_suggestions) != GREETING_SUGGESTION_COUNT:
            raise ValueError(
                f"greeting_suggestions must list exactly {GREETING_SUGGESTION_COUNT} technologies, "
                f"got {len(self.greeting_suggestions)}"
            )

    @classmethod
    def default(cls) -> "Lexicon":
        return cls(
            technologies=_freeze(DEFAULT_TECHNOLOGIES),
            levels=_freeze(DEFAULT_LEVELS),
            intents=_freeze(DEFAULT_INTENTS),
        )

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "Lexicon":
        """
        Build a lexicon from a plain mapping, falling back to the defaults
        for any table that is not provided.

        Level tables are keyed by level name (``"BEGINNER"`` etc.).
        """
        levels = data.get("levels")
        return cls(
            technologies=_freeze(data.get("technologies") or DEFAULT_TECHNOLOGIES),
            levels=_freeze({UserLevel(name.upper()): kws for name, kws in levels.items()} if levels else DEFAULT_LEVELS),
            intents=_freeze(data.get("intents") or DEFAULT_INTENTS),
            question_markers=tuple(data.get("question_markers") or DEFAULT_QUESTION_MARKERS),
            goal_verbs=tuple(data.get("goal_verbs") or DEFAULT_GOAL_VERBS),
            greeting_suggestions=tuple(data.get("greeting_suggestions") or DEFAULT_GREETING_SUGGESTIONS),
        )

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "Lexicon":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_mapping(json.load(f))
