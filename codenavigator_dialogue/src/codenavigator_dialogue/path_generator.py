"""
Learning Path Generation

The PathGenerator collaborator interface plus a template-based default that
builds a generic five-module path adapted to the learner's level.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from codenavigator_dialogue.session_state import UserLevel

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 8


class DifficultyLevel(Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class ModuleType(Enum):
    THEORY = "THEORY"
    PRACTICE = "PRACTICE"
    TUTORIAL = "TUTORIAL"
    PROJECT = "PROJECT"


@dataclass
class LearningModule:
    """One step of a learning path."""
    id: str
    title: str
    description: str
    module_type: ModuleType
    difficulty: DifficultyLevel
    estimated_hours: int
    order_index: int
    required: bool = True
    prerequisites: List[str] = field(default_factory=list)


@dataclass
class LearningPath:
    """Structured learning path result."""
    id: str
    title: str
    description: str
    technology: str
    target_level: UserLevel
    modules: List[LearningModule]
    estimated_duration_days: int
    created_at: datetime = field(default_factory=datetime.now)

    def summary(self) -> Dict[str, Any]:
        return {"module_count": len(self.modules), "estimated_duration_days": self.estimated_duration_days}

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["target_level"] = self.target_level.value
        data["created_at"] = self.created_at.isoformat()
        for module in data["modules"]:
            module["module_type"] = module["module_type"].value
            module["difficulty"] = module["difficulty"].value
        return data


@dataclass(frozen=True)
class ModuleTemplate:
    title: str
    description: str
    module_type: ModuleType
    difficulty: DifficultyLevel
    estimated_hours: int
    order_index: int
    required: bool


class PathGenerator(ABC):
    """Learning-path synthesis collaborator."""

    @abstractmethod
    async def generate_path(self, technology: str, level: UserLevel, context: Dict[str, Any]) -> LearningPath:
        ...


class TemplatePathGenerator(PathGenerator):
    """
    Builds paths from a generic module template.

    Level adaptation:
    - BEGINNER skips EXPERT modules, caps difficulty at ADVANCED, takes 1.5x longer
    - INTERMEDIATE skips optional BEGINNER modules
    - ADVANCED skips BEGINNER modules, lifts difficulty to INTERMEDIATE, takes 0.7x as long
    """

    LEVEL_NAMES = {
        UserLevel.BEGINNER: "初级",
        UserLevel.INTERMEDIATE: "中级",
        UserLevel.ADVANCED: "高级",
    }

    def __init__(self, templates: Optional[Dict[str, List[ModuleTemplate]]] = None):
        self.templates = {k.lower(): v for k, v in (templates or {}).items()}

    async def generate_path(self, technology: str, level: UserLevel, context: Dict[str, Any]) -> LearningPath:
        if not technology:
            raise ValueError("technology is required to generate a learning path")
        level = level or UserLevel.INTERMEDIATE
        logger.info(f"📋 [PathGenerator] Generating learning path for {technology} ({level.value})")

        templates = self.templates.get(technology.lower()) or self._generic_templates(technology)
        selected = sorted(
            (t for t in templates if self._should_include(t, level)),
            key=lambda t: t.order_index,
        )

        modules: List[LearningModule] = []
        for template in selected:
            module = LearningModule(
                id=str(uuid.uuid4()),
                title=template.title,
                description=template.description,
                module_type=template.module_type,
                difficulty=self._adjust_difficulty(template.difficulty, level),
                estimated_hours=template.estimated_hours,
                order_index=template.order_index,
                required=template.required,
                prerequisites=[modules[-1].id] if modules else [],
            )
            modules.append(module)

        path = LearningPath(
            id=str(uuid.uuid4()),
            title=f"{technology} 学习路径 - {self.LEVEL_NAMES[level]}",
            description=f"全面掌握{technology}技术栈",
            technology=technology,
            target_level=level,
            modules=modules,
            estimated_duration_days=self._duration_days(selected, level),
        )
        logger.info(f"📋 [PathGenerator] Generated learning path with {len(modules)} modules")
        return path

    @staticmethod
    def _generic_templates(technology: str) -> List[ModuleTemplate]:
        return [
            ModuleTemplate("基础概念", f"了解{technology}的基本概念和原理", ModuleType.THEORY, DifficultyLevel.BEGINNER, 8, 1, True),
            ModuleTemplate("环境搭建", f"搭建{technology}开发环境", ModuleType.PRACTICE, DifficultyLevel.BEGINNER, 4, 2, True),
            ModuleTemplate("快速入门", f"{technology}快速入门教程", ModuleType.TUTORIAL, DifficultyLevel.INTERMEDIATE, 12, 3, True),
            ModuleTemplate("进阶学习", f"{technology}进阶特性学习", ModuleType.THEORY, DifficultyLevel.ADVANCED, 16, 4, False),
            ModuleTemplate("实战项目", f"使用{technology}完成实战项目", ModuleType.PROJECT, DifficultyLevel.ADVANCED, 24, 5, True),
        ]

    @staticmethod
    def _should_include(template: ModuleTemplate, level: UserLevel) -> bool:
        if level == UserLevel.BEGINNER:
            return template.difficulty != DifficultyLevel.EXPERT
        if level == UserLevel.INTERMEDIATE:
            return template.difficulty != DifficultyLevel.BEGINNER or template.required
        return template.difficulty != DifficultyLevel.BEGINNER

    @staticmethod
    def _adjust_difficulty(difficulty: DifficultyLevel, level: UserLevel) -> DifficultyLevel:
        if level == UserLevel.BEGINNER and difficulty == DifficultyLevel.EXPERT:
            return DifficultyLevel.ADVANCED
        if level == UserLevel.ADVANCED and difficulty == DifficultyLevel.BEGINNER:
            return DifficultyLevel.INTERMEDIATE
        return difficulty

    @staticmethod
    def _duration_days(templates: List[ModuleTemplate], level: UserLevel) -> int:
        total_hours = sum(t.estimated_hours for t in templates)
        if level == UserLevel.BEGINNER:
            total_hours = int(total_hours * 1.5)
        elif level == UserLevel.ADVANCED:
            total_hours = int(total_hours * 0.7)
        return (total_hours + HOURS_PER_DAY - 1) // HOURS_PER_DAY
