"""
Unit Tests for Language Classifier

Tests intent precedence, entity extraction, goal resolution, level
assessment and confidence scoring.
"""

import json
import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "codenavigator_dialogue", "src"))

from codenavigator_dialogue.language_classifier import LanguageClassifier
from codenavigator_dialogue.lexicon import Lexicon
from codenavigator_dialogue.session_state import Phase, Session, UserLevel


def session_in(phase: Phase) -> Session:
    return Session(session_id="s1", phase=phase)


class TestIntentExtraction:
    """Test suite for phase-aware intent extraction."""

    @pytest.fixture
    def classifier(self):
        return LanguageClassifier()

    def test_plain_greeting_is_general_question(self, classifier):
        assert classifier.extract_intent("你好", session_in(Phase.GREETING)) == "general_question"

    def test_greeting_with_goal_keyword(self, classifier):
        assert classifier.extract_intent("我想学习Spring", session_in(Phase.GREETING)) == "set_learning_goal"

    def test_question_marker_wins_in_greeting(self, classifier):
        """A question marker outranks the goal keyword while greeting."""
        assert classifier.extract_intent("我想学习什么？", session_in(Phase.GREETING)) == "ask_question"
        assert classifier.extract_intent("Kafka好学吗?", session_in(Phase.GREETING)) == "ask_question"

    def test_phase_forced_intents(self, classifier):
        assert classifier.extract_intent("随便", session_in(Phase.GOAL_IDENTIFICATION)) == "set_learning_goal"
        assert classifier.extract_intent("随便", session_in(Phase.SKILL_ASSESSMENT)) == "assess_skill"
        assert classifier.extract_intent("随便", session_in(Phase.PATH_PLANNING)) == "plan_path"

    def test_task_execution_intents(self, classifier):
        session = session_in(Phase.TASK_EXECUTION)
        assert classifier.extract_intent("什么是依赖注入", session) == "ask_question"
        assert classifier.extract_intent("请帮我检查代码", session) == "request_review"
        assert classifier.extract_intent("继续下一步", session) == "task_help"

    def test_generic_table_in_review_phase(self, classifier):
        session = session_in(Phase.REVIEW_FEEDBACK)
        assert classifier.extract_intent("我的进度怎么样", session) == "ask_question"
        assert classifier.extract_intent("看看进度", session) == "show_progress"
        assert classifier.extract_intent("需要帮助", session) == "get_help"
        assert classifier.extract_intent("好的", session) == "general_question"

    def test_case_insensitive(self, classifier):
        session = session_in(Phase.TASK_EXECUTION)
        assert classifier.extract_intent("please REVIEW this", session) == "request_review"

    def test_deterministic(self, classifier):
        session = session_in(Phase.GREETING)
        results = {classifier.classify("我想学习Kafka, 每天2小时", session).confidence for _ in range(5)}
        assert len(results) == 1


class TestEntityExtraction:
    """Test suite for entity and goal extraction."""

    @pytest.fixture
    def classifier(self):
        return LanguageClassifier()

    def test_technology_entity(self, classifier):
        assert classifier.extract_entities("我想了解消息队列")["technology"] == "Kafka"

    def test_level_and_duration_entities(self, classifier):
        entities = classifier.extract_entities("我是新手，计划8周学完")
        assert entities["skill_level"] == UserLevel.BEGINNER
        assert entities["time_duration"] == "8周"

    def test_no_entities(self, classifier):
        assert classifier.extract_entities("你好") == {}

    def test_goal_from_keyword_table(self, classifier):
        assert classifier.extract_learning_goal("我想学习Spring Boot") == "Spring"
        assert classifier.extract_learning_goal("想搞懂jvm调优") == "Java"

    def test_goal_from_verb_pattern(self, classifier):
        assert classifier.extract_learning_goal("我想学Rust") == "Rust"

    def test_goal_pattern_maps_to_canonical(self, classifier):
        lexicon = Lexicon.from_mapping({"technologies": {"Kubernetes": ["k8s"]}})
        assert LanguageClassifier(lexicon).extract_learning_goal("我想掌握kube") == "Kubernetes"

    def test_unresolved_goal(self, classifier):
        assert classifier.extract_learning_goal("我想学点东西") is None
        assert classifier.extract_learning_goal("") is None


class TestLevelAssessment:
    """Test suite for skill level assessment."""

    @pytest.fixture
    def classifier(self):
        return LanguageClassifier()

    @pytest.mark.parametrize("text,expected", [
        ("我是初学者", UserLevel.BEGINNER),
        ("有点经验", UserLevel.INTERMEDIATE),
        ("我很熟悉这个", UserLevel.ADVANCED),
        ("工作1年了", UserLevel.BEGINNER),
        ("做了3年开发", UserLevel.INTERMEDIATE),
        ("10年经验", UserLevel.ADVANCED),
        ("说不清", UserLevel.INTERMEDIATE),
    ])
    def test_assess_user_level(self, classifier, text, expected):
        assert classifier.assess_user_level(text) == expected


class TestConfidence:
    """Test suite for confidence scoring."""

    @pytest.fixture
    def classifier(self):
        return LanguageClassifier()

    def test_base_confidence(self, classifier):
        assert classifier.calculate_confidence("general_question", {}) == pytest.approx(0.5)

    def test_anchor_bonus(self, classifier):
        result = classifier.classify("我想学习Spring", session_in(Phase.GREETING))
        assert result.intent == "set_learning_goal"
        assert result.confidence == pytest.approx(0.9)

    def test_confidence_is_clamped(self, classifier):
        entities = {"technology": "Spring", "skill_level": UserLevel.BEGINNER, "time_duration": "2周"}
        assert classifier.calculate_confidence("set_learning_goal", entities) == 1.0


class TestLexicon:
    """Test suite for lexicon loading."""

    def test_tables_are_read_only(self):
        lexicon = Lexicon.default()
        with pytest.raises(TypeError):
            lexicon.technologies["Go"] = ("go",)

    def test_from_json_override(self, tmp_path):
        path = tmp_path / "lexicon.json"
        path.write_text(json.dumps({
            "technologies": {"Go": ["golang", "Goroutine"]},
            "levels": {"beginner": ["入门"]},
            "greeting_suggestions": ["Go", "Spring", "Docker"],
        }), encoding="utf-8")

        lexicon = Lexicon.from_json(path)
        classifier = LanguageClassifier(lexicon)

        assert classifier.extract_entities("goroutine怎么用")["technology"] == "Go"
        assert classifier.assess_user_level("刚入门") == UserLevel.BEGINNER
        assert lexicon.greeting_suggestions == ("Go", "Spring", "Docker")
        assert "set_learning_goal" in lexicon.intents

    @pytest.mark.parametrize("suggestions", [["Go"], ["Go", "Spring", "Docker", "Redis"]])
    def test_greeting_suggestions_must_be_three(self, suggestions):
        with pytest.raises(ValueError):
            Lexicon.from_mapping({"greeting_suggestions": suggestions})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
