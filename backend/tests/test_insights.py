"""
SightEd Backend — Prompt and Parsing Tests
============================================

What:  Pure-function tests for prompt text and every parsing fallback.
"""

import json

import pytest

from sighted.exceptions import LLMServiceError
from sighted.services import insights

LABELS = [{"description": name, "score": 0.9} for name in
          ["Volcano", "Mountain", "Sky", "Cloud", "Snow", "Slope", "Tree"]]
RECORD = {
    "aiDescription": "A volcano above the clouds.",
    "labels": LABELS[:2],
    "landmarks": [{"description": "Mount Fuji", "score": 0.8, "locations": []}],
}


class TestPrompts:

    def test_analysis_prompt_lists_labels_and_landmarks(self):
        prompt = insights.build_analysis_prompt(LABELS[:2], RECORD["landmarks"])
        assert "Labels detected: Volcano, Mountain" in prompt
        assert "Landmarks detected: Mount Fuji" in prompt
        assert '"sceneDescription"' in prompt

    def test_analysis_prompt_omits_empty_landmarks(self):
        prompt = insights.build_analysis_prompt(LABELS[:1], [])
        assert "Landmarks detected" not in prompt

    def test_quiz_prompt_asks_for_five_questions(self):
        prompt = insights.build_quiz_prompt(RECORD)
        assert "5 multiple-choice questions" in prompt
        assert "Description: A volcano above the clouds." in prompt

    def test_explanation_prompt_letters_options(self):
        prompt = insights.build_explanation_prompt(
            RECORD, "What is Fuji?", ["A lake", "A volcano", "A river"], 1
        )
        assert "A. A lake" in prompt
        assert "B. A volcano" in prompt
        assert "C. A river" in prompt
        assert "Correct answer: B. A volcano" in prompt

    def test_fallback_description_uses_top_five_labels(self):
        assert insights.fallback_description(LABELS) == "Volcano, Mountain, Sky, Cloud, Snow"

    def test_fallback_description_empty_without_labels(self):
        assert insights.fallback_description([]) == ""


class TestNormalizeQuiz:

    def test_keeps_valid_question(self):
        quiz = insights.normalize_quiz([
            {"question": "Q?", "options": ["a", "b"], "correctAnswer": 1, "explanation": "e"}
        ])
        assert quiz == [{"question": "Q?", "options": ["a", "b"], "correctAnswer": 1, "explanation": "e"}]

    @pytest.mark.parametrize("answer,expected", [("1", 1), ("B", 1), ("c", 2), (0, 0)])
    def test_accepts_answer_variants(self, answer, expected):
        quiz = insights.normalize_quiz([
            {"question": "Q?", "options": ["a", "b", "c"], "correctAnswer": answer}
        ])
        assert quiz[0]["correctAnswer"] == expected
        assert quiz[0]["explanation"] == ""

    @pytest.mark.parametrize("item", [
        {"question": "", "options": ["a", "b"], "correctAnswer": 0},
        {"question": "Q?", "options": ["a"], "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b"], "correctAnswer": 5},
        {"question": "Q?", "options": ["a", "b"], "correctAnswer": True},
        {"question": "Q?", "options": "a,b", "correctAnswer": 0},
        "not a dict",
    ])
    def test_drops_malformed_questions(self, item):
        assert insights.normalize_quiz([item]) == []

    def test_non_list_input(self):
        assert insights.normalize_quiz({"question": "Q?"}) == []


class TestParseAnalysis:

    def test_json_wrapped_in_markdown(self):
        payload = {
            "sceneDescription": " Lava flows. ",
            "scientificFacts": ["Fact 1", "", "Fact 2"],
            "quickQuiz": [{"question": "Q?", "options": ["a", "b"], "correctAnswer": 0}],
        }
        text = "Here you go:\n```json\n" + json.dumps(payload) + "\n```"
        content = insights.parse_analysis(text)
        assert content.description == "Lava flows."
        assert content.facts == ["Fact 1", "Fact 2"]
        assert len(content.quiz) == 1

    def test_section_fallback(self):
        text = (
            "SCENE DESCRIPTION: A tall volcano at dawn.\n\n"
            "SCIENTIFIC FACTS:\n"
            "- Volcanoes form at plate boundaries.\n"
            "2. Magma becomes lava at the surface.\n"
            "* Ash can travel far.\n"
            "QUICK QUIZ:\n1. Something?"
        )
        content = insights.parse_analysis(text)
        assert content.description == "A tall volcano at dawn."
        assert content.facts == [
            "Volcanoes form at plate boundaries.",
            "Magma becomes lava at the surface.",
            "Ash can travel far.",
        ]
        assert content.quiz == []

    def test_broken_json_falls_back_to_sections(self):
        text = "SCENE DESCRIPTION: Fallback text. {not json}"
        content = insights.parse_analysis(text)
        assert content.description == "Fallback text. {not json}"

    @pytest.mark.parametrize("text", ["", "no structure at all", None])
    def test_never_raises(self, text):
        content = insights.parse_analysis(text)
        assert content.description == ""
        assert content.facts == []


class TestParseQuiz:

    def test_array_in_code_fence(self):
        questions = [
            {"question": f"Q{i}?", "options": ["a", "b", "c", "d"], "correctAnswer": i % 4}
            for i in range(5)
        ]
        quiz = insights.parse_quiz("```json\n" + json.dumps(questions) + "\n```")
        assert len(quiz) == 5

    def test_array_with_surrounding_text(self):
        text = 'Sure! [{"question": "Q?", "options": ["x", "y"], "correctAnswer": "B"}] Enjoy.'
        assert insights.parse_quiz(text)[0]["correctAnswer"] == 1

    def test_unparseable_raises(self):
        with pytest.raises(LLMServiceError, match="Failed to generate quiz questions"):
            insights.parse_quiz("I cannot help with that.")

    def test_no_valid_questions_raises(self):
        with pytest.raises(LLMServiceError):
            insights.parse_quiz('[{"question": "", "options": []}]')
