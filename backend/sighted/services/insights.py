"""
SightEd Backend — Prompt Building and Model Output Parsing
============================================================

What:  Pure functions that turn detection results into Gemini prompts and
       turn Gemini's free text back into structured educational content.
Why:   Kept free of I/O so every parsing fallback can be unit-tested without
       mocking the SDK.

Parsing strategy for the upload analysis:
    1. Take the outermost {...} span of the answer (the model often wraps
       JSON in markdown fences or adds a sentence before it) and json.loads it.
    2. If that fails, read the plain-text sections:
           SCENE DESCRIPTION: ... up to SCIENTIFIC FACTS:
           SCIENTIFIC FACTS:  ... bullet/numbered lines up to QUICK QUIZ:
       The quiz is left empty in this mode.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sighted.exceptions import LLMServiceError

logger = logging.getLogger(__name__)

ANALYSIS_FACT_COUNT = 3
ANALYSIS_QUIZ_COUNT = 3
GENERATED_QUIZ_COUNT = 5
FALLBACK_LABEL_COUNT = 5

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY_RE = re.compile(r"\[\s*\{.*\}\s*\]", re.DOTALL)
_CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(r"SCENE DESCRIPTION:([\s\S]*?)(?=SCIENTIFIC FACTS:|$)", re.IGNORECASE)
_FACTS_RE = re.compile(r"SCIENTIFIC FACTS:([\s\S]*?)(?=QUICK QUIZ:|$)", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.+?)\s*$")


@dataclass
class AnalysisContent:
    """Educational content generated for one image."""

    description: str = ""
    facts: List[str] = field(default_factory=list)
    quiz: List[Dict[str, Any]] = field(default_factory=list)


def _names(items: Sequence[Dict[str, Any]]) -> str:
    return ", ".join(str(item.get("description", "")) for item in items if item.get("description"))


def _letter(index: int) -> str:
    return chr(ord("A") + index)


# ══════════════════════════════════════════════════════════════════════════
# Prompts
# ══════════════════════════════════════════════════════════════════════════

def build_analysis_prompt(
    labels: Sequence[Dict[str, Any]],
    landmarks: Sequence[Dict[str, Any]],
) -> str:
    """Prompt for the description, facts and short quiz generated at upload time."""
    lines = [
        "Generate a comprehensive analysis of an image based on the following detected elements:",
        "",
        f"Labels detected: {_names(labels)}",
    ]
    if landmarks:
        lines.append(f"Landmarks detected: {_names(landmarks)}")
    lines += [
        "",
        "Please provide the following sections:",
        "",
        "1. SCENE DESCRIPTION: A comprehensive, educational description in 2-3 sentences "
        "that explains what's in the image. Focus on the main elements and their "
        "relationships. Be specific and informative.",
        "",
        f"2. SCIENTIFIC FACTS: Provide exactly {ANALYSIS_FACT_COUNT} interesting scientific "
        "facts related to the main elements in the image. These should be educational "
        "and help the user learn something new.",
        "",
        f"3. QUICK QUIZ: Create {ANALYSIS_QUIZ_COUNT} simple multiple-choice questions about "
        "the content in the image. Each question should have 4 options (A, B, C, D) with "
        "one correct answer and a detailed explanation.",
        "",
        "Format your response as a JSON object with the following structure:",
        "{",
        '  "sceneDescription": "Your detailed scene description here...",',
        '  "scientificFacts": ["Fact 1", "Fact 2", "Fact 3"],',
        '  "quickQuiz": [',
        "    {",
        '      "question": "Question 1?",',
        '      "options": ["Option A", "Option B", "Option C", "Option D"],',
        '      "correctAnswer": 0,',
        '      "explanation": "Why this answer is correct."',
        "    }",
        "  ]",
        "}",
    ]
    return "\n".join(lines)


def build_quiz_prompt(record: Dict[str, Any]) -> str:
    """Prompt for the standalone 5-question quiz of POST /generate-quiz."""
    lines = [
        f"Generate an educational quiz with {GENERATED_QUIZ_COUNT} multiple-choice questions "
        "based on the following image analysis:",
        "",
        f"Description: {record.get('aiDescription', '')}",
        "",
        f"Labels detected: {_names(record.get('labels') or [])}",
    ]
    landmarks = record.get("landmarks") or []
    if landmarks:
        lines.append(f"Landmarks detected: {_names(landmarks)}")
    lines += [
        "",
        "For each question:",
        "1. Create an educational question that teaches the user something about the content in the image",
        "2. Focus on facts, concepts, and knowledge related to what's shown in the image",
        "3. Provide 4 possible answers (A, B, C, D)",
        "4. Indicate the correct answer",
        "5. Add a detailed explanation for why the answer is correct",
        "",
        "Make the questions varied in difficulty and topic.",
        "",
        "Format the response as a JSON array with the following structure:",
        "[",
        "  {",
        '    "question": "Question text",',
        '    "options": ["Option A", "Option B", "Option C", "Option D"],',
        '    "correctAnswer": 0,',
        '    "explanation": "Explanation text"',
        "  }",
        "]",
        "correctAnswer is the index (0-3) of the correct option.",
    ]
    return "\n".join(lines)


def build_explanation_prompt(
    record: Dict[str, Any],
    question: str,
    options: Sequence[str],
    correct_answer: int,
) -> str:
    """
    Prompt explaining why `options[correct_answer]` answers `question`.

    Options are lettered A., B., C., ... in the order given.
    """
    lines = [
        "Generate an accurate, educational explanation for why the following answer is correct.",
        "",
        f"Image description: {record.get('aiDescription', '')}",
        "",
        f"Labels detected in the image: {_names(record.get('labels') or [])}",
    ]
    landmarks = record.get("landmarks") or []
    if landmarks:
        lines.append(f"Landmarks in the image: {_names(landmarks)}")
    lines += ["", f"Question: {question}", "", "Options:"]
    lines += [f"{_letter(i)}. {option}" for i, option in enumerate(options)]
    lines += [
        "",
        f"Correct answer: {_letter(correct_answer)}. {options[correct_answer]}",
        "",
        "Please provide a detailed, factually accurate explanation of why this answer is "
        "correct. Keep your explanation concise (2-3 sentences) but informative.",
    ]
    return "\n".join(lines)


def fallback_description(labels: Sequence[Dict[str, Any]]) -> str:
    """Description used when Gemini is unavailable: the top label names."""
    return _names(list(labels)[:FALLBACK_LABEL_COUNT])


# ══════════════════════════════════════════════════════════════════════════
# Parsing
# ══════════════════════════════════════════════════════════════════════════

def _answer_index(value: Any, option_count: int) -> Optional[int]:
    """Accepts 0-based ints, numeric strings and letters ("B")."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        index = value
    elif isinstance(value, str) and value.strip().isdigit():
        index = int(value.strip())
    elif isinstance(value, str) and len(value.strip()) == 1 and value.strip().isalpha():
        index = ord(value.strip().upper()) - ord("A")
    else:
        return None
    return index if 0 <= index < option_count else None


def normalize_quiz(items: Any) -> List[Dict[str, Any]]:
    """
    Keeps well-formed questions and drops the rest.

    A question is kept when it has non-empty question text, at least two
    string options and a correctAnswer that indexes those options.
    """
    if not isinstance(items, list):
        return []

    quiz = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = item.get("question")
        options = item.get("options")
        if not isinstance(question, str) or not question.strip():
            continue
        if not isinstance(options, list) or len(options) < 2:
            continue
        if not all(isinstance(option, (str, int, float)) for option in options):
            continue
        options = [str(option) for option in options]
        index = _answer_index(item.get("correctAnswer"), len(options))
        if index is None:
            continue
        explanation = item.get("explanation")
        quiz.append({
            "question": question.strip(),
            "options": options,
            "correctAnswer": index,
            "explanation": explanation.strip() if isinstance(explanation, str) else "",
        })

    dropped = len(items) - len(quiz)
    if dropped:
        logger.warning("Dropped %d malformed quiz question(s)", dropped)
    return quiz


def _facts_from(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(fact).strip() for fact in value if str(fact).strip()]


def parse_analysis(text: str) -> AnalysisContent:
    """Parses the upload analysis answer; never raises."""
    match = _JSON_OBJECT_RE.search(text or "")
    if match:
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.warning("Analysis JSON could not be parsed: %s", str(e))
        else:
            if isinstance(data, dict):
                description = data.get("sceneDescription")
                return AnalysisContent(
                    description=description.strip() if isinstance(description, str) else "",
                    facts=_facts_from(data.get("scientificFacts")),
                    quiz=normalize_quiz(data.get("quickQuiz")),
                )

    logger.info("Falling back to section parsing for analysis text")
    content = AnalysisContent()
    description = _DESCRIPTION_RE.search(text or "")
    if description:
        content.description = description.group(1).strip()
    facts = _FACTS_RE.search(text or "")
    if facts:
        for line in facts.group(1).splitlines():
            bullet = _BULLET_RE.match(line)
            if bullet:
                content.facts.append(bullet.group(1))
    return content


def parse_quiz(text: str) -> List[Dict[str, Any]]:
    """
    Parses the 5-question quiz answer.

    Raises:
        LLMServiceError: No usable question could be read from the answer.
    """
    cleaned = _CODE_FENCE_RE.sub("", text or "").strip()
    match = _JSON_ARRAY_RE.search(cleaned)
    candidate = match.group(0) if match else cleaned

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise LLMServiceError(
            message="Failed to generate quiz questions",
            context={"reason": "unparseable response"},
        ) from e

    quiz = normalize_quiz(data)
    if not quiz:
        raise LLMServiceError(
            message="Failed to generate quiz questions",
            context={"reason": "no valid questions"},
        )
    return quiz
