"""Adaptive interview question generation."""
from __future__ import annotations

import time
import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from llm_gateway import parse_or_fallback
from observability.tracing import timed
from storage.document_store import WriteOp

from .difficulty import DifficultySignal, select_instruction
from .runtime import Runtime
from .types import FeedbackRecord, GeneratedQuestion

QUESTIONS_COLLECTION = "generated_questions"


class QuestionRequest(BaseModel):
    job_role: str = "Software Engineer"
    experience: str = "mid"
    difficulty: str = "medium"
    category: str = "technical"
    previous_questions: List[str] = Field(default_factory=list)
    recent_feedback: List[FeedbackRecord] = Field(default_factory=list)
    adaptive_mode: bool = False


class _ModelQuestion(BaseModel):
    # Shape requested from the model; camelCase keys as written in the prompt.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str
    category: Optional[str] = None
    difficulty: Optional[str] = None
    time_limit: int = Field(default=120, alias="timeLimit", gt=0)
    follow_up_questions: List[str] = Field(default_factory=list, alias="followUpQuestions")
    expected_keywords: List[str] = Field(default_factory=list, alias="expectedKeywords")
    evaluation_criteria: List[str] = Field(default_factory=list, alias="evaluationCriteria")
    adaptive_reasoning: Optional[str] = Field(default=None, alias="adaptiveReasoning")


def build_prompt(request: QuestionRequest, signal: Optional[DifficultySignal]) -> str:
    lines = [
        f"Generate a {request.difficulty} interview question for a {request.experience} level "
        f"{request.job_role} position in the {request.category} category."
    ]
    if signal is not None:
        lines.append(
            f"Recent average score: {signal.average_score:.0f} over {signal.window} answers. "
            f"Generate a question that {signal.instruction}."
        )
    if request.previous_questions:
        lines.append("Previous questions asked: " + ", ".join(request.previous_questions))
        lines.append("Ensure this question is different and covers a new aspect.")
    lines.append(
        'Reply with one JSON object with keys "text", "category", "difficulty", "timeLimit", '
        '"followUpQuestions", "expectedKeywords", "evaluationCriteria", "adaptiveReasoning".'
    )
    return "\n\n".join(lines)


def generate_question(runtime: Runtime, request: QuestionRequest) -> tuple[GeneratedQuestion, Optional[DifficultySignal]]:
    """Ask the text generator for the next question and store it.

    In adaptive mode the recent feedback window steers difficulty. Output
    without a usable JSON object becomes the question text verbatim.
    """

    signal = None
    if request.adaptive_mode and request.recent_feedback:
        signal = select_instruction(request.recent_feedback, runtime.settings.ADAPTIVE_WINDOW)

    def fallback(text: str) -> _ModelQuestion:
        return _ModelQuestion(text=text.strip())

    generate = runtime.text_generator()
    with timed("generate_question", "-", band=signal.band if signal else None):
        raw = generate(build_prompt(request, signal), temperature=0.7, max_tokens=500)
        parsed, _ = parse_or_fallback(raw, _ModelQuestion, fallback, context="question")
        question = GeneratedQuestion(
            text=parsed.text,
            category=parsed.category or request.category,
            difficulty=parsed.difficulty or request.difficulty,
            time_limit=parsed.time_limit,
            follow_up_questions=parsed.follow_up_questions,
            expected_keywords=parsed.expected_keywords,
            evaluation_criteria=parsed.evaluation_criteria,
            adaptive_reasoning=parsed.adaptive_reasoning,
        )
        runtime.gateway.batch_write(
            [
                WriteOp(
                    type="create",
                    collection=QUESTIONS_COLLECTION,
                    doc_id=uuid.uuid4().hex,
                    data={
                        **question.model_dump(),
                        "metadata": {
                            "job_role": request.job_role,
                            "experience": request.experience,
                            "difficulty": request.difficulty,
                            "category": request.category,
                            "adaptive_mode": request.adaptive_mode,
                            "timestamp": time.time(),
                            "previous_questions": len(request.previous_questions),
                        },
                    },
                )
            ]
        )
    return question, signal


__all__ = ["QUESTIONS_COLLECTION", "QuestionRequest", "build_prompt", "generate_question"]
