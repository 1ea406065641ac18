"""Feedback and question generation with a fake text generator bound in the registry."""
from __future__ import annotations

import json

import pytest

from llm_gateway import LlmGatewayError
from services.feedback import FEEDBACK_COLLECTION, generate_feedback, load_records
from services.questions import QUESTIONS_COLLECTION, QuestionRequest, generate_question
from services.difficulty import INSTRUCTIONS
from services.runtime import get_runtime
from services.types import DetailedAnalysis, FeedbackRecord
from config.registry import TEXT_GEN_KEY, bind_model


EVALUATION = {
    "overallScore": 82,
    "categories": {"content": 80, "delivery": 85, "structure": 78, "confidence": 84},
    "strengths": ["Clear examples"],
    "improvements": ["structure"],
}


def test_generate_feedback_records_model_evaluation(fake_text_gen):
    fake_text_gen.replies.append("Here is my evaluation:\n" + json.dumps(EVALUATION) + "\nThanks!")
    runtime = get_runtime()

    record, used_fallback = generate_feedback(runtime, "s1", "q1", "I built a queue...")

    assert used_fallback is False
    assert record.overall_score == 82
    assert record.categories["delivery"] == 85
    assert fake_text_gen.calls[0]["temperature"] == 0.3
    assert fake_text_gen.calls[0]["max_tokens"] == 800
    assert "I built a queue..." in fake_text_gen.calls[0]["prompt"]

    stored = runtime.gateway.get(FEEDBACK_COLLECTION, "s1_q1")
    assert stored["overall_score"] == 82
    assert [r.question_id for r in load_records(runtime, "s1")] == ["q1"]
    assert any(row["operation"] == "generate_feedback" for row in runtime.perf.latest(5))


@pytest.mark.parametrize(
    "reply",
    ["I cannot produce JSON today.", '{"overallScore": 140}', '{"overallScore": 70'],
)
def test_generate_feedback_falls_back(fake_text_gen, reply):
    fake_text_gen.replies.append(reply)

    record, used_fallback = generate_feedback(get_runtime(), "s1", "q1", "answer")

    assert used_fallback is True
    assert record.overall_score == 75
    assert record.categories == {"content": 75, "delivery": 75, "structure": 75, "confidence": 75}
    assert record.strengths == ["Good response structure"]
    assert record.improvements == ["Could be more detailed"]


def test_generate_feedback_propagates_gateway_errors():
    def broken(prompt, **_):
        raise LlmGatewayError("LLM transport failed")

    bind_model(TEXT_GEN_KEY, broken)
    runtime = get_runtime()
    with pytest.raises(LlmGatewayError):
        generate_feedback(runtime, "s1", "q1", "answer")
    assert runtime.gateway.get(FEEDBACK_COLLECTION, "s1_q1") is None
    assert any(row["operation"] == "generate_feedback_error" for row in runtime.perf.latest(5))


def test_generate_question_adaptive_prompt_and_storage(fake_text_gen):
    fake_text_gen.replies.append(
        json.dumps(
            {
                "text": "Design a rate limiter.",
                "category": "system design",
                "difficulty": "hard",
                "timeLimit": 300,
                "followUpQuestions": ["How would you shard it?"],
                "expectedKeywords": ["token bucket"],
                "evaluationCriteria": ["trade-offs"],
                "adaptiveReasoning": "Strong recent answers",
            }
        )
    )
    feedback = [
        FeedbackRecord(session_id="s1", question_id=f"q{i}", overall_score=score)
        for i, score in enumerate([40, 85, 90, 95])
    ]
    request = QuestionRequest(
        job_role="Backend Engineer",
        previous_questions=["Explain REST."],
        recent_feedback=feedback,
        adaptive_mode=True,
    )
    runtime = get_runtime()

    question, signal = generate_question(runtime, request)

    assert question.text == "Design a rate limiter."
    assert question.time_limit == 300
    assert question.follow_up_questions == ["How would you shard it?"]
    assert signal is not None and signal.band == "high"
    prompt = fake_text_gen.calls[0]["prompt"]
    assert INSTRUCTIONS["high"] in prompt
    assert "Explain REST." in prompt
    assert fake_text_gen.calls[0]["temperature"] == 0.7

    stored = runtime.gateway.query_all(QUESTIONS_COLLECTION)
    assert len(stored) == 1
    assert stored[0]["metadata"]["job_role"] == "Backend Engineer"
    assert stored[0]["metadata"]["previous_questions"] == 1


def test_generate_question_fallback_uses_raw_text(fake_text_gen):
    fake_text_gen.replies.append("  Tell me about a time you disagreed with a teammate.  ")
    request = QuestionRequest(category="behavioral", difficulty="easy")

    question, signal = generate_question(get_runtime(), request)

    assert signal is None
    assert question.text == "Tell me about a time you disagreed with a teammate."
    assert question.category == "behavioral"
    assert question.difficulty == "easy"
    assert question.time_limit == 120
    assert "Recent average score" not in fake_text_gen.calls[0]["prompt"]


def test_generate_feedback_keeps_detailed_analysis(fake_text_gen):
    analysis = {"keywordUsage": {"queue": 2}, "sentiment": "positive", "complexity": "complex", "length": "too_long"}
    fake_text_gen.replies.append(json.dumps({**EVALUATION, "detailedAnalysis": analysis}))
    runtime = get_runtime()
    response = "I built a queue and then a second queue."

    record, _ = generate_feedback(runtime, "s1", "q1", response)

    assert record.detailed_analysis.keyword_usage == {"queue": 2}
    assert record.detailed_analysis.sentiment == "positive"
    assert record.response_length == len(response)
    assert "detailedAnalysis" in fake_text_gen.calls[0]["prompt"]

    stored = load_records(runtime, "s1")[0]
    assert stored.detailed_analysis == record.detailed_analysis
    assert stored.response_length == len(response)


def test_fallback_carries_neutral_analysis(fake_text_gen):
    fake_text_gen.replies.append("no json here")

    record, used_fallback = generate_feedback(get_runtime(), "s1", "q1", "short")

    assert used_fallback is True
    assert record.detailed_analysis == DetailedAnalysis()
    assert (record.detailed_analysis.sentiment, record.detailed_analysis.length) == ("neutral", "appropriate")
    assert record.response_length == 5
