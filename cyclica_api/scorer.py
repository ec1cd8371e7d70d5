"""LLM-based scoring of questionnaire answers against the question rubric."""

import json
import re
from dataclasses import dataclass
from typing import Any

import structlog

from cyclica_api.config import get_settings
from cyclica_api.prompts import GIBBERISH_REASONING, SCORING_PROMPT
from cyclica_api.questions import COMPANY_CONTEXT, get_question

logger = structlog.get_logger()

VALID_SCORES = (0, 1, 2)
NEUTRAL_SCORE = 1
NEUTRAL_REASONING = "Could not evaluate, assigned neutral score"

_CODE_FENCE = re.compile(r"```(?:json)?\n?|\n?```")


@dataclass(frozen=True)
class AnswerEvaluation:
    """Score (0-2) and the model's reasoning for one answer."""

    score: int
    reasoning: str


NEUTRAL_EVALUATION = AnswerEvaluation(score=NEUTRAL_SCORE, reasoning=NEUTRAL_REASONING)
INVALID_ANSWER_EVALUATION = AnswerEvaluation(score=0, reasoning=GIBBERISH_REASONING)


class ScoreParseError(ValueError):
    """Raised when the model output is not a valid evaluation object."""


def build_scoring_prompt(question_id: int, answer: str) -> str:
    """Format the scoring prompt for a question and candidate answer.

    Raises:
        KeyError: If the question id is unknown.
    """
    question = get_question(question_id)
    if question is None:
        raise KeyError(f"Unknown question id: {question_id}")

    return SCORING_PROMPT.format(
        company_context=COMPANY_CONTEXT,
        question=question.question,
        answer=answer,
        gibberish_reasoning=GIBBERISH_REASONING,
        rubric_0=question.rubric(0),
        rubric_1=question.rubric(1),
        rubric_2=question.rubric(2),
    )


def parse_evaluation(content: str) -> AnswerEvaluation:
    """Parse model output into an evaluation.

    Strips markdown code fences, then requires a JSON object with an integer
    ``score`` in {0, 1, 2} and a string ``reasoning``.

    Raises:
        ScoreParseError: If the output does not have that shape.
    """
    text = _CODE_FENCE.sub("", content.strip()).strip()
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ScoreParseError(f"Model output is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ScoreParseError("Model output is not a JSON object")

    score = data.get("score")
    reasoning = data.get("reasoning")
    # bool is an int subclass; True must not count as a score of 1
    if isinstance(score, bool) or not isinstance(score, (int, float)) or score not in VALID_SCORES:
        raise ScoreParseError(f"Invalid score: {score!r}")
    if not isinstance(reasoning, str):
        raise ScoreParseError("Missing reasoning")

    return AnswerEvaluation(score=int(score), reasoning=reasoning)


async def evaluate_answer(question_id: int, answer: str, llm_client) -> AnswerEvaluation:
    """Score an answer with the language model.

    Never raises: any client, parse, or shape failure yields the neutral
    evaluation so the questionnaire can always progress.

    Args:
        question_id: Id of the question being answered.
        answer: Candidate's free-text answer.
        llm_client: Client used for the chat completion.

    Returns:
        AnswerEvaluation with score 0-2 and reasoning.
    """
    settings = get_settings()
    try:
        prompt = build_scoring_prompt(question_id, answer)
        response = await llm_client.chat(
            messages=[{"role": "user", "content": prompt}],
            model=settings.scoring_model,
            temperature=settings.scoring_temperature,
            max_tokens=settings.scoring_max_tokens,
            purpose="scoring",
        )
        evaluation = parse_evaluation(response.content)
    except Exception as e:
        logger.warning(
            "Answer evaluation failed, assigning neutral score",
            question_id=question_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return NEUTRAL_EVALUATION

    logger.info("answer_scored", question_id=question_id, score=evaluation.score)
    return evaluation
