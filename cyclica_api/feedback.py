"""Map a cumulative questionnaire score to a feedback band and message."""

from dataclasses import dataclass

_SPECULATIVE_DESIGN_NOTE = (
    "This company is the outcome of a speculative design process that explores how "
    "workplaces could be reimagined to better accommodate different bodily needs."
)


@dataclass(frozen=True)
class Feedback:
    """Feedback band label and its narrative message."""

    range: str
    message: str


@dataclass(frozen=True)
class _Band:
    upper: int | None  # inclusive; None means unbounded
    feedback: Feedback


FEEDBACK_BANDS: tuple[_Band, ...] = (
    _Band(
        upper=3,
        feedback=Feedback(
            range="0-3",
            message=(
                "Based on your responses, your current expectations around productivity, "
                "communication, and work structure appear to differ from Cyclica's approach "
                "to flexibility, body awareness, and cyclical work rhythms. This result does "
                "not reflect your professional value or capabilities, but rather a difference "
                "in how work, well-being, and autonomy are integrated into daily practices "
                f"within our culture. {_SPECULATIVE_DESIGN_NOTE}"
            ),
        ),
    ),
    _Band(
        upper=6,
        feedback=Feedback(
            range="4-6",
            message=(
                "Your answers indicate a partial alignment with Cyclica's values, with the "
                "potential to evolve through shared understanding and the right working "
                f"context. {_SPECULATIVE_DESIGN_NOTE}"
            ),
        ),
    ),
    _Band(
        upper=8,
        feedback=Feedback(
            range="7-8",
            message=(
                "Your responses demonstrate a solid awareness of personal rhythms, respect "
                "for colleagues' needs, and openness to flexible and asynchronous ways of "
                "working. This indicates a good alignment with Cyclica's culture and our "
                "belief that sustainable growth emerges from trust, autonomy, and "
                f"well-being. {_SPECULATIVE_DESIGN_NOTE}"
            ),
        ),
    ),
    _Band(
        upper=None,
        feedback=Feedback(
            range="9-10",
            message=(
                "Your answers strongly resonate with Cyclica's vision of work as a cyclical, "
                "human-centered system. You demonstrate a deep understanding of body "
                "awareness, empathy, flexibility, and long-term sustainability, values that "
                "are central to how we build teams, relationships, and growth together. "
                f"{_SPECULATIVE_DESIGN_NOTE}"
            ),
        ),
    ),
)


def generate_feedback(total_score: int) -> Feedback:
    """Return the feedback band containing ``total_score``."""
    for band in FEEDBACK_BANDS:
        if band.upper is not None and total_score <= band.upper:
            return band.feedback
    return FEEDBACK_BANDS[-1].feedback
