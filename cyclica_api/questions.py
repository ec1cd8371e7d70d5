"""Static question bank and company context for the cultural fit questionnaire."""

from dataclasses import dataclass

COMPANY_CONTEXT = """Cyclica: Rhythm that makes you grow.

We are an HR System company that believes in flexibility, automation, and humanity in the workplace.

Our Core Values:
- Empowering the workforce to drive organizational growth: We believe that recognizing and embracing our body's needs is essential for moving forward and reaching greater goals together. By acknowledging the organic and cyclical nature of our bodies, we transform our perspective on workplace productivity.
- Boosting economy by embracing natural cycles: Good professional relationships are built on trust and respect. By allowing employees to manage their work and personal needs more flexibly, we help organizations achieve their business goals while also improving people's well-being.

Our Office Culture:
- Heating pads available for menstrual discomfort or any other discomfort
- Period products in all restrooms for safety and comfort
- Comfort snacks, hot tea available for relaxation and refocus
- Well-being room with low stimulation for focused work when energy is low
- Flexible work arrangements based on how you feel: office, well-being room, home, or day off"""


@dataclass(frozen=True)
class Question:
    """A questionnaire item with its 0/1/2 scoring rubric."""

    id: int
    question: str
    evaluation_guide: tuple[str, str, str]

    def rubric(self, score: int) -> str:
        """Rubric description for a score of 0, 1, or 2."""
        return self.evaluation_guide[score]


QUESTIONS: tuple[Question, ...] = (
    Question(
        id=1,
        question="How do you adapt your tasks or expectations if your energy levels affect how you work?",
        evaluation_guide=(
            "Denies or ignores bodily impact on work",
            "Acknowledges impact but shows limited or reactive adaptation",
            "Clearly recognizes bodily signals and adapts work in a thoughtful, responsible way",
        ),
    ),
    Question(
        id=2,
        question="What kind of work environment helps you grow sustainably over time?",
        evaluation_guide=(
            "Growth linked mainly to pressure or constant performance",
            "Mentions balance without deeper reflection",
            "Emphasizes sustainability, rhythm, learning, and collective well-being",
        ),
    ),
    Question(
        id=3,
        question="What does productivity mean to you beyond delivering tasks on time?",
        evaluation_guide=(
            "Productivity defined only by output, speed, or hours worked",
            "Mentions quality or efficiency but remains task-focused",
            "Includes well-being, sustainability, long-term impact, or collective results",
        ),
    ),
    Question(
        id=4,
        question="In your opinion, what makes a workplace feel safe for people to express their needs?",
        evaluation_guide=(
            "Places responsibility only on individuals",
            "Mentions leadership or policies without cultural depth",
            "Recognizes trust, openness, listening, and shared cultural practices",
        ),
    ),
    Question(
        id=5,
        question="How do you feel working in an environment where flexibility and autonomy are encouraged?",
        evaluation_guide=(
            "Strong resistance to flexibility or need for constant supervision",
            "Accepts flexibility with reservations or difficulty",
            "Demonstrates comfort, responsibility, and clear communication habits",
        ),
    ),
)

TOTAL_QUESTIONS = len(QUESTIONS)
MAX_SCORE_PER_QUESTION = 2
MAX_TOTAL_SCORE = TOTAL_QUESTIONS * MAX_SCORE_PER_QUESTION

_QUESTIONS_BY_ID = {q.id: q for q in QUESTIONS}


def get_question(question_id: int) -> Question | None:
    """Look up a question by id, returning None for unknown ids."""
    return _QUESTIONS_BY_ID.get(question_id)
