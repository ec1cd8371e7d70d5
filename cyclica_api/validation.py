"""Local heuristics that reject degenerate questionnaire answers."""

import re

MIN_ANSWER_LENGTH = 10
MIN_TOKENS_FOR_DIVERSITY_CHECK = 5
MIN_DISTINCT_TOKEN_RATIO = 0.3

# Same character three or more times in a row ("aaa", "!!!!")
_REPEATED_CHARACTER = re.compile(r"(.)\1{2,}", re.DOTALL)


def is_valid_answer(text: str) -> bool:
    """Return False for placeholder-like answers.

    An answer is rejected when it repeats a character 3+ times in a row, is
    shorter than 10 characters once trimmed, or has more than 5 words with
    fewer than 30% of them distinct.
    """
    if _REPEATED_CHARACTER.search(text):
        return False

    if len(text.strip()) < MIN_ANSWER_LENGTH:
        return False

    words = text.lower().split()
    if (
        len(words) > MIN_TOKENS_FOR_DIVERSITY_CHECK
        and len(set(words)) < len(words) * MIN_DISTINCT_TOKEN_RATIO
    ):
        return False

    return True
