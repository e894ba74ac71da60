from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

QUESTION_TYPE_MCQ = "mcq"


@dataclass(frozen=True)
class GradeResult:
    correct: int
    total: int
    percent: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def correct_choice_id(choices: Iterable[Any]) -> Optional[Any]:
    """
    Returns the id of the first choice flagged correct, or None.
    """
    for choice in choices:
        if choice.is_correct:
            return choice.id
    return None


def percent_of(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    # Round half up, not Python's banker's rounding
    return int(math.floor(100 * correct / total + 0.5))


def grade(
    questions: Iterable[Any],
    answers: Mapping[int, Any],
    choice_lookup: Callable[[int], Iterable[Any]],
) -> GradeResult:
    """
    Scores recorded answers against the answer key.

    Only questions of type "mcq" count towards the total. A question is
    correct when the recorded answer equals the id of its first correct
    choice; unanswered questions and questions without a correct choice
    score nothing. Pure: reads its inputs, writes nothing.
    """
    total = 0
    correct = 0
    for question in questions:
        if question.type != QUESTION_TYPE_MCQ:
            continue
        total += 1
        key = correct_choice_id(choice_lookup(question.id))
        if key is None or question.id not in answers:
            continue
        recorded = answers[question.id]
        # True == 1 in Python; a boolean is never a choice id
        if not isinstance(recorded, bool) and recorded == key:
            correct += 1

    return GradeResult(correct=correct, total=total, percent=percent_of(correct, total))
