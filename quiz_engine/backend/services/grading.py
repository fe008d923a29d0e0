"""
Quiz Engine
Automatic grading and score aggregation

``grade`` reads a submission, its quiz and the quiz's questions and returns a
``GradingResult`` without touching any of them. ``apply_grading`` writes a
result back onto the submission and performs the terminal-state transition.
Re-running ``grade`` after a grader scores an essay answer is the incremental
mode: auto-gradable answers are recomputed identically, manually awarded
points are carried over, and totals are rebuilt from the full answer set.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional

from ..database.models import (
    Answer, Question, QuestionType, Quiz, QuizSubmission, SubmissionStatus
)
from ..utils.helpers import percentage_of
from .lifecycle import transition_submission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerGrade:
    answer_id: Optional[uuid.UUID]
    question_id: uuid.UUID
    is_correct: Optional[bool]
    points_awarded: Optional[float]
    skipped: bool = False

    @property
    def pending(self) -> bool:
        return not self.skipped and self.points_awarded is None


@dataclass(frozen=True)
class GradingResult:
    answers: List[AnswerGrade] = field(default_factory=list)
    total_score: float = 0.0
    max_score: float = 0.0
    percentage: int = 0
    passed: bool = False

    @property
    def pending_count(self) -> int:
        return sum(1 for grade in self.answers if grade.pending)

    @property
    def fully_graded(self) -> bool:
        return self.pending_count == 0


# Per-type correctness checks; essay is graded by hand
def _grade_single_choice(question: Question, answer: Answer) -> bool:
    correct = question.correct_option_indices
    if not correct or answer.selected_option_index is None:
        return False
    return answer.selected_option_index == correct[0]


def _grade_multi_select(question: Question, answer: Answer) -> bool:
    correct = question.correct_option_indices
    selected = list(answer.selected_option_indices or [])
    return len(selected) == len(correct) and set(selected) == set(correct)


def _normalize_text(value: str) -> str:
    return value.strip().lower()


def _grade_text(question: Question, answer: Answer) -> bool:
    if answer.text_answer is None:
        return False
    accepted = {_normalize_text(a) for a in question.accepted_answers}
    return _normalize_text(answer.text_answer) in accepted


AUTO_GRADERS: Dict[QuestionType, Callable[[Question, Answer], bool]] = {
    QuestionType.MCQ: _grade_single_choice,
    QuestionType.TRUE_FALSE: _grade_single_choice,
    QuestionType.MULTI_SELECT: _grade_multi_select,
    QuestionType.SHORT_ANSWER: _grade_text,
    QuestionType.FILL_BLANK: _grade_text,
}

_ungraded_types = {t for t in QuestionType if t.is_auto_gradable} - set(AUTO_GRADERS)
if _ungraded_types:
    raise RuntimeError(f"No grader registered for: {sorted(t.value for t in _ungraded_types)}")


def grade_answer(question: Question, answer: Answer) -> AnswerGrade:
    """Grade a single answer against its question"""
    question_points = float(question.points or 0)

    if question.question_type is QuestionType.ESSAY:
        points = answer.points_awarded
        return AnswerGrade(
            answer_id=answer.id,
            question_id=answer.question_id,
            is_correct=None if points is None else question_points > 0 and points >= question_points,
            points_awarded=points,
        )

    is_correct = AUTO_GRADERS[question.question_type](question, answer)
    return AnswerGrade(
        answer_id=answer.id,
        question_id=answer.question_id,
        is_correct=is_correct,
        points_awarded=question_points if is_correct else 0.0,
    )


def grade(
    submission: QuizSubmission,
    quiz: Quiz,
    questions_by_id: Mapping[uuid.UUID, Question]
) -> GradingResult:
    """Grade every answer of a submission and aggregate the score"""
    grades: List[AnswerGrade] = []

    for answer in submission.answers:
        question = questions_by_id.get(answer.question_id)
        if question is None:
            logger.warning(
                f"Submission {submission.id}: answer references unknown question {answer.question_id}, skipping"
            )
            grades.append(AnswerGrade(
                answer_id=answer.id,
                question_id=answer.question_id,
                is_correct=answer.is_correct,
                points_awarded=answer.points_awarded,
                skipped=True,
            ))
            continue

        grades.append(grade_answer(question, answer))

    total_score = float(sum(g.points_awarded or 0 for g in grades if not g.skipped))
    max_score = float(submission.max_score if submission.max_score is not None else (quiz.total_points or 0))
    percentage = percentage_of(total_score, max_score)

    return GradingResult(
        answers=grades,
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
    )


def apply_grading(
    submission: QuizSubmission,
    result: GradingResult,
    now: datetime,
    graded_by_id: Optional[str] = None
) -> QuizSubmission:
    """Write a grading result onto the submission; finalize it when nothing is pending"""
    if len(result.answers) != len(submission.answers):
        raise ValueError("Grading result does not match the submission's answers")

    # result.answers is parallel to submission.answers
    for answer, answer_grade in zip(submission.answers, result.answers):
        if answer_grade.skipped:
            continue
        answer.is_correct = answer_grade.is_correct
        answer.points_awarded = answer_grade.points_awarded

    submission.total_score = result.total_score
    submission.max_score = result.max_score
    submission.percentage = result.percentage
    submission.passed = result.passed

    if result.fully_graded and submission.status == SubmissionStatus.SUBMITTED:
        transition_submission(submission, SubmissionStatus.GRADED)
        submission.graded_at = now
        if graded_by_id:
            submission.graded_by_id = graded_by_id
        logger.info(f"Submission {submission.id} graded: {result.total_score}/{result.max_score} ({result.percentage}%)")
    elif not result.fully_graded:
        logger.info(f"Submission {submission.id} awaiting manual grading for {result.pending_count} answer(s)")

    return submission


__all__ = [
    "AnswerGrade",
    "GradingResult",
    "AUTO_GRADERS",
    "grade_answer",
    "grade",
    "apply_grading",
]
