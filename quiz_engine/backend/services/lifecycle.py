"""
Quiz Engine
Quiz publication and submission lifecycle transitions
"""

import logging
from typing import Dict, FrozenSet

from ..database.models import Quiz, QuizStatus, QuizSubmission, SubmissionStatus
from ..exceptions import InvalidStatusTransitionException

logger = logging.getLogger(__name__)


SUBMISSION_TRANSITIONS: Dict[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    SubmissionStatus.IN_PROGRESS: frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.EXPIRED}),
    SubmissionStatus.SUBMITTED: frozenset({SubmissionStatus.GRADED}),
    SubmissionStatus.GRADED: frozenset(),
    SubmissionStatus.EXPIRED: frozenset(),
}

QUIZ_TRANSITIONS: Dict[QuizStatus, FrozenSet[QuizStatus]] = {
    QuizStatus.DRAFT: frozenset({QuizStatus.PUBLISHED}),
    QuizStatus.PUBLISHED: frozenset({QuizStatus.UNPUBLISHED}),
    QuizStatus.UNPUBLISHED: frozenset({QuizStatus.PUBLISHED}),
}

TERMINAL_SUBMISSION_STATUSES = frozenset(
    status for status, targets in SUBMISSION_TRANSITIONS.items() if not targets
)
COMPLETED_SUBMISSION_STATUSES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED})


def can_transition_submission(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in SUBMISSION_TRANSITIONS[current]


def transition_submission(submission: QuizSubmission, target: SubmissionStatus) -> QuizSubmission:
    """Move a submission to target status or raise"""
    current = submission.status
    if not can_transition_submission(current, target):
        raise InvalidStatusTransitionException("submission", current.value, target.value)

    submission.status = target
    logger.debug(f"Submission {submission.id}: {current.value} -> {target.value}")
    return submission


def transition_quiz(quiz: Quiz, target: QuizStatus) -> Quiz:
    """Move a quiz to target publication state or raise"""
    current = quiz.status
    if target not in QUIZ_TRANSITIONS[current]:
        raise InvalidStatusTransitionException("quiz", current.value, target.value)

    quiz.status = target
    return quiz


__all__ = [
    "SUBMISSION_TRANSITIONS",
    "QUIZ_TRANSITIONS",
    "TERMINAL_SUBMISSION_STATUSES",
    "COMPLETED_SUBMISSION_STATUSES",
    "can_transition_submission",
    "transition_submission",
    "transition_quiz",
]
