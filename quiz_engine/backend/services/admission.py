"""
Quiz Engine
Attempt admission control
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..database.models import Quiz, QuizSubmission
from ..exceptions import (
    AdmissionException,
    QuizNotAvailableException,
    QuizNotStartedException,
    QuizEndedException,
    MaxAttemptsExceededException
)
from ..utils.helpers import elapsed_minutes
from .submission_store import SubmissionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    """Either resume an existing live attempt or create attempt number N"""
    resume: Optional[QuizSubmission] = None
    attempt_number: Optional[int] = None
    attempts_used: int = 0

    @property
    def is_resume(self) -> bool:
        return self.resume is not None


def check_quiz_window(quiz: Quiz, now: datetime) -> None:
    """Raise unless the quiz is published and inside its scheduling window"""
    if not quiz.is_published:
        raise QuizNotAvailableException(str(quiz.id))

    if quiz.start_date and now < quiz.start_date:
        raise QuizNotStartedException(str(quiz.id), quiz.start_date)

    if quiz.end_date and now > quiz.end_date:
        raise QuizEndedException(str(quiz.id), quiz.end_date)


def is_attempt_stale(submission: QuizSubmission, quiz: Quiz, now: datetime, grace_minutes: float = 0) -> bool:
    return elapsed_minutes(submission.started_at, now) > quiz.duration_minutes + grace_minutes


async def admit(
    quiz: Quiz,
    student_id: str,
    store: SubmissionRepository,
    now: datetime
) -> AdmissionDecision:
    """Decide whether the student may resume or start an attempt

    The only write performed here is expiring a stale live attempt.
    """
    try:
        check_quiz_window(quiz, now)
    except AdmissionException as e:
        logger.warning(f"Admission refused for quiz {quiz.id}, student {student_id}: {e}")
        raise

    completed = await store.count_completed(quiz.id, student_id)
    if completed >= quiz.max_attempts:
        logger.warning(f"Admission refused for quiz {quiz.id}, student {student_id}: attempts exhausted")
        raise MaxAttemptsExceededException(str(quiz.id), quiz.max_attempts, completed)

    live = await store.get_in_progress(quiz.id, student_id)
    if live is not None:
        if is_attempt_stale(live, quiz, now):
            await store.mark_expired(live)
        else:
            return AdmissionDecision(resume=live, attempts_used=completed)

    return AdmissionDecision(attempt_number=completed + 1, attempts_used=completed)


__all__ = ["AdmissionDecision", "check_quiz_window", "is_attempt_stale", "admit"]
