"""
Quiz Engine
Answer capture: safe question views and attempt creation
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..database.models import Question, Quiz, QuizSubmission
from ..utils.helpers import Shuffler
from .submission_store import SubmissionRepository

logger = logging.getLogger(__name__)


def build_safe_question(question: Question) -> Dict[str, Any]:
    """Question payload with every correctness-revealing field removed"""
    safe = {
        "id": str(question.id),
        "type": question.question_type.value,
        "text": question.text,
        "points": question.points,
        "order": question.order_index,
        "hint": question.hint,
        "difficulty": question.difficulty,
        "is_required": question.is_required,
        "media": _media(question.media_url, question.media_type),
    }

    if question.question_type.is_choice:
        safe["options"] = [
            {"text": option.get("text"), "media": option.get("media")}
            for option in (question.options or [])
        ]

    return safe


def _media(url: Optional[str], media_type: Optional[str]) -> Optional[Dict[str, Any]]:
    if not url:
        return None
    return {"url": url, "type": media_type}


def initial_question_order(quiz: Quiz, shuffler: Shuffler) -> List[str]:
    """Order in which a new attempt serves its questions"""
    ids = [str(q.id) for q in quiz.questions]
    if quiz.shuffle_questions:
        ids = shuffler(ids)
    return ids


def ordered_questions(quiz: Quiz, submission: QuizSubmission, shuffler: Shuffler) -> List[Question]:
    """Questions in the order recorded on the attempt

    Questions missing from the recorded order keep their quiz order after the
    recorded ones; attempts without a recorded order fall back to quiz order,
    shuffled per call when the quiz asks for it.
    """
    questions = list(quiz.questions)
    order = submission.question_order or []

    if not order:
        return shuffler(questions) if quiz.shuffle_questions else questions

    position = {question_id: i for i, question_id in enumerate(order)}
    return sorted(questions, key=lambda q: (position.get(str(q.id), len(position)), q.order_index))


def prepare_attempt(
    quiz: Quiz,
    submission: QuizSubmission,
    shuffler: Shuffler
) -> Dict[str, Any]:
    """Payload handed to the student when an attempt starts or resumes"""
    return {
        "submission": {
            "id": str(submission.id),
            "started_at": submission.started_at.isoformat(),
            "attempt_number": submission.attempt_number,
        },
        "quiz": {
            "id": str(quiz.id),
            "title": quiz.title,
            "duration": quiz.duration_minutes,
            "total_points": quiz.total_points,
            "instructions": quiz.instructions,
        },
        "questions": [build_safe_question(q) for q in ordered_questions(quiz, submission, shuffler)],
    }


async def create_attempt(
    store: SubmissionRepository,
    quiz: Quiz,
    student_id: str,
    attempt_number: int,
    now: datetime,
    shuffler: Shuffler
) -> Tuple[QuizSubmission, bool]:
    """Create the live attempt row; returns (submission, created)"""
    submission, created = await store.create_in_progress(
        quiz_id=quiz.id,
        student_id=student_id,
        attempt_number=attempt_number,
        started_at=now,
        question_order=initial_question_order(quiz, shuffler)
    )
    if created:
        logger.info(f"Attempt {attempt_number} started: quiz {quiz.id} by student {student_id}")
    return submission, created


def safe_questions(questions: Sequence[Question]) -> List[Dict[str, Any]]:
    return [build_safe_question(q) for q in questions]


__all__ = [
    "build_safe_question",
    "initial_question_order",
    "ordered_questions",
    "prepare_attempt",
    "create_attempt",
    "safe_questions",
]
