"""
Quiz Engine
Submission grading API routes
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.connection import get_db
from ..dependencies import (
    CurrentUser,
    require_authentication,
    require_teacher_or_admin,
    PermissionChecker,
    get_clock
)
from ..exceptions import AuthorizationException
from ..services.attempts import AttemptService, serialize_submission
from ..services.submission_store import QuizRepository, SubmissionRepository
from ..utils.helpers import Clock

# Configure logging
logger = logging.getLogger(__name__)

# Router instance
router = APIRouter()


# Pydantic models
class EssayGradeRequest(BaseModel):
    points_awarded: float = Field(..., ge=0)
    feedback: Optional[str] = None


# API Routes
@router.get("/{submission_id}")
async def get_submission(
    submission_id: uuid.UUID = Path(..., description="Submission ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Get a single submission"""

    submission = await SubmissionRepository(db).get_or_404(submission_id)
    quiz = await QuizRepository(db).get_or_404(submission.quiz_id)

    if current_user.is_student:
        if submission.student_id != current_user.id:
            raise AuthorizationException("Access denied to this submission")
        include_answers = quiz.show_results and quiz.show_correct_answers
        show_results = quiz.show_results
    else:
        PermissionChecker.ensure_can_modify_quiz(current_user, quiz)
        include_answers = True
        show_results = True

    return serialize_submission(submission, include_answers=include_answers, show_results=show_results)


@router.patch("/{submission_id}/answers/{answer_id}/grade")
async def grade_essay_answer(
    request: EssayGradeRequest,
    submission_id: uuid.UUID = Path(..., description="Submission ID"),
    answer_id: uuid.UUID = Path(..., description="Answer ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Grade an essay answer and re-aggregate the submission score"""

    submission = await SubmissionRepository(db).get_or_404(submission_id)
    quiz = await QuizRepository(db).get_or_404(submission.quiz_id)
    PermissionChecker.ensure_can_modify_quiz(current_user, quiz)

    submission = await AttemptService(db, clock=clock).grade_essay(
        submission_id,
        answer_id,
        request.points_awarded,
        request.feedback,
        current_user.id
    )

    return {
        "message": "Answer graded successfully",
        "submission": serialize_submission(submission)
    }


# Export router
__all__ = ["router"]
