"""
Quiz Engine
Quiz-related API routes
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List, Union

from fastapi import APIRouter, Depends, Query, Path
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.connection import get_db
from ..database.models import Question, QuestionType, Quiz, QuizStatus, SubmissionStatus
from ..dependencies import (
    CurrentUser,
    require_authentication,
    require_student,
    require_teacher_or_admin,
    PermissionChecker,
    get_clock,
    get_shuffler
)
from ..exceptions import ValidationException
from ..services.admission import check_quiz_window
from ..services.answer_capture import safe_questions
from ..services.attempts import AttemptService, serialize_submission
from ..services.catalog import CatalogService
from ..services.submission_store import QuizRepository, SubmissionRepository
from ..utils.helpers import Clock, Shuffler, to_naive_utc
from ...config import get_settings

# Configure logging
logger = logging.getLogger(__name__)

# Router instance
router = APIRouter()

settings = get_settings()


# Pydantic models
class OptionPayload(BaseModel):
    text: str
    is_correct: bool = False
    media: Optional[Any] = None


class QuizFieldsMixin(BaseModel):
    @field_validator("start_date", "end_date", mode="after", check_fields=False)
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)

    @field_validator("title", check_fields=False)
    @classmethod
    def validate_title(cls, v):
        if v is None:
            return v
        if len(v.strip()) == 0:
            raise ValueError("Title is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_window(self):
        start, end = getattr(self, "start_date", None), getattr(self, "end_date", None)
        if start and end and end <= start:
            raise ValueError("end_date must be after start_date")
        return self


class QuizCreateRequest(QuizFieldsMixin):
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    board: Optional[str] = None
    level: Optional[str] = None
    topic: Optional[str] = None
    chapter: Optional[str] = None
    duration_minutes: int = Field(..., ge=1)
    passing_score: float = Field(settings.DEFAULT_PASSING_SCORE, ge=0, le=100)
    shuffle_questions: bool = False
    show_results: bool = True
    show_correct_answers: bool = False
    max_attempts: int = Field(settings.DEFAULT_MAX_ATTEMPTS, ge=1, le=settings.MAX_QUIZ_ATTEMPTS_LIMIT)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class QuizUpdateRequest(QuizFieldsMixin):
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    board: Optional[str] = None
    level: Optional[str] = None
    topic: Optional[str] = None
    chapter: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    passing_score: Optional[float] = Field(None, ge=0, le=100)
    shuffle_questions: Optional[bool] = None
    show_results: Optional[bool] = None
    show_correct_answers: Optional[bool] = None
    max_attempts: Optional[int] = Field(None, ge=1, le=settings.MAX_QUIZ_ATTEMPTS_LIMIT)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class QuestionFieldsMixin(BaseModel):
    @field_validator("text", check_fields=False)
    @classmethod
    def validate_text(cls, v):
        if v is None:
            return v
        if len(v.strip()) == 0:
            raise ValueError("Question text is required")
        return v.strip()


class QuestionCreateRequest(QuestionFieldsMixin):
    question_type: QuestionType
    text: str
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    options: Optional[List[OptionPayload]] = None
    correct_answer: Optional[Union[bool, str]] = None
    alternative_answers: List[str] = []
    points: float = Field(1.0, ge=0)
    explanation: Optional[str] = None
    hint: Optional[str] = None
    difficulty: Optional[str] = "medium"
    is_required: bool = True


class QuestionUpdateRequest(QuestionFieldsMixin):
    text: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    options: Optional[List[OptionPayload]] = None
    correct_answer: Optional[Union[bool, str]] = None
    alternative_answers: Optional[List[str]] = None
    points: Optional[float] = Field(None, ge=0)
    explanation: Optional[str] = None
    hint: Optional[str] = None
    difficulty: Optional[str] = None
    is_required: Optional[bool] = None


class AnswerSubmission(BaseModel):
    question_id: uuid.UUID
    selected_option_index: Optional[int] = Field(None, ge=0)
    selected_option_indices: Optional[List[int]] = None
    text_answer: Optional[str] = None

    @field_validator("selected_option_indices")
    @classmethod
    def validate_indices(cls, v):
        if v is not None and any(i < 0 for i in v):
            raise ValueError("Option indices must be non-negative")
        return v


class QuizSubmitRequest(BaseModel):
    answers: List[AnswerSubmission] = []


# Helper functions
def serialize_question(question: Question) -> Dict[str, Any]:
    """Full question definition, answer key included"""
    return {
        "id": str(question.id),
        "type": question.question_type.value,
        "text": question.text,
        "order": question.order_index,
        "media_url": question.media_url,
        "media_type": question.media_type,
        "options": question.options or [],
        "correct_answer": question.correct_answer,
        "alternative_answers": question.alternative_answers or [],
        "points": question.points,
        "explanation": question.explanation,
        "hint": question.hint,
        "difficulty": question.difficulty,
        "is_required": question.is_required,
    }


def serialize_quiz(quiz: Quiz, questions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    data = {
        "id": str(quiz.id),
        "title": quiz.title,
        "description": quiz.description,
        "instructions": quiz.instructions,
        "board": quiz.board,
        "level": quiz.level,
        "topic": quiz.topic,
        "chapter": quiz.chapter,
        "duration_minutes": quiz.duration_minutes,
        "total_points": quiz.total_points,
        "passing_score": quiz.passing_score,
        "shuffle_questions": quiz.shuffle_questions,
        "show_results": quiz.show_results,
        "show_correct_answers": quiz.show_correct_answers,
        "max_attempts": quiz.max_attempts,
        "start_date": quiz.start_date.isoformat() if quiz.start_date else None,
        "end_date": quiz.end_date.isoformat() if quiz.end_date else None,
        "status": quiz.status.value,
        "created_by_id": quiz.created_by_id,
        "question_count": len(quiz.questions),
    }
    if questions is not None:
        data["questions"] = questions
    return data


async def get_modifiable_quiz(quiz_id: uuid.UUID, current_user: CurrentUser, db: AsyncSession) -> Quiz:
    """Load a quiz the current user may author"""
    quiz = await QuizRepository(db).get_or_404(quiz_id)
    PermissionChecker.ensure_can_modify_quiz(current_user, quiz)
    return quiz


# API Routes
@router.get("/")
async def list_quizzes(
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    status: Optional[QuizStatus] = Query(None, description="Filter by publication state"),
    board: Optional[str] = Query(None, description="Filter by board"),
    level: Optional[str] = Query(None, description="Filter by level"),
    topic: Optional[str] = Query(None, description="Topic contains (case-insensitive)"),
    search: Optional[str] = Query(None, description="Search title, topic and chapter"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Number of records to return")
):
    """List quizzes based on user role and filters"""

    # Students only ever see published quizzes
    if current_user.is_student:
        status = QuizStatus.PUBLISHED

    quizzes, total = await QuizRepository(db).list(
        status=status, board=board, level=level, topic=topic, search=search, skip=skip, limit=limit
    )

    return {
        "quizzes": [serialize_quiz(quiz) for quiz in quizzes],
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.post("/", status_code=201)
async def create_quiz(
    request: QuizCreateRequest,
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a new quiz in draft state"""

    quiz = await CatalogService(db).create_quiz(request.model_dump(), current_user.id)

    return {
        "message": "Quiz created successfully",
        "quiz": serialize_quiz(quiz, questions=[])
    }


@router.get("/{quiz_id}")
async def get_quiz(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Get quiz details; non-authors receive the safe view"""

    quiz = await QuizRepository(db).get_or_404(quiz_id)

    if PermissionChecker.can_modify_quiz(current_user, quiz):
        return serialize_quiz(quiz, questions=[serialize_question(q) for q in quiz.questions])

    check_quiz_window(quiz, clock())
    return serialize_quiz(quiz, questions=safe_questions(quiz.questions))


@router.patch("/{quiz_id}")
async def update_quiz(
    request: QuizUpdateRequest,
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update quiz settings"""

    quiz = await get_modifiable_quiz(quiz_id, current_user, db)

    fields = request.model_dump(exclude_unset=True)
    start = fields.get("start_date", quiz.start_date)
    end = fields.get("end_date", quiz.end_date)
    if start and end and end <= start:
        raise ValidationException("end_date must be after start_date", field="end_date")

    quiz = await CatalogService(db).update_quiz(quiz_id, fields)

    return {
        "message": "Quiz updated successfully",
        "quiz": serialize_quiz(quiz)
    }


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete a quiz with its questions and submissions"""

    await get_modifiable_quiz(quiz_id, current_user, db)
    await CatalogService(db).delete_quiz(quiz_id)

    return {"message": "Quiz deleted successfully"}


@router.patch("/{quiz_id}/publish")
async def toggle_publish(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Publish or unpublish a quiz"""

    await get_modifiable_quiz(quiz_id, current_user, db)
    quiz = await CatalogService(db).toggle_publish(quiz_id)

    return {
        "message": f"Quiz {'published' if quiz.is_published else 'unpublished'} successfully",
        "quiz": serialize_quiz(quiz)
    }


@router.post("/{quiz_id}/questions", status_code=201)
async def add_question(
    request: QuestionCreateRequest,
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Append a question to a quiz"""

    await get_modifiable_quiz(quiz_id, current_user, db)
    question = await CatalogService(db).add_question(quiz_id, request.model_dump())

    return {
        "message": "Question added successfully",
        "question": serialize_question(question)
    }


@router.patch("/{quiz_id}/questions/{question_id}")
async def update_question(
    request: QuestionUpdateRequest,
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    question_id: uuid.UUID = Path(..., description="Question ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update a question"""

    await get_modifiable_quiz(quiz_id, current_user, db)
    question = await CatalogService(db).update_question(
        quiz_id, question_id, request.model_dump(exclude_unset=True)
    )

    return {
        "message": "Question updated successfully",
        "question": serialize_question(question)
    }


@router.delete("/{quiz_id}/questions/{question_id}")
async def delete_question(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    question_id: uuid.UUID = Path(..., description="Question ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Remove a question from a quiz"""

    await get_modifiable_quiz(quiz_id, current_user, db)
    await CatalogService(db).delete_question(quiz_id, question_id)

    return {"message": "Question deleted successfully"}


@router.post("/{quiz_id}/start")
async def start_quiz_attempt(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    shuffler: Shuffler = Depends(get_shuffler)
):
    """Start a new quiz attempt or resume the live one"""

    attempt = await AttemptService(db, clock=clock, shuffler=shuffler).start(quiz_id, current_user.id)

    return {
        "message": "Quiz attempt started successfully",
        **attempt
    }


@router.post("/{quiz_id}/submit")
async def submit_quiz(
    request: QuizSubmitRequest,
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Submit quiz answers"""

    result = await AttemptService(db, clock=clock).submit(
        quiz_id,
        current_user.id,
        [answer.model_dump() for answer in request.answers]
    )

    return {
        "message": "Quiz submitted successfully",
        **result
    }


@router.get("/{quiz_id}/results")
async def get_quiz_results(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Students see their own attempts; authors see every attempt"""

    quiz = await QuizRepository(db).get_or_404(quiz_id)

    if current_user.is_student:
        submissions = await AttemptService(db).results(quiz_id, student_id=current_user.id)
        include_answers = quiz.show_results and quiz.show_correct_answers
        show_results = quiz.show_results
    else:
        PermissionChecker.ensure_can_modify_quiz(current_user, quiz)
        submissions = await AttemptService(db).results(quiz_id)
        include_answers = True
        show_results = True

    return {
        "quiz_id": str(quiz.id),
        "submissions": [
            serialize_submission(s, include_answers=include_answers, show_results=show_results)
            for s in submissions
        ]
    }


@router.get("/{quiz_id}/submissions")
async def list_submissions(
    quiz_id: uuid.UUID = Path(..., description="Quiz ID"),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db),
    status: Optional[SubmissionStatus] = Query(None, description="Filter by submission status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Number of records to return")
):
    """List submissions for a quiz"""

    await get_modifiable_quiz(quiz_id, current_user, db)

    submissions, total = await SubmissionRepository(db).list_for_quiz(
        quiz_id,
        statuses=[status] if status else None,
        skip=skip,
        limit=limit
    )

    return {
        "submissions": [serialize_submission(s, include_answers=False) for s in submissions],
        "total": total,
        "skip": skip,
        "limit": limit
    }


# Export router
__all__ = ["router"]
