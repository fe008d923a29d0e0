"""
Quiz Engine
Quiz and submission repositories over an async SQLAlchemy session
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func, desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.models import (
    Answer, Question, Quiz, QuizStatus, QuizSubmission, SubmissionStatus
)
from ..exceptions import QuizNotFoundException, SubmissionNotFoundException
from .lifecycle import COMPLETED_SUBMISSION_STATUSES, transition_submission

logger = logging.getLogger(__name__)


class QuizRepository:
    """Read access to quiz definitions including answer keys"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, quiz_id: uuid.UUID) -> Optional[Quiz]:
        result = await self.db.execute(
            select(Quiz)
            .options(selectinload(Quiz.questions))
            .where(Quiz.id == quiz_id)
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, quiz_id: uuid.UUID) -> Quiz:
        quiz = await self.get(quiz_id)
        if not quiz:
            raise QuizNotFoundException(str(quiz_id))
        return quiz

    async def list(
        self,
        status: Optional[QuizStatus] = None,
        board: Optional[str] = None,
        level: Optional[str] = None,
        topic: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Quiz], int]:
        query = select(Quiz)

        if status:
            query = query.where(Quiz.status == status)
        if board:
            query = query.where(Quiz.board == board)
        if level:
            query = query.where(Quiz.level == level)
        if topic:
            query = query.where(func.lower(Quiz.topic).contains(topic.lower()))
        if search:
            term = search.lower()
            query = query.where(or_(
                func.lower(Quiz.title).contains(term),
                func.lower(Quiz.topic).contains(term),
                func.lower(Quiz.chapter).contains(term)
            ))

        total_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            query.options(selectinload(Quiz.questions))
            .order_by(desc(Quiz.created_at))
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    def questions_by_id(quiz: Quiz) -> Dict[uuid.UUID, Question]:
        return {q.id: q for q in quiz.questions}


class SubmissionRepository:
    """Read/write access to quiz attempts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_answers(self):
        return select(QuizSubmission).options(selectinload(QuizSubmission.answers))

    async def count_completed(self, quiz_id: uuid.UUID, student_id: str) -> int:
        result = await self.db.execute(
            select(func.count(QuizSubmission.id))
            .where(
                QuizSubmission.quiz_id == quiz_id,
                QuizSubmission.student_id == student_id,
                QuizSubmission.status.in_(list(COMPLETED_SUBMISSION_STATUSES))
            )
        )
        return result.scalar() or 0

    async def count_for_quiz(self, quiz_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(QuizSubmission.id)).where(QuizSubmission.quiz_id == quiz_id)
        )
        return result.scalar() or 0

    async def get_in_progress(self, quiz_id: uuid.UUID, student_id: str) -> Optional[QuizSubmission]:
        result = await self.db.execute(
            self._with_answers().where(
                QuizSubmission.quiz_id == quiz_id,
                QuizSubmission.student_id == student_id,
                QuizSubmission.status == SubmissionStatus.IN_PROGRESS
            )
        )
        return result.scalar_one_or_none()

    async def get(self, submission_id: uuid.UUID, for_update: bool = False) -> Optional[QuizSubmission]:
        query = self._with_answers().where(QuizSubmission.id == submission_id)
        if for_update:
            # Serializes concurrent essay grading on backends with row locks
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_404(self, submission_id: uuid.UUID, for_update: bool = False) -> QuizSubmission:
        submission = await self.get(submission_id, for_update=for_update)
        if not submission:
            raise SubmissionNotFoundException(str(submission_id))
        return submission

    async def list_for_quiz(
        self,
        quiz_id: uuid.UUID,
        student_id: Optional[str] = None,
        statuses: Optional[Iterable[SubmissionStatus]] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> Tuple[List[QuizSubmission], int]:
        query = select(QuizSubmission).where(QuizSubmission.quiz_id == quiz_id)

        if student_id:
            query = query.where(QuizSubmission.student_id == student_id)
        if statuses:
            query = query.where(QuizSubmission.status.in_(list(statuses)))

        total_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = total_result.scalar() or 0

        query = query.options(selectinload(QuizSubmission.answers)).order_by(
            desc(QuizSubmission.submitted_at), desc(QuizSubmission.started_at)
        ).offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create_in_progress(
        self,
        quiz_id: uuid.UUID,
        student_id: str,
        attempt_number: int,
        started_at: datetime,
        question_order: List[str]
    ) -> Tuple[QuizSubmission, bool]:
        """Insert a live attempt; returns (submission, created)

        When a concurrent request already inserted the live attempt for this
        quiz and student, that row is returned with created=False.
        """
        submission = QuizSubmission(
            id=uuid.uuid4(),
            quiz_id=quiz_id,
            student_id=student_id,
            attempt_number=attempt_number,
            status=SubmissionStatus.IN_PROGRESS,
            started_at=started_at,
            question_order=question_order,
            total_score=0.0,
            percentage=0,
            passed=False,
            answers=[]
        )
        self.db.add(submission)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_in_progress(quiz_id, student_id)
            if existing is None:
                raise
            logger.info(f"Concurrent start for quiz {quiz_id} by {student_id}; resuming {existing.id}")
            return existing, False

        return submission, True

    async def mark_expired(self, submission: QuizSubmission) -> QuizSubmission:
        transition_submission(submission, SubmissionStatus.EXPIRED)
        await self.db.commit()
        logger.warning(
            f"Attempt {submission.id} (quiz {submission.quiz_id}, student {submission.student_id}) expired"
        )
        return submission

    async def save(self, submission: QuizSubmission) -> QuizSubmission:
        self.db.add(submission)
        await self.db.commit()
        return submission

    @staticmethod
    def build_answer(submission: QuizSubmission, answer_order: int, **fields) -> Answer:
        return Answer(
            id=uuid.uuid4(),
            submission_id=submission.id,
            answer_order=answer_order,
            **fields
        )


__all__ = ["QuizRepository", "SubmissionRepository"]
