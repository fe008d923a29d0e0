"""
Quiz Engine
Start, submit and essay-grading operations
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ...config import get_settings
from ..database.models import Answer, QuestionType, QuizSubmission, SubmissionStatus
from ..exceptions import (
    AnswerNotFoundException,
    GradeSubmissionException,
    NoActiveAttemptException,
    TimeExpiredException,
    ValidationException,
    ValueRangeException
)
from ..utils.helpers import Clock, Shuffler, elapsed_minutes, utcnow, random_shuffle
from .admission import admit, is_attempt_stale
from .answer_capture import create_attempt, prepare_attempt
from .grading import apply_grading, grade
from .lifecycle import transition_submission
from .submission_store import QuizRepository, SubmissionRepository

logger = logging.getLogger(__name__)


def serialize_answer(answer: Answer) -> Dict[str, Any]:
    return {
        "id": str(answer.id),
        "question_id": str(answer.question_id),
        "selected_option_index": answer.selected_option_index,
        "selected_option_indices": answer.selected_option_indices,
        "text_answer": answer.text_answer,
        "is_correct": answer.is_correct,
        "points_awarded": answer.points_awarded,
        "feedback": answer.feedback,
    }


def serialize_submission(
    submission: QuizSubmission,
    include_answers: bool = True,
    show_results: bool = True
) -> Dict[str, Any]:
    """Submission view; with show_results off the grading state is left out"""
    data = {
        "id": str(submission.id),
        "quiz_id": str(submission.quiz_id),
        "student_id": submission.student_id,
        "attempt_number": submission.attempt_number,
        "status": submission.status.value,
        "started_at": submission.started_at.isoformat(),
        "submitted_at": submission.submitted_at.isoformat() if submission.submitted_at else None,
        "time_spent": submission.time_spent_seconds,
        "total_score": submission.total_score,
        "max_score": submission.max_score,
        "percentage": submission.percentage,
        "passed": submission.passed,
        "graded_by_id": submission.graded_by_id,
        "graded_at": submission.graded_at.isoformat() if submission.graded_at else None,
        "overall_feedback": submission.overall_feedback,
    }
    if include_answers:
        data["answers"] = [serialize_answer(a) for a in submission.answers]
    if not show_results:
        for key in ("status", "graded_by_id", "graded_at"):
            data.pop(key)
    return data


class AttemptService:
    """Quiz attempt lifecycle over the quiz and submission stores"""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        shuffler: Shuffler = random_shuffle
    ):
        self.db = db
        self.clock = clock
        self.shuffler = shuffler
        self.quizzes = QuizRepository(db)
        self.submissions = SubmissionRepository(db)
        self.settings = get_settings()

    async def start(self, quiz_id: uuid.UUID, student_id: str) -> Dict[str, Any]:
        """Admit the student and return the attempt with its safe questions"""
        now = self.clock()
        quiz = await self.quizzes.get_or_404(quiz_id)

        decision = await admit(quiz, student_id, self.submissions, now)

        if decision.is_resume:
            submission = decision.resume
            logger.info(f"Attempt {submission.id} resumed: quiz {quiz_id} by student {student_id}")
        else:
            submission, created = await create_attempt(
                self.submissions, quiz, student_id, decision.attempt_number, now, self.shuffler
            )
            if not created:
                # Losing the insert race rolled back the session and expired the loaded quiz
                quiz = await self.quizzes.get_or_404(quiz_id)

        return prepare_attempt(quiz, submission, self.shuffler)

    async def submit(
        self,
        quiz_id: uuid.UUID,
        student_id: str,
        answers: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Record the student's answers, auto-grade them and report the result"""
        now = self.clock()
        quiz = await self.quizzes.get_or_404(quiz_id)

        submission = await self.submissions.get_in_progress(quiz.id, student_id)
        if not submission:
            raise NoActiveAttemptException(str(quiz_id))

        grace = self.settings.SUBMISSION_GRACE_MINUTES
        if is_attempt_stale(submission, quiz, now, grace_minutes=grace):
            elapsed = elapsed_minutes(submission.started_at, now)
            await self.submissions.mark_expired(submission)
            raise TimeExpiredException(str(submission.id), elapsed, quiz.duration_minutes + grace)

        seen = set()
        for answer_data in answers:
            if answer_data["question_id"] in seen:
                raise ValidationException(
                    "Each question may be answered only once",
                    field="answers",
                    value=answer_data["question_id"]
                )
            seen.add(answer_data["question_id"])

        submission.answers = [
            SubmissionRepository.build_answer(
                submission,
                answer_order=i + 1,
                question_id=answer_data["question_id"],
                selected_option_index=answer_data.get("selected_option_index"),
                selected_option_indices=answer_data.get("selected_option_indices"),
                text_answer=answer_data.get("text_answer"),
            )
            for i, answer_data in enumerate(answers)
        ]
        submission.submitted_at = now
        submission.time_spent_seconds = round((now - submission.started_at).total_seconds())
        transition_submission(submission, SubmissionStatus.SUBMITTED)

        result = grade(submission, quiz, QuizRepository.questions_by_id(quiz))
        apply_grading(submission, result, now)
        await self.submissions.save(submission)

        logger.info(
            f"Quiz submitted: {quiz_id} by student {student_id} "
            f"({submission.total_score}/{submission.max_score}, {submission.status.value})"
        )

        response = {
            "submission_id": str(submission.id),
            "total_score": submission.total_score,
            "max_score": submission.max_score,
            "percentage": submission.percentage,
            "passed": submission.passed,
            "time_spent": submission.time_spent_seconds,
        }
        if quiz.show_results:
            response["status"] = submission.status.value
            if quiz.show_correct_answers:
                response["answers"] = [serialize_answer(a) for a in submission.answers]

        return response

    async def grade_essay(
        self,
        submission_id: uuid.UUID,
        answer_id: uuid.UUID,
        points_awarded: float,
        feedback: Optional[str],
        grader_id: str
    ) -> QuizSubmission:
        """Record a grader's score for one essay answer and re-aggregate"""
        now = self.clock()

        # Re-read the current answer rows so concurrent graders merge
        submission = await self.submissions.get_or_404(submission_id, for_update=True)
        answer = submission.answer_by_id(answer_id)
        if answer is None:
            raise AnswerNotFoundException(str(answer_id))

        if submission.status not in (SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED):
            raise GradeSubmissionException(
                f"submission is {submission.status.value}", str(submission_id)
            )

        quiz = await self.quizzes.get_or_404(submission.quiz_id)
        questions_by_id = QuizRepository.questions_by_id(quiz)
        question = questions_by_id.get(answer.question_id)
        if question is None or question.question_type is not QuestionType.ESSAY:
            raise GradeSubmissionException("only essay answers are graded manually", str(submission_id))

        if points_awarded < 0 or points_awarded > question.points:
            raise ValueRangeException("points_awarded", points_awarded, 0, question.points)

        answer.points_awarded = float(points_awarded)
        answer.feedback = feedback

        result = grade(submission, quiz, questions_by_id)
        apply_grading(submission, result, now, graded_by_id=grader_id)
        await self.submissions.save(submission)

        logger.info(
            f"Essay answer {answer_id} on submission {submission_id} graded by {grader_id}: "
            f"{points_awarded}/{question.points}"
        )
        return submission

    async def results(self, quiz_id: uuid.UUID, student_id: Optional[str] = None) -> List[QuizSubmission]:
        quiz = await self.quizzes.get_or_404(quiz_id)
        submissions, _ = await self.submissions.list_for_quiz(quiz.id, student_id=student_id)
        return submissions


__all__ = ["AttemptService", "serialize_answer", "serialize_submission"]
