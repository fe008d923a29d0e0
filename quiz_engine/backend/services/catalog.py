"""
Quiz Engine
Quiz and question authoring
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import Question, QuestionType, Quiz, QuizStatus
from ..exceptions import (
    QuestionDefinitionException,
    QuestionNotFoundException,
    QuizLockedException,
    QuizPublishException
)
from .lifecycle import transition_quiz
from .submission_store import QuizRepository, SubmissionRepository

logger = logging.getLogger(__name__)

# Fields that stay editable after students have submitted
POST_SUBMISSION_EDITABLE_FIELDS = frozenset({"title", "description", "instructions", "end_date"})


def _parse_true_false(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def normalize_question_definition(
    question_type: QuestionType,
    options: Optional[List[Dict[str, Any]]],
    correct_answer: Optional[Any]
) -> Dict[str, Any]:
    """Validate a question against its type's rules and return normalized fields"""
    normalized_options = [
        {
            "text": option.get("text"),
            "is_correct": bool(option.get("is_correct", False)),
            "media": option.get("media"),
        }
        for option in (options or [])
    ]

    if question_type is QuestionType.TRUE_FALSE:
        answer = _parse_true_false(correct_answer)
        if answer is not None:
            normalized_options = [
                {"text": "True", "is_correct": answer, "media": None},
                {"text": "False", "is_correct": not answer, "media": None},
            ]
            correct_answer = "true" if answer else "false"
        elif len(normalized_options) != 2:
            raise QuestionDefinitionException(
                "True/false questions need a true/false correct answer or exactly 2 options",
                question_type.value
            )

    if question_type.is_choice:
        if len(normalized_options) < 2:
            raise QuestionDefinitionException(
                "Multiple choice questions must have at least 2 options", question_type.value
            )
        if any(not (option["text"] or "").strip() for option in normalized_options):
            raise QuestionDefinitionException("Options must have text", question_type.value)

        correct_count = sum(1 for option in normalized_options if option["is_correct"])
        if correct_count == 0:
            raise QuestionDefinitionException(
                "At least one option must be marked as correct", question_type.value
            )
        if question_type in (QuestionType.MCQ, QuestionType.TRUE_FALSE) and correct_count > 1:
            raise QuestionDefinitionException(
                "Single choice questions can only have one correct answer. "
                "Use multi_select for multiple correct answers",
                question_type.value
            )
        if question_type is QuestionType.TRUE_FALSE:
            correct_answer = "true" if normalized_options[0]["is_correct"] else "false"
        else:
            correct_answer = None

    elif question_type.is_text:
        if correct_answer is None or not str(correct_answer).strip():
            raise QuestionDefinitionException(
                "Short answer and fill-in-the-blank questions require a correct answer",
                question_type.value
            )
        normalized_options = []
        correct_answer = str(correct_answer)

    else:
        normalized_options = []
        correct_answer = None

    return {"options": normalized_options, "correct_answer": correct_answer}


class CatalogService:
    """Authoring operations for quizzes and their questions"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.quizzes = QuizRepository(db)
        self.submissions = SubmissionRepository(db)

    async def _ensure_structure_unlocked(self, quiz: Quiz) -> None:
        if await self.submissions.count_for_quiz(quiz.id) > 0:
            raise QuizLockedException(str(quiz.id))

    async def create_quiz(self, fields: Dict[str, Any], author_id: str) -> Quiz:
        quiz = Quiz(
            id=uuid.uuid4(),
            status=QuizStatus.DRAFT,
            total_points=0.0,
            created_by_id=author_id,
            questions=[],
            **fields
        )
        self.db.add(quiz)
        await self.db.commit()

        logger.info(f"Quiz '{quiz.title}' created by {author_id}")
        return await self.quizzes.get_or_404(quiz.id)

    async def update_quiz(self, quiz_id: uuid.UUID, fields: Dict[str, Any]) -> Quiz:
        quiz = await self.quizzes.get_or_404(quiz_id)

        changed = {key for key, value in fields.items() if getattr(quiz, key) != value}
        if quiz.is_published and changed - POST_SUBMISSION_EDITABLE_FIELDS:
            await self._ensure_structure_unlocked(quiz)

        for key, value in fields.items():
            setattr(quiz, key, value)

        await self.db.commit()
        logger.info(f"Quiz {quiz_id} updated: {sorted(changed)}")
        return quiz

    async def delete_quiz(self, quiz_id: uuid.UUID) -> None:
        quiz = await self.quizzes.get_or_404(quiz_id)
        submission_count = await self.submissions.count_for_quiz(quiz_id)

        # Questions, submissions and their answers go with the quiz
        await self.db.delete(quiz)
        await self.db.commit()
        logger.info(f"Quiz {quiz_id} deleted with {submission_count} submission(s)")

    async def toggle_publish(self, quiz_id: uuid.UUID) -> Quiz:
        quiz = await self.quizzes.get_or_404(quiz_id)

        if not quiz.is_published and not quiz.questions:
            raise QuizPublishException("Cannot publish quiz without questions", str(quiz.id))

        quiz.calculate_total_points()
        target = QuizStatus.UNPUBLISHED if quiz.is_published else QuizStatus.PUBLISHED
        transition_quiz(quiz, target)
        await self.db.commit()

        logger.info(f"Quiz {quiz_id} is now {quiz.status.value} ({quiz.total_points} points)")
        return quiz

    async def add_question(self, quiz_id: uuid.UUID, fields: Dict[str, Any]) -> Question:
        quiz = await self.quizzes.get_or_404(quiz_id)
        await self._ensure_structure_unlocked(quiz)

        fields = dict(fields)
        question_type = fields.pop("question_type")
        fields.update(normalize_question_definition(
            question_type, fields.pop("options", None), fields.pop("correct_answer", None)
        ))

        next_order = max((q.order_index for q in quiz.questions), default=-1) + 1
        question = Question(
            id=uuid.uuid4(),
            quiz_id=quiz.id,
            order_index=next_order,
            question_type=question_type,
            **fields
        )
        quiz.questions.append(question)
        quiz.calculate_total_points()
        await self.db.commit()

        logger.info(f"Question {question.id} ({question_type.value}) added to quiz {quiz_id}")
        return question

    async def update_question(
        self,
        quiz_id: uuid.UUID,
        question_id: uuid.UUID,
        fields: Dict[str, Any]
    ) -> Question:
        quiz = await self.quizzes.get_or_404(quiz_id)
        question = QuizRepository.questions_by_id(quiz).get(question_id)
        if not question:
            raise QuestionNotFoundException(str(question_id))
        await self._ensure_structure_unlocked(quiz)

        fields = dict(fields)
        options_supplied = "options" in fields
        options = fields.pop("options") if options_supplied else question.options
        if "correct_answer" in fields:
            correct_answer = fields.pop("correct_answer")
        elif options_supplied and question.question_type is QuestionType.TRUE_FALSE:
            # New true/false options carry the answer themselves
            correct_answer = None
        else:
            correct_answer = question.correct_answer
        fields.update(normalize_question_definition(question.question_type, options, correct_answer))

        for key, value in fields.items():
            setattr(question, key, value)

        quiz.calculate_total_points()
        await self.db.commit()
        return question

    async def delete_question(self, quiz_id: uuid.UUID, question_id: uuid.UUID) -> None:
        quiz = await self.quizzes.get_or_404(quiz_id)
        question = QuizRepository.questions_by_id(quiz).get(question_id)
        if not question:
            raise QuestionNotFoundException(str(question_id))
        await self._ensure_structure_unlocked(quiz)

        if quiz.is_published and len(quiz.questions) == 1:
            raise QuizPublishException("Cannot remove the last question of a published quiz", str(quiz.id))

        quiz.questions.remove(question)
        quiz.calculate_total_points()
        await self.db.commit()
        logger.info(f"Question {question_id} removed from quiz {quiz_id}")


__all__ = [
    "POST_SUBMISSION_EDITABLE_FIELDS",
    "normalize_question_definition",
    "CatalogService",
]
