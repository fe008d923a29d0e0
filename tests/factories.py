"""Builders for quizzes, questions and submissions used across the test suite"""

import uuid
from datetime import datetime, timedelta

from quiz_engine.backend.database.models import (
    Answer, Question, QuestionType, Quiz, QuizStatus, QuizSubmission, SubmissionStatus
)
from quiz_engine.backend.services.submission_store import QuizRepository


# Identity headers as set by the upstream gateway
STUDENT = {"X-User-Id": "student-1", "X-User-Role": "student"}
OTHER_STUDENT = {"X-User-Id": "student-2", "X-User-Role": "student"}
TEACHER = {"X-User-Id": "teacher-1", "X-User-Role": "teacher"}
OTHER_TEACHER = {"X-User-Id": "teacher-2", "X-User-Role": "teacher"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


class FixedClock:
    """Clock frozen at a given instant until advanced"""

    def __init__(self, now: datetime = datetime(2024, 3, 1, 9, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now


def reverse_shuffle(items):
    return list(reversed(list(items)))


def _options(texts, correct):
    return [{"text": text, "is_correct": i in correct, "media": None} for i, text in enumerate(texts)]


def mcq(correct=1, points=1.0, text="Which gas do plants absorb?"):
    return {
        "question_type": QuestionType.MCQ,
        "text": text,
        "options": _options(["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"], {correct}),
        "points": points,
    }


def multi_select(correct=(0, 2), points=2.0):
    return {
        "question_type": QuestionType.MULTI_SELECT,
        "text": "Which of these are primary colours?",
        "options": _options(["Red", "Green", "Blue", "Purple"], set(correct)),
        "points": points,
    }


def true_false(answer=True, points=1.0):
    return {
        "question_type": QuestionType.TRUE_FALSE,
        "text": "Water boils at 100 degrees Celsius at sea level.",
        "options": _options(["True", "False"], {0 if answer else 1}),
        "correct_answer": "true" if answer else "false",
        "points": points,
    }


def short_answer(answer="Chlorophyll", alternatives=(), points=1.0):
    return {
        "question_type": QuestionType.SHORT_ANSWER,
        "text": "Name the green pigment in leaves.",
        "correct_answer": answer,
        "alternative_answers": list(alternatives),
        "points": points,
    }


def fill_blank(answer="Paris", points=1.0):
    return {
        "question_type": QuestionType.FILL_BLANK,
        "text": "The capital of France is ____.",
        "correct_answer": answer,
        "alternative_answers": [],
        "points": points,
    }


def essay(points=5.0):
    return {
        "question_type": QuestionType.ESSAY,
        "text": "Explain the water cycle.",
        "points": points,
    }


def build_question(definition, order_index=0):
    fields = {"options": [], "alternative_answers": [], "points": 1.0}
    fields.update(definition)
    return Question(id=uuid.uuid4(), order_index=order_index, **fields)


def build_quiz(definitions=(), **fields):
    """In-memory published quiz with total points computed from its questions"""
    defaults = {
        "title": "Science checkpoint",
        "duration_minutes": 30,
        "passing_score": 50.0,
        "max_attempts": 1,
        "shuffle_questions": False,
        "show_results": True,
        "show_correct_answers": False,
        "status": QuizStatus.PUBLISHED,
        "created_by_id": "teacher-1",
        "total_points": 0.0,
    }
    defaults.update(fields)
    quiz = Quiz(id=uuid.uuid4(), **defaults)
    quiz.questions = [build_question(definition, i) for i, definition in enumerate(definitions)]
    quiz.calculate_total_points()
    return quiz


def build_answer(question, **fields):
    fields.setdefault("points_awarded", None)
    return Answer(id=uuid.uuid4(), question_id=question.id, **fields)


def build_submission(quiz, answers=(), **fields):
    defaults = {
        "student_id": "student-1",
        "attempt_number": 1,
        "status": SubmissionStatus.SUBMITTED,
        "started_at": datetime(2024, 3, 1, 9, 0, 0),
        "total_score": 0.0,
        "max_score": None,
        "percentage": 0,
        "passed": False,
        "question_order": [],
    }
    defaults.update(fields)
    submission = QuizSubmission(id=uuid.uuid4(), quiz_id=quiz.id, **defaults)
    submission.answers = list(answers)
    for i, answer in enumerate(submission.answers):
        answer.submission_id = submission.id
        answer.answer_order = i + 1
    return submission


async def persist_quiz(session, definitions=(), **fields):
    """Store a quiz built by build_quiz and reload it with its questions"""
    quiz = build_quiz(definitions, **fields)
    session.add(quiz)
    await session.commit()
    return await QuizRepository(session).get_or_404(quiz.id)


async def persist_submission(session, quiz, **fields):
    submission = build_submission(quiz, **fields)
    session.add(submission)
    await session.commit()
    return submission
