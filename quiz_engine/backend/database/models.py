"""
Quiz Engine
SQLAlchemy Database Models
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean, Column, DateTime, Integer, String, Text, Float,
    ForeignKey, JSON, Enum, Index, CheckConstraint, UniqueConstraint, text
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator, CHAR

# Base class for all models
Base = declarative_base()


class GUID(TypeDecorator):
    """Platform-independent GUID type"""
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(UUID())
        else:
            return dialect.type_descriptor(CHAR(32))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return str(value)
        else:
            if not isinstance(value, uuid.UUID):
                return "%.32x" % uuid.UUID(value).int
            else:
                return "%.32x" % value.int

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        else:
            if not isinstance(value, uuid.UUID):
                return uuid.UUID(value)
            return value


# Enums
class UserRole(enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class QuizStatus(enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"


class QuestionType(enum.Enum):
    MCQ = "mcq"
    MULTI_SELECT = "multi_select"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    FILL_BLANK = "fill_blank"
    ESSAY = "essay"

    @property
    def is_choice(self) -> bool:
        return self in CHOICE_QUESTION_TYPES

    @property
    def is_text(self) -> bool:
        return self in TEXT_QUESTION_TYPES

    @property
    def is_auto_gradable(self) -> bool:
        return self is not QuestionType.ESSAY


CHOICE_QUESTION_TYPES = frozenset({
    QuestionType.MCQ, QuestionType.MULTI_SELECT, QuestionType.TRUE_FALSE
})
TEXT_QUESTION_TYPES = frozenset({
    QuestionType.SHORT_ANSWER, QuestionType.FILL_BLANK
})


class SubmissionStatus(enum.Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"
    EXPIRED = "expired"


# Base model with common fields
class BaseModel(Base):
    __abstract__ = True

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# Quiz and Assessment Models
class Quiz(BaseModel):
    __tablename__ = "quizzes"

    title = Column(String(200), nullable=False)
    description = Column(Text)
    instructions = Column(Text)
    board = Column(String(50))
    level = Column(String(50))
    topic = Column(String(255))
    chapter = Column(String(255))
    duration_minutes = Column(Integer, nullable=False)
    total_points = Column(Float, default=0.0, nullable=False)
    passing_score = Column(Float, default=50.0, nullable=False)
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    show_results = Column(Boolean, default=True, nullable=False)
    show_correct_answers = Column(Boolean, default=False, nullable=False)
    max_attempts = Column(Integer, default=1, nullable=False)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    status = Column(Enum(QuizStatus), default=QuizStatus.DRAFT, nullable=False)
    created_by_id = Column(String(64))

    # Relationships
    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.order_index"
    )
    submissions = relationship(
        "QuizSubmission",
        back_populates="quiz",
        cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (
        Index('idx_quiz_status_window', 'status', 'start_date', 'end_date'),
        Index('idx_quiz_board_level', 'board', 'level'),
        CheckConstraint('passing_score >= 0 AND passing_score <= 100', name='valid_passing_score'),
        CheckConstraint('duration_minutes >= 1', name='positive_duration'),
        CheckConstraint('max_attempts >= 1', name='positive_max_attempts'),
    )

    @property
    def is_published(self) -> bool:
        return self.status == QuizStatus.PUBLISHED

    @property
    def is_draft(self) -> bool:
        return self.status == QuizStatus.DRAFT

    def calculate_total_points(self) -> float:
        """Recompute total points from the current question set"""
        self.total_points = float(sum(q.points or 0 for q in self.questions))
        return self.total_points


class Question(BaseModel):
    __tablename__ = "questions"

    quiz_id = Column(GUID(), ForeignKey('quizzes.id'), nullable=False)
    order_index = Column(Integer, nullable=False)
    question_type = Column(Enum(QuestionType), nullable=False)
    text = Column(Text, nullable=False)
    media_url = Column(String(500))
    media_type = Column(String(50))  # image, video, audio
    options = Column(JSON, default=list)  # [{"text": ..., "is_correct": ..., "media": ...}]
    correct_answer = Column(Text)
    alternative_answers = Column(JSON, default=list)
    points = Column(Float, default=1.0, nullable=False)
    explanation = Column(Text)  # Explanation shown after answering
    hint = Column(Text)
    difficulty = Column(String(20), default="medium")  # easy, medium, hard
    is_required = Column(Boolean, default=True)

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")

    # Constraints
    __table_args__ = (
        UniqueConstraint('quiz_id', 'order_index', name='_quiz_question_order_uc'),
        CheckConstraint('points >= 0', name='non_negative_points'),
    )

    @property
    def correct_option_indices(self) -> List[int]:
        return [i for i, option in enumerate(self.options or []) if option.get("is_correct")]

    @property
    def accepted_answers(self) -> List[str]:
        answers = [self.correct_answer] + list(self.alternative_answers or [])
        return [a for a in answers if a is not None]


class QuizSubmission(BaseModel):
    __tablename__ = "quiz_submissions"

    student_id = Column(String(64), nullable=False, index=True)
    quiz_id = Column(GUID(), ForeignKey('quizzes.id'), nullable=False)
    attempt_number = Column(Integer, default=1, nullable=False)
    status = Column(Enum(SubmissionStatus), default=SubmissionStatus.IN_PROGRESS, nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    submitted_at = Column(DateTime)
    time_spent_seconds = Column(Integer)
    question_order = Column(JSON, default=list)  # Question ids as served at creation
    total_score = Column(Float, default=0.0, nullable=False)
    max_score = Column(Float)  # Snapshot of quiz.total_points at first grading
    percentage = Column(Integer, default=0, nullable=False)
    passed = Column(Boolean, default=False, nullable=False)
    graded_by_id = Column(String(64))
    graded_at = Column(DateTime)
    overall_feedback = Column(Text)

    # Relationships
    quiz = relationship("Quiz", back_populates="submissions")
    answers = relationship(
        "Answer",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="Answer.answer_order"
    )

    # Constraints
    __table_args__ = (
        Index('idx_submission_quiz_student', 'quiz_id', 'student_id'),
        Index('idx_submission_student_status', 'student_id', 'status'),
        Index('idx_submission_quiz_status', 'quiz_id', 'status'),
        # At most one live attempt per (quiz, student)
        Index(
            'uq_submission_live_attempt', 'quiz_id', 'student_id',
            unique=True,
            sqlite_where=text("status = 'IN_PROGRESS'"),
            postgresql_where=text("status = 'IN_PROGRESS'"),
        ),
    )

    def answer_by_id(self, answer_id) -> Optional["Answer"]:
        for answer in self.answers:
            if answer.id == answer_id:
                return answer
        return None


class Answer(BaseModel):
    __tablename__ = "answers"

    submission_id = Column(GUID(), ForeignKey('quiz_submissions.id'), nullable=False)
    # No foreign key: answers may outlive the question they reference
    question_id = Column(GUID(), nullable=False)
    selected_option_index = Column(Integer)
    selected_option_indices = Column(JSON)
    text_answer = Column(Text)
    is_correct = Column(Boolean)
    points_awarded = Column(Float)
    feedback = Column(Text)
    answer_order = Column(Integer)

    # Relationships
    submission = relationship("QuizSubmission", back_populates="answers")

    # Constraints
    __table_args__ = (
        UniqueConstraint('submission_id', 'question_id', name='_submission_question_uc'),
    )


# Export all models
__all__ = [
    'Base', 'BaseModel', 'GUID',
    'Quiz', 'Question', 'QuizSubmission', 'Answer',
    # Enums
    'UserRole', 'QuizStatus', 'QuestionType', 'SubmissionStatus',
    'CHOICE_QUESTION_TYPES', 'TEXT_QUESTION_TYPES',
]
