import pytest

from quiz_engine.backend.database.models import QuizStatus, SubmissionStatus
from quiz_engine.backend.exceptions import InvalidStatusTransitionException
from quiz_engine.backend.services.lifecycle import (
    COMPLETED_SUBMISSION_STATUSES,
    TERMINAL_SUBMISSION_STATUSES,
    can_transition_submission,
    transition_quiz,
    transition_submission
)
from tests.factories import build_quiz, build_submission


@pytest.mark.parametrize("current,target", [
    (SubmissionStatus.IN_PROGRESS, SubmissionStatus.SUBMITTED),
    (SubmissionStatus.IN_PROGRESS, SubmissionStatus.EXPIRED),
    (SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED),
])
def test_allowed_submission_transitions(current, target):
    submission = build_submission(build_quiz(), status=current)

    transition_submission(submission, target)

    assert submission.status == target


@pytest.mark.parametrize("current,target", [
    (SubmissionStatus.IN_PROGRESS, SubmissionStatus.GRADED),
    (SubmissionStatus.SUBMITTED, SubmissionStatus.IN_PROGRESS),
    (SubmissionStatus.SUBMITTED, SubmissionStatus.EXPIRED),
    (SubmissionStatus.GRADED, SubmissionStatus.SUBMITTED),
    (SubmissionStatus.EXPIRED, SubmissionStatus.SUBMITTED),
    (SubmissionStatus.EXPIRED, SubmissionStatus.IN_PROGRESS),
])
def test_forbidden_submission_transitions(current, target):
    submission = build_submission(build_quiz(), status=current)

    with pytest.raises(InvalidStatusTransitionException) as exc_info:
        transition_submission(submission, target)

    assert submission.status == current
    assert exc_info.value.status_code == 409
    assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"


def test_terminal_states_have_no_exits():
    assert TERMINAL_SUBMISSION_STATUSES == {SubmissionStatus.GRADED, SubmissionStatus.EXPIRED}
    for terminal in TERMINAL_SUBMISSION_STATUSES:
        assert not any(can_transition_submission(terminal, target) for target in SubmissionStatus)


def test_expired_attempts_do_not_count_as_completed():
    assert SubmissionStatus.EXPIRED not in COMPLETED_SUBMISSION_STATUSES
    assert SubmissionStatus.IN_PROGRESS not in COMPLETED_SUBMISSION_STATUSES


def test_quiz_publication_cycle():
    quiz = build_quiz(status=QuizStatus.DRAFT)

    transition_quiz(quiz, QuizStatus.PUBLISHED)
    transition_quiz(quiz, QuizStatus.UNPUBLISHED)
    transition_quiz(quiz, QuizStatus.PUBLISHED)

    assert quiz.status == QuizStatus.PUBLISHED


def test_quiz_cannot_return_to_draft():
    quiz = build_quiz(status=QuizStatus.PUBLISHED)

    with pytest.raises(InvalidStatusTransitionException):
        transition_quiz(quiz, QuizStatus.DRAFT)


def test_draft_quiz_cannot_be_unpublished():
    quiz = build_quiz(status=QuizStatus.DRAFT)

    with pytest.raises(InvalidStatusTransitionException):
        transition_quiz(quiz, QuizStatus.UNPUBLISHED)
