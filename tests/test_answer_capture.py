from datetime import datetime

from quiz_engine.backend.database.models import SubmissionStatus
from quiz_engine.backend.services.answer_capture import (
    build_safe_question,
    create_attempt,
    initial_question_order,
    ordered_questions,
    prepare_attempt
)
from quiz_engine.backend.services.submission_store import SubmissionRepository
from tests.factories import (
    build_question,
    build_quiz,
    build_submission,
    essay,
    mcq,
    multi_select,
    persist_quiz,
    reverse_shuffle,
    short_answer,
    true_false
)

NOW = datetime(2024, 3, 1, 9, 0, 0)
HIDDEN_FIELDS = {"correct_answer", "alternative_answers", "explanation", "is_correct"}


def identity(items):
    return list(items)


def test_safe_view_hides_answer_key_for_every_type():
    for definition in (mcq(), multi_select(), true_false(), short_answer(), essay()):
        question = build_question(dict(definition, explanation="Because."))
        safe = build_safe_question(question)

        assert not HIDDEN_FIELDS & set(safe)
        for option in safe.get("options", []):
            assert set(option) == {"text", "media"}


def test_safe_view_keeps_option_text_in_order():
    safe = build_safe_question(build_question(mcq()))

    assert [o["text"] for o in safe["options"]] == ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"]
    assert safe["type"] == "mcq"


def test_text_questions_have_no_options():
    assert "options" not in build_safe_question(build_question(short_answer()))
    assert "options" not in build_safe_question(build_question(essay()))


def test_question_order_follows_quiz_unless_shuffled():
    plain = build_quiz([mcq(), essay(), short_answer()])
    shuffled = build_quiz([mcq(), essay(), short_answer()], shuffle_questions=True)

    assert initial_question_order(plain, reverse_shuffle) == [str(q.id) for q in plain.questions]
    assert initial_question_order(shuffled, reverse_shuffle) == [str(q.id) for q in reversed(shuffled.questions)]


def test_recorded_order_is_reused_on_resume():
    quiz = build_quiz([mcq(), essay(), short_answer()], shuffle_questions=True)
    first, second, third = quiz.questions
    submission = build_submission(
        quiz,
        status=SubmissionStatus.IN_PROGRESS,
        question_order=[str(second.id), str(third.id), str(first.id)]
    )

    # A different shuffler must not change the recorded order
    assert ordered_questions(quiz, submission, identity) == [second, third, first]


def test_questions_missing_from_recorded_order_go_last():
    quiz = build_quiz([mcq(), essay(), short_answer()])
    first, second, third = quiz.questions
    submission = build_submission(quiz, question_order=[str(third.id), str(first.id)])

    assert ordered_questions(quiz, submission, identity) == [third, first, second]


def test_prepare_attempt_payload():
    quiz = build_quiz([mcq(), essay()], instructions="No calculators.")
    submission = build_submission(quiz, status=SubmissionStatus.IN_PROGRESS, started_at=NOW, attempt_number=2)

    payload = prepare_attempt(quiz, submission, identity)

    assert payload["submission"] == {
        "id": str(submission.id),
        "started_at": NOW.isoformat(),
        "attempt_number": 2,
    }
    assert payload["quiz"]["total_points"] == 6.0
    assert payload["quiz"]["duration"] == 30
    assert payload["quiz"]["instructions"] == "No calculators."
    assert [q["id"] for q in payload["questions"]] == [str(q.id) for q in quiz.questions]


async def test_create_attempt_persists_served_order(db):
    quiz = await persist_quiz(db, [mcq(), essay(), short_answer()], shuffle_questions=True)

    submission, created = await create_attempt(
        SubmissionRepository(db), quiz, "student-1", 1, NOW, reverse_shuffle
    )

    assert created
    assert submission.status == SubmissionStatus.IN_PROGRESS
    assert submission.started_at == NOW
    assert submission.question_order == [str(q.id) for q in reversed(quiz.questions)]

    reloaded = await SubmissionRepository(db).get_in_progress(quiz.id, "student-1")
    assert reloaded.id == submission.id
