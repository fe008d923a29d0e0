import uuid
from datetime import datetime

import pytest

from quiz_engine.backend.database.models import QuestionType, SubmissionStatus
from quiz_engine.backend.services.grading import (
    AUTO_GRADERS,
    apply_grading,
    grade,
    grade_answer
)
from quiz_engine.backend.services.submission_store import QuizRepository
from tests.factories import (
    build_answer,
    build_quiz,
    build_submission,
    essay,
    fill_blank,
    mcq,
    multi_select,
    short_answer,
    true_false
)

NOW = datetime(2024, 3, 1, 9, 20, 0)


def grade_one(definition, **answer_fields):
    quiz = build_quiz([definition])
    question = quiz.questions[0]
    return grade_answer(question, build_answer(question, **answer_fields))


def run_grading(quiz, submission):
    result = grade(submission, quiz, QuizRepository.questions_by_id(quiz))
    apply_grading(submission, result, NOW)
    return result


def test_every_auto_gradable_type_has_a_grader():
    auto_gradable = {t for t in QuestionType if t.is_auto_gradable}
    assert auto_gradable == set(AUTO_GRADERS)
    assert QuestionType.ESSAY not in AUTO_GRADERS


def test_mcq_awards_points_only_for_correct_option():
    correct = grade_one(mcq(correct=1, points=2.0), selected_option_index=1)
    wrong = grade_one(mcq(correct=1, points=2.0), selected_option_index=0)
    blank = grade_one(mcq(correct=1, points=2.0))

    assert (correct.is_correct, correct.points_awarded) == (True, 2.0)
    assert (wrong.is_correct, wrong.points_awarded) == (False, 0.0)
    assert (blank.is_correct, blank.points_awarded) == (False, 0.0)


def test_true_false_grades_like_single_choice():
    assert grade_one(true_false(answer=False), selected_option_index=1).is_correct is True
    assert grade_one(true_false(answer=False), selected_option_index=0).is_correct is False


def test_multi_select_requires_exact_set_in_any_order():
    definition = multi_select(correct=(0, 2), points=2.0)

    assert grade_one(definition, selected_option_indices=[2, 0]).points_awarded == 2.0
    assert grade_one(definition, selected_option_indices=[0]).is_correct is False
    assert grade_one(definition, selected_option_indices=[0, 1, 2]).is_correct is False
    assert grade_one(definition, selected_option_indices=[]).is_correct is False


def test_text_answers_ignore_case_and_surrounding_whitespace():
    assert grade_one(short_answer("Chlorophyll"), text_answer="  chlorophyll ").is_correct is True
    assert grade_one(fill_blank("Paris"), text_answer="PARIS").is_correct is True
    assert grade_one(fill_blank("Paris"), text_answer="Lyon").is_correct is False
    assert grade_one(fill_blank("Paris")).is_correct is False


def test_text_answers_accept_alternatives():
    definition = short_answer("Chlorophyll", alternatives=["chlorophyl"])
    assert grade_one(definition, text_answer="Chlorophyl").is_correct is True


def test_ungraded_essay_is_pending():
    result = grade_one(essay(points=5.0), text_answer="Evaporation, condensation...")
    assert result.points_awarded is None
    assert result.is_correct is None
    assert result.pending


def test_all_auto_gradable_submission_is_graded_immediately():
    quiz = build_quiz([mcq(correct=1), short_answer("Chlorophyll"), multi_select(points=2.0)])
    q1, q2, q3 = quiz.questions
    submission = build_submission(quiz, [
        build_answer(q1, selected_option_index=1),
        build_answer(q2, text_answer="chlorophyll"),
        build_answer(q3, selected_option_indices=[0]),
    ])

    result = run_grading(quiz, submission)

    assert result.fully_graded
    assert submission.status == SubmissionStatus.GRADED
    assert submission.graded_at == NOW
    assert submission.total_score == 2.0
    assert submission.max_score == 4.0
    assert submission.percentage == 50
    assert submission.passed is True
    assert [a.is_correct for a in submission.answers] == [True, True, False]


def test_essay_keeps_submission_open_until_graded():
    quiz = build_quiz([mcq(correct=1, points=5.0), essay(points=5.0)])
    q1, q2 = quiz.questions
    submission = build_submission(quiz, [
        build_answer(q1, selected_option_index=1),
        build_answer(q2, text_answer="The sun heats water..."),
    ])

    result = run_grading(quiz, submission)

    assert result.pending_count == 1
    assert submission.status == SubmissionStatus.SUBMITTED
    assert submission.graded_at is None
    assert submission.total_score == 5.0
    assert submission.percentage == 50


def test_regrading_after_essay_score_finalizes_submission():
    quiz = build_quiz([mcq(correct=1, points=5.0), essay(points=5.0)])
    q1, q2 = quiz.questions
    submission = build_submission(quiz, [
        build_answer(q1, selected_option_index=1),
        build_answer(q2, text_answer="The sun heats water..."),
    ])
    run_grading(quiz, submission)

    submission.answers[1].points_awarded = 4.0
    result = grade(submission, quiz, QuizRepository.questions_by_id(quiz))
    apply_grading(submission, result, NOW, graded_by_id="teacher-1")

    assert submission.status == SubmissionStatus.GRADED
    assert submission.graded_by_id == "teacher-1"
    assert submission.total_score == 9.0
    assert submission.percentage == 90
    # Partial essay credit is not "correct"
    assert submission.answers[1].is_correct is False


def test_max_score_is_kept_from_first_grading():
    quiz = build_quiz([mcq(correct=1, points=5.0), essay(points=5.0)])
    q1, q2 = quiz.questions
    submission = build_submission(quiz, [
        build_answer(q1, selected_option_index=1),
        build_answer(q2, text_answer="..."),
    ])
    run_grading(quiz, submission)

    quiz.total_points = 20.0
    submission.answers[1].points_awarded = 5.0
    run_grading(quiz, submission)

    assert submission.max_score == 10.0
    assert submission.percentage == 100


def test_percentage_rounds_half_up():
    quiz = build_quiz([mcq(correct=1) for _ in range(8)], passing_score=13.0)
    answers = [build_answer(q, selected_option_index=1 if i == 0 else 0) for i, q in enumerate(quiz.questions)]
    submission = build_submission(quiz, answers)

    run_grading(quiz, submission)

    # 1/8 = 12.5%
    assert submission.percentage == 13
    assert submission.passed is True


def test_percentage_is_computed_without_float_drift():
    quiz = build_quiz([mcq(correct=1, points=29.0), mcq(correct=1, points=171.0)])
    q1, q2 = quiz.questions
    submission = build_submission(quiz, [
        build_answer(q1, selected_option_index=1),
        build_answer(q2, selected_option_index=0),
    ])

    run_grading(quiz, submission)

    # 29 / 200 is 14.5%, which float division lands just under
    assert submission.percentage == 15


def test_zero_point_essay_is_never_correct():
    result = grade_one(essay(points=0.0), text_answer="...", points_awarded=0.0)

    assert result.points_awarded == 0.0
    assert result.is_correct is False


def test_pass_threshold_is_inclusive():
    quiz = build_quiz([mcq(correct=1), mcq(correct=1)], passing_score=50.0)
    q1, q2 = quiz.questions
    submission = build_submission(quiz, [
        build_answer(q1, selected_option_index=1),
        build_answer(q2, selected_option_index=3),
    ])

    run_grading(quiz, submission)

    assert submission.percentage == 50
    assert submission.passed is True


def test_zero_point_quiz_scores_zero_percent():
    quiz = build_quiz([mcq(correct=1, points=0.0)])
    submission = build_submission(quiz, [build_answer(quiz.questions[0], selected_option_index=1)])

    run_grading(quiz, submission)

    assert submission.max_score == 0.0
    assert submission.percentage == 0
    assert submission.passed is False


def test_answers_to_unknown_questions_are_skipped():
    quiz = build_quiz([mcq(correct=1)])
    orphan = build_answer(quiz.questions[0], selected_option_index=1)
    orphan.question_id = uuid.uuid4()
    submission = build_submission(quiz, [
        build_answer(quiz.questions[0], selected_option_index=1),
        orphan,
    ])

    result = run_grading(quiz, submission)

    assert result.answers[1].skipped
    assert submission.total_score == 1.0
    assert submission.status == SubmissionStatus.GRADED
    assert orphan.points_awarded is None


def test_empty_submission_is_graded_with_zero_score():
    quiz = build_quiz([mcq(correct=1), essay()])
    submission = build_submission(quiz, [])

    run_grading(quiz, submission)

    assert submission.status == SubmissionStatus.GRADED
    assert submission.total_score == 0.0
    assert submission.passed is False


def test_grade_does_not_modify_submission():
    quiz = build_quiz([mcq(correct=1)])
    submission = build_submission(quiz, [build_answer(quiz.questions[0], selected_option_index=1)])

    grade(submission, quiz, QuizRepository.questions_by_id(quiz))

    assert submission.total_score == 0.0
    assert submission.answers[0].points_awarded is None
    assert submission.status == SubmissionStatus.SUBMITTED


def test_apply_grading_rejects_mismatched_result():
    quiz = build_quiz([mcq(correct=1)])
    submission = build_submission(quiz, [build_answer(quiz.questions[0], selected_option_index=1)])
    result = grade(submission, quiz, QuizRepository.questions_by_id(quiz))
    submission.answers = []

    with pytest.raises(ValueError):
        apply_grading(submission, result, NOW)
