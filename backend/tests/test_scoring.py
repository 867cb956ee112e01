import pytest

from remediation.errors import NoQuestionsInScope, ValidationError
from remediation.models import Question
from remediation.scoring import round_half_up_percent, score, select_scope


def _questions(*answers, section="single_choice"):
    return [Question(id=f"q{i}", correct_answer=a, section_type=section) for i, a in enumerate(answers, 1)]


def test_two_of_three_scores_67():
    qs = _questions("A", "B", "C")
    result = score(qs, {"q1": "A", "q2": "X", "q3": "C"})
    assert result.correct_count == 2
    assert result.total == 3
    assert result.score == 67


@pytest.mark.parametrize("correct,total,expected", [(3, 3, 100), (2, 4, 50), (1, 3, 33), (0, 5, 0), (1, 8, 13), (1, 200, 1)])
def test_percent_rounds_half_up(correct, total, expected):
    assert round_half_up_percent(correct, total) == expected


def test_missing_answers_count_as_wrong():
    qs = _questions("A", "B")
    result = score(qs, {"q1": "A"})
    assert (result.correct_count, result.total, result.score) == (1, 2, 50)


def test_answers_outside_scope_are_ignored():
    qs = _questions("A")
    result = score(qs, {"q1": "A", "other": "B"})
    assert result.correct_count <= result.total
    assert result.score == 100


def test_empty_scope_is_rejected():
    with pytest.raises(NoQuestionsInScope):
        score([], {"q1": "A"})
    assert issubclass(NoQuestionsInScope, ValidationError)


def test_ungraded_question_never_matches_missing_answer():
    qs = [Question(id="w1", correct_answer=None, section_type="writing")]
    assert score(qs, {}).correct_count == 0


def test_select_scope_filters_by_section():
    qs = _questions("A", "B") + _questions("C", section="cloze")
    assert len(select_scope(qs, "full")) == 3
    assert len(select_scope(qs, None)) == 3
    cloze = select_scope(qs, "cloze")
    assert [q.section_type for q in cloze] == ["cloze"]
