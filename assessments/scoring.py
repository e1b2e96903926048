"""
Auto-scoring for objective question types.

``score_question`` returns a credit between 0 and 1; a question contributes
``credit * max_score`` to its section. Only DND_MATCH gives partial credit.
Missing keys, malformed answers and manual types all score 0.
"""
from decimal import Decimal

from exams.models import Question

QType = Question.QType


def _normalize(text):
    return text.strip().lower()


def _is_int(value):
    # bool is an int subclass; True must not match index 1
    return isinstance(value, int) and not isinstance(value, bool)


def _score_tf(answer, key):
    return isinstance(answer, bool) and answer == key.get('value')


def _score_index(answer, key):
    return _is_int(answer) and answer == key.get('index')


def _score_indices(answer, key):
    if not isinstance(answer, list) or not all(_is_int(v) for v in answer):
        return False
    expected = key.get('indices') or []
    return len(answer) == len(expected) and sorted(answer) == sorted(expected)


def _score_accepted(answer, key):
    if not isinstance(answer, str):
        return False
    accepted = [a for a in key.get('answers') or [] if isinstance(a, str)]
    return _normalize(answer) in {_normalize(a) for a in accepted}


def _score_order(answer, key):
    expected = key.get('order') or []
    return isinstance(answer, list) and answer == expected and all(_is_int(v) for v in answer)


def _score_blanks(answer, key):
    expected = key.get('blanks') or []
    if not isinstance(answer, list) or len(answer) != len(expected):
        return False
    return all(
        isinstance(given, str) and isinstance(wanted, str) and _normalize(given) == _normalize(wanted)
        for given, wanted in zip(answer, expected)
    )


def _score_pairs(answer, key):
    expected = key.get('pairs') or {}
    if not isinstance(answer, dict) or not expected:
        return 0
    matched = sum(1 for left, right in expected.items() if answer.get(left) == right)
    return Decimal(matched) / Decimal(len(expected))


_EXACT_SCORERS = {
    QType.TF: _score_tf,
    QType.MCQ_SINGLE: _score_index,
    QType.SELECT: _score_index,
    QType.MCQ_MULTI: _score_indices,
    QType.GAP: _score_accepted,
    QType.SHORT_TEXT: _score_accepted,
    QType.ORDER_SENTENCE: _score_order,
    QType.DND_GAP: _score_blanks,
}


def score_question(qtype, answer, answer_key):
    """Credit in [0, 1] for one answer."""
    if answer_key is None or answer is None or not isinstance(answer_key, dict):
        return Decimal(0)
    if qtype == QType.DND_MATCH:
        return Decimal(_score_pairs(answer, answer_key))
    scorer = _EXACT_SCORERS.get(qtype)
    if scorer is None:
        return Decimal(0)
    return Decimal(1) if scorer(answer, answer_key) else Decimal(0)


def question_points(question, answers):
    """Points earned by ``question`` given a section's answer map."""
    answer = answers.get(str(question.id))
    return score_question(question.qtype, answer, question.answer_key) * question.max_score


def score_section(questions, answers):
    """Return ``(raw_score, max_score)`` for the given questions."""
    raw = Decimal(0)
    maximum = 0
    for question in questions:
        raw += question_points(question, answers)
        maximum += question.max_score
    return raw, maximum
