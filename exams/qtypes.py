"""
Answer-key shapes, one per question type.

Every auto-graded qtype has exactly one key shape; ESSAY never has a key and
SHORT_TEXT may go without one, in which case a teacher grades it.
"""
from rest_framework import serializers

from .models import Question

QType = Question.QType


class BooleanKey(serializers.Serializer):
    value = serializers.BooleanField()


class IndexKey(serializers.Serializer):
    index = serializers.IntegerField(min_value=0)


class IndicesKey(serializers.Serializer):
    indices = serializers.ListField(child=serializers.IntegerField(min_value=0), allow_empty=False)

    def validate_indices(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("indices must not repeat")
        return sorted(value)


class AcceptedAnswersKey(serializers.Serializer):
    answers = serializers.ListField(child=serializers.CharField(), allow_empty=False)


class OrderKey(serializers.Serializer):
    order = serializers.ListField(child=serializers.IntegerField(min_value=0), allow_empty=False)

    def validate_order(self, value):
        if sorted(value) != list(range(len(value))):
            raise serializers.ValidationError("order must be a permutation of token positions")
        return value


class BlanksKey(serializers.Serializer):
    blanks = serializers.ListField(child=serializers.CharField(), allow_empty=False)


class PairsKey(serializers.Serializer):
    pairs = serializers.DictField(child=serializers.CharField(), allow_empty=False)


ANSWER_KEY_SHAPES = {
    QType.TF: BooleanKey,
    QType.MCQ_SINGLE: IndexKey,
    QType.SELECT: IndexKey,
    QType.MCQ_MULTI: IndicesKey,
    QType.GAP: AcceptedAnswersKey,
    QType.SHORT_TEXT: AcceptedAnswersKey,
    QType.ORDER_SENTENCE: OrderKey,
    QType.DND_GAP: BlanksKey,
    QType.DND_MATCH: PairsKey,
    QType.ESSAY: None,
}

MANUAL_QTYPES = {QType.SHORT_TEXT, QType.ESSAY}


def _check_against_options(qtype, key, options):
    choices = options.get('choices') if isinstance(options, dict) else None
    if qtype in (QType.MCQ_SINGLE, QType.SELECT) and choices is not None:
        if key['index'] >= len(choices):
            raise serializers.ValidationError({"answerKey": "index is outside the available choices"})
    if qtype == QType.MCQ_MULTI and choices is not None:
        if max(key['indices']) >= len(choices):
            raise serializers.ValidationError({"answerKey": "indices are outside the available choices"})
    tokens = options.get('tokens') if isinstance(options, dict) else None
    if qtype == QType.ORDER_SENTENCE and tokens is not None:
        if len(key['order']) != len(tokens):
            raise serializers.ValidationError({"answerKey": "order must cover every token"})


def validate_answer_key(qtype, answer_key, options=None):
    """Return the normalized key for ``qtype`` or raise a ValidationError."""
    if qtype not in ANSWER_KEY_SHAPES:
        raise serializers.ValidationError({"qtype": f"Unknown question type {qtype}"})

    shape = ANSWER_KEY_SHAPES[qtype]
    if answer_key is None:
        if qtype in MANUAL_QTYPES:
            return None
        raise serializers.ValidationError({"answerKey": f"answerKey is required for {qtype}"})
    if shape is None:
        raise serializers.ValidationError({"answerKey": f"{qtype} questions are graded manually; answerKey must be null"})
    if not isinstance(answer_key, dict):
        raise serializers.ValidationError({"answerKey": "answerKey must be an object"})

    serializer = shape(data=answer_key)
    if not serializer.is_valid():
        raise serializers.ValidationError({"answerKey": serializer.errors})
    key = dict(serializer.validated_data)
    _check_against_options(qtype, key, options or {})
    return key
