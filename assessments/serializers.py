# assessments/serializers.py
from decimal import Decimal

from rest_framework import serializers

from exams.models import Exam, Section
from exams.serializers import QuestionSerializer
from .models import Attempt, AttemptSection, BandMap, Booking

RUBRIC_CRITERIA = (
    'taskAchievement', 'coherenceCohesion', 'lexicalResource',
    'grammaticalRange', 'fluencyCoherence', 'pronunciation',
)


def _check_band(value):
    if value < 0 or value > 9:
        raise serializers.ValidationError("Band must be between 0 and 9")
    if (Decimal(value) * 2) % 1 != 0:
        raise serializers.ValidationError("Band must be in steps of 0.5")
    return value


# --- Bookings ---

class BookingCreateSerializer(serializers.Serializer):
    studentId = serializers.IntegerField()
    examId = serializers.IntegerField()
    startAt = serializers.DateTimeField()
    # Empty means every section of the exam
    sections = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class BookingSerializer(serializers.ModelSerializer):
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    studentEmail = serializers.EmailField(source='student.email', read_only=True)
    teacherId = serializers.IntegerField(source='teacher_id', read_only=True)
    examId = serializers.IntegerField(source='exam_id', read_only=True)
    examTitle = serializers.CharField(source='exam.title', read_only=True)
    startAt = serializers.DateTimeField(source='start_at', read_only=True)
    attemptId = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = ['id', 'studentId', 'studentEmail', 'teacherId', 'examId', 'examTitle',
                  'sections', 'startAt', 'status', 'attemptId']

    def get_attemptId(self, obj):
        # Reverse one-to-one raises when no attempt exists yet
        attempt = getattr(obj, 'attempt', None)
        return attempt.id if attempt else None


# --- Attempt runtime ---

class StartAttemptSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField()


class SectionKeySerializer(serializers.Serializer):
    """Identifies one section of an attempt by id or, when unique, by type."""
    sectionId = serializers.IntegerField(required=False)
    sectionType = serializers.ChoiceField(choices=Section.Type.choices, required=False)

    def validate(self, attrs):
        has_id = attrs.get('sectionId') is not None
        has_type = bool(attrs.get('sectionType'))
        if not has_id and not has_type:
            raise serializers.ValidationError("sectionId or sectionType is required")
        if has_id and has_type:
            raise serializers.ValidationError("Send either sectionId or sectionType, not both")
        return attrs


class EndSectionSerializer(SectionKeySerializer):
    answers = serializers.DictField(required=False)


class SaveAnswersSerializer(SectionKeySerializer):
    answers = serializers.DictField()


# --- Grading ---

class GradeSerializer(serializers.Serializer):
    bandScore = serializers.DecimalField(max_digits=3, decimal_places=1)
    rubric = serializers.DictField(child=serializers.DecimalField(max_digits=3, decimal_places=1), required=False)
    feedback = serializers.CharField(max_length=5000, required=False, allow_blank=True, default="")

    def validate_bandScore(self, value):
        return _check_band(value)

    def validate_rubric(self, value):
        unknown = set(value) - set(RUBRIC_CRITERIA)
        if unknown:
            raise serializers.ValidationError(f"Unknown rubric criteria: {', '.join(sorted(unknown))}")
        for score in value.values():
            _check_band(score)
        # Stored as JSON
        return {criterion: float(score) for criterion, score in value.items()}


class AttemptSectionSerializer(serializers.ModelSerializer):
    sectionId = serializers.IntegerField(source='section_id', read_only=True)
    type = serializers.CharField(source='section.type', read_only=True)
    title = serializers.CharField(source='section.title', read_only=True)
    rawScore = serializers.DecimalField(source='raw_score', max_digits=7, decimal_places=2, read_only=True)
    maxScore = serializers.IntegerField(source='max_score', read_only=True)
    partScores = serializers.JSONField(source='part_scores', read_only=True)
    bandScore = serializers.DecimalField(source='band_score', max_digits=3, decimal_places=1, read_only=True)
    gradedBy = serializers.EmailField(source='graded_by.email', read_only=True, default=None)
    gradedAt = serializers.DateTimeField(source='graded_at', read_only=True)
    startedAt = serializers.DateTimeField(source='started_at', read_only=True)
    endedAt = serializers.DateTimeField(source='ended_at', read_only=True)

    class Meta:
        model = AttemptSection
        fields = ['id', 'sectionId', 'type', 'title', 'status', 'rawScore', 'maxScore', 'partScores',
                  'bandScore', 'rubric', 'feedback', 'gradedBy', 'gradedAt', 'startedAt', 'endedAt']


class AttemptSectionReviewSerializer(AttemptSectionSerializer):
    """Section with the student's answers next to the keyed questions."""
    questions = QuestionSerializer(source='section.questions', many=True, read_only=True)

    class Meta(AttemptSectionSerializer.Meta):
        fields = AttemptSectionSerializer.Meta.fields + ['answers', 'questions']


class GradingDetailSerializer(AttemptSectionReviewSerializer):
    attemptId = serializers.IntegerField(source='attempt_id', read_only=True)
    studentEmail = serializers.EmailField(source='attempt.student.email', read_only=True)
    examTitle = serializers.CharField(source='attempt.exam.title', read_only=True)
    instruction = serializers.JSONField(source='section.instruction', read_only=True)

    class Meta(AttemptSectionReviewSerializer.Meta):
        fields = AttemptSectionReviewSerializer.Meta.fields + ['attemptId', 'studentEmail', 'examTitle', 'instruction']


class GradingQueueSerializer(serializers.ModelSerializer):
    attemptId = serializers.IntegerField(source='attempt_id', read_only=True)
    studentEmail = serializers.EmailField(source='attempt.student.email', read_only=True)
    examTitle = serializers.CharField(source='attempt.exam.title', read_only=True)
    sectionType = serializers.CharField(source='section.type', read_only=True)
    submittedAt = serializers.DateTimeField(source='attempt.submitted_at', read_only=True)
    bandScore = serializers.DecimalField(source='band_score', max_digits=3, decimal_places=1, read_only=True)

    class Meta:
        model = AttemptSection
        fields = ['id', 'attemptId', 'studentEmail', 'examTitle', 'sectionType', 'status', 'submittedAt', 'bandScore']


class AttemptResultSerializer(serializers.ModelSerializer):
    examTitle = serializers.CharField(source='exam.title', read_only=True)
    examCategory = serializers.CharField(source='exam.category', read_only=True)
    bandOverall = serializers.DecimalField(source='band_overall', max_digits=4, decimal_places=2, read_only=True)
    startedAt = serializers.DateTimeField(source='started_at', read_only=True)
    submittedAt = serializers.DateTimeField(source='submitted_at', read_only=True)
    sections = serializers.SerializerMethodField()

    section_serializer = AttemptSectionSerializer

    class Meta:
        model = Attempt
        fields = ['id', 'examTitle', 'examCategory', 'status', 'bandOverall', 'startedAt', 'submittedAt', 'sections']

    def get_sections(self, obj):
        queryset = obj.sections.select_related('section', 'graded_by').prefetch_related('section__questions')
        return self.section_serializer(queryset, many=True).data


class AttemptReviewSerializer(AttemptResultSerializer):
    studentEmail = serializers.EmailField(source='student.email', read_only=True)

    section_serializer = AttemptSectionReviewSerializer

    class Meta(AttemptResultSerializer.Meta):
        fields = AttemptResultSerializer.Meta.fields + ['studentEmail']


# --- Band maps ---

class BandMapSerializer(serializers.ModelSerializer):
    examType = serializers.ChoiceField(source='exam_type', choices=Exam.Category.choices)
    section = serializers.ChoiceField(choices=Section.Type.choices)
    minRaw = serializers.IntegerField(source='min_raw', min_value=0)
    maxRaw = serializers.IntegerField(source='max_raw', min_value=0)
    band = serializers.DecimalField(max_digits=3, decimal_places=1)

    class Meta:
        model = BandMap
        fields = ['id', 'examType', 'section', 'minRaw', 'maxRaw', 'band']

    def validate_band(self, value):
        return _check_band(value)

    def validate(self, attrs):
        if attrs['max_raw'] < attrs['min_raw']:
            raise serializers.ValidationError("maxRaw must be >= minRaw")
        return attrs
