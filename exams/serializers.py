# exams/serializers.py
from rest_framework import serializers
from .models import Exam, Section, Question
from .qtypes import validate_answer_key

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    # Map frontend camelCase names to backend fields
    answerKey = serializers.JSONField(source='answer_key', allow_null=True, required=False)
    maxScore = serializers.IntegerField(source='max_score', min_value=1, required=False)
    sectionId = serializers.IntegerField(source='section_id', read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'sectionId', 'qtype', 'prompt', 'options', 'answerKey', 'maxScore', 'order', 'explanation']

    def validate_prompt(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("prompt must be an object")
        return value

    def validate(self, attrs):
        instance = self.instance
        qtype = attrs.get('qtype', instance.qtype if instance else None)
        options = attrs.get('options', instance.options if instance else {})
        if 'answer_key' in attrs or instance is None or 'qtype' in attrs:
            key = attrs.get('answer_key', instance.answer_key if instance else None)
            attrs['answer_key'] = validate_answer_key(qtype, key, options)
        return attrs

class QuestionPublicSerializer(serializers.ModelSerializer):
    """What a student sees while the attempt is open: no key, no explanation."""
    maxScore = serializers.IntegerField(source='max_score')

    class Meta:
        model = Question
        fields = ['id', 'qtype', 'prompt', 'options', 'maxScore', 'order']

# --- Section Serializers ---

class SectionSerializer(serializers.ModelSerializer):
    durationMin = serializers.IntegerField(source='duration_min', min_value=1)
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta:
        model = Section
        fields = ['id', 'type', 'title', 'durationMin', 'order', 'instruction', 'questions']

    def validate(self, attrs):
        exam = self.context.get('exam') or (self.instance.exam if self.instance else None)
        section_type = attrs.get('type', self.instance.type if self.instance else None)
        if exam is not None and exam.category == Exam.Category.IELTS:
            once_only = {Section.Type.LISTENING, Section.Type.READING, Section.Type.WRITING}
            if section_type in once_only:
                existing = exam.sections.filter(type=section_type)
                if self.instance is not None:
                    existing = existing.exclude(pk=self.instance.pk)
                if existing.exists():
                    raise serializers.ValidationError(
                        f"{section_type} section can only be added once per IELTS exam"
                    )
        return attrs

# --- Exam Serializers ---

class ExamSerializer(serializers.ModelSerializer):
    isActive = serializers.BooleanField(source='is_active', required=False)
    navigationMode = serializers.CharField(source='navigation_mode', read_only=True)
    navigationOverride = serializers.ChoiceField(
        source='navigation_override', choices=Exam.NavigationMode.choices, required=False, allow_blank=True
    )

    # Read-only counts
    totalSections = serializers.IntegerField(source='sections.count', read_only=True)
    totalDurationMin = serializers.IntegerField(source='total_duration_min', read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'category', 'track',
            'isActive', 'navigationMode', 'navigationOverride',
            'totalSections', 'totalDurationMin', 'created_at',
        ]
        read_only_fields = ['created_at']

    def validate_title(self, value):
        duplicates = Exam.objects.filter(title__iexact=value.strip())
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError("An exam with this title already exists")
        return value.strip()

class ExamListSerializer(serializers.ModelSerializer):
    durationMin = serializers.IntegerField(source='total_duration_min', read_only=True)

    class Meta:
        model = Exam
        fields = ['id', 'title', 'category', 'track', 'durationMin']

class ExamDetailSerializer(ExamSerializer):
    """Full authoring view with sections and questions."""
    sections = serializers.SerializerMethodField()

    class Meta(ExamSerializer.Meta):
        fields = ExamSerializer.Meta.fields + ['sections']

    def get_sections(self, obj):
        return SectionSerializer(obj.ordered_sections(), many=True).data

class SectionPublicSerializer(serializers.ModelSerializer):
    durationMin = serializers.IntegerField(source='duration_min', read_only=True)
    questions = QuestionPublicSerializer(many=True, read_only=True)

    class Meta:
        model = Section
        fields = ['id', 'type', 'title', 'durationMin', 'order', 'instruction', 'questions']

class ExamPublicDetailSerializer(ExamListSerializer):
    """Exam detail for students: sections and questions without keys."""
    navigationMode = serializers.CharField(source='navigation_mode', read_only=True)
    sections = serializers.SerializerMethodField()

    class Meta(ExamListSerializer.Meta):
        fields = ExamListSerializer.Meta.fields + ['description', 'navigationMode', 'sections']

    def get_sections(self, obj):
        return SectionPublicSerializer(obj.ordered_sections(), many=True).data
