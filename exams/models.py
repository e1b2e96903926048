# exams/models.py
from django.conf import settings
from django.db import models


class Exam(models.Model):
    class Category(models.TextChoices):
        IELTS = "IELTS", "IELTS"
        SAT = "SAT", "SAT"
        TOEFL = "TOEFL", "TOEFL"
        GENERAL_ENGLISH = "GENERAL_ENGLISH", "General English"
        KIDS = "KIDS", "Kids"
        MATH = "MATH", "Math"

    class NavigationMode(models.TextChoices):
        LINEAR = "LINEAR", "Linear lock (modules in order)"
        IELTS = "IELTS", "IELTS (section-type boundaries)"
        FREE = "FREE", "Free navigation"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=Category.choices)
    # e.g. A2, ACADEMIC, GENERAL
    track = models.CharField(max_length=50, blank=True)
    # Blank means "derive from category"
    navigation_override = models.CharField(max_length=10, choices=NavigationMode.choices, blank=True)

    is_active = models.BooleanField(default=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_exams')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def navigation_mode(self):
        if self.navigation_override:
            return self.navigation_override
        if self.category == self.Category.SAT:
            return self.NavigationMode.LINEAR
        if self.category == self.Category.IELTS:
            return self.NavigationMode.IELTS
        return self.NavigationMode.FREE

    @property
    def total_duration_min(self):
        return sum(section.duration_min for section in self.sections.all())

    def ordered_sections(self):
        sections = list(self.sections.all())
        if self.category == self.Category.IELTS:
            return sorted(sections, key=lambda s: (IELTS_SECTION_ORDER.get(s.type, 99), s.order, s.id))
        return sorted(sections, key=lambda s: (s.order, s.id))


class Section(models.Model):
    class Type(models.TextChoices):
        READING = "READING", "Reading"
        LISTENING = "LISTENING", "Listening"
        WRITING = "WRITING", "Writing"
        SPEAKING = "SPEAKING", "Speaking"
        GRAMMAR = "GRAMMAR", "Grammar"
        VOCABULARY = "VOCABULARY", "Vocabulary"

    exam = models.ForeignKey(Exam, related_name='sections', on_delete=models.CASCADE)
    type = models.CharField(max_length=20, choices=Type.choices)
    title = models.CharField(max_length=255)
    duration_min = models.PositiveIntegerField()
    order = models.PositiveIntegerField(default=0)
    # {"text": ..., "passage": ..., "audio": ..., "introduction": ...}
    instruction = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.exam.title} / {self.title}"


IELTS_SECTION_ORDER = {
    Section.Type.LISTENING: 0,
    Section.Type.READING: 1,
    Section.Type.WRITING: 2,
    Section.Type.SPEAKING: 3,
}


class Question(models.Model):
    class QType(models.TextChoices):
        MCQ_SINGLE = "MCQ_SINGLE", "Multiple choice (single)"
        MCQ_MULTI = "MCQ_MULTI", "Multiple choice (multi)"
        TF = "TF", "True / False"
        GAP = "GAP", "Gap fill"
        SELECT = "SELECT", "Select"
        ORDER_SENTENCE = "ORDER_SENTENCE", "Order the sentence"
        DND_GAP = "DND_GAP", "Drag and drop gaps"
        DND_MATCH = "DND_MATCH", "Drag and drop matching"
        SHORT_TEXT = "SHORT_TEXT", "Short text"
        ESSAY = "ESSAY", "Essay"

    section = models.ForeignKey(Section, related_name='questions', on_delete=models.CASCADE)
    qtype = models.CharField(max_length=20, choices=QType.choices)

    # {"text": ..., "passage": ..., "transcript": ..., "imageUrl": ..., "part": ...}
    prompt = models.JSONField(default=dict)
    # choices, pairs or tokens depending on qtype
    options = models.JSONField(default=dict, blank=True)
    # null means the question is graded by a teacher
    answer_key = models.JSONField(null=True, blank=True)

    max_score = models.PositiveIntegerField(default=1)
    order = models.PositiveIntegerField(default=0)
    explanation = models.TextField(blank=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        text = self.prompt.get('text', '') if isinstance(self.prompt, dict) else ''
        return f"{self.qtype}: {text[:50]}"

    @property
    def requires_manual_grading(self):
        return self.answer_key is None
