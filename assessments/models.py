# assessments/models.py
from django.conf import settings
from django.db import models

from exams.models import Exam, Section


class Booking(models.Model):
    """A student scheduled to sit (part of) an exam."""
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        CONFIRMED = "CONFIRMED", "Confirmed"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    # Statuses that occupy the student's calendar
    ACTIVE_STATUSES = (Status.CONFIRMED, Status.IN_PROGRESS)

    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bookings')
    # Null when an admin assigned the exam directly
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_bookings'
    )
    exam = models.ForeignKey(Exam, on_delete=models.PROTECT, related_name='bookings')
    # Ids of the booked sections
    sections = models.JSONField(default=list)
    start_at = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONFIRMED)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-start_at']

    def __str__(self):
        return f"{self.student} - {self.exam.title} @ {self.start_at:%Y-%m-%d %H:%M}"


class Attempt(models.Model):
    class Status(models.TextChoices):
        NOT_STARTED = "NOT_STARTED", "Not started"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        SUBMITTED = "SUBMITTED", "Submitted"
        GRADED = "GRADED", "Graded"

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='attempt')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='attempts')
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='attempts')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NOT_STARTED)
    started_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    band_overall = models.DecimalField(max_digits=4, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Attempt {self.pk} - {self.student} - {self.exam.title}"

    @property
    def is_closed(self):
        return self.status in (self.Status.SUBMITTED, self.Status.GRADED)


MANUAL_SECTION_TYPES = (Section.Type.WRITING, Section.Type.SPEAKING)


class AttemptSectionQuerySet(models.QuerySet):
    def needs_manual_grading(self):
        return self.filter(
            models.Q(section__type__in=MANUAL_SECTION_TYPES)
            | models.Q(section__questions__answer_key__isnull=True)
        ).distinct()

    def pending_grading(self):
        """Submitted work that a teacher still has to band."""
        return self.needs_manual_grading().filter(status=AttemptSection.Status.SUBMITTED)


class AttemptSection(models.Model):
    class Status(models.TextChoices):
        NOT_STARTED = "NOT_STARTED", "Not started"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        LOCKED = "LOCKED", "Locked"
        SUBMITTED = "SUBMITTED", "Submitted"
        GRADED = "GRADED", "Graded"

    # Answers can no longer change in these states
    CLOSED_STATUSES = (Status.LOCKED, Status.SUBMITTED, Status.GRADED)

    attempt = models.ForeignKey(Attempt, on_delete=models.CASCADE, related_name='sections')
    section = models.ForeignKey(Section, on_delete=models.CASCADE, related_name='attempt_sections')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NOT_STARTED)

    # {"<question id>": value}
    answers = models.JSONField(default=dict, blank=True)

    raw_score = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    max_score = models.PositiveIntegerField(null=True, blank=True)
    # {"s1": 8, "s2": 7, ...} for IELTS Listening / Reading
    part_scores = models.JSONField(null=True, blank=True)
    band_score = models.DecimalField(max_digits=3, decimal_places=1, null=True, blank=True)

    # Manual grading
    rubric = models.JSONField(null=True, blank=True)
    feedback = models.TextField(blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='graded_sections'
    )
    graded_at = models.DateTimeField(null=True, blank=True)

    started_at = models.DateTimeField(null=True, blank=True)
    ended_at = models.DateTimeField(null=True, blank=True)

    objects = AttemptSectionQuerySet.as_manager()

    class Meta:
        unique_together = ('attempt', 'section')
        ordering = ['id']

    def __str__(self):
        return f"{self.attempt} / {self.section.type}"

    @property
    def is_locked(self):
        return self.status in self.CLOSED_STATUSES

    @property
    def requires_manual_grading(self):
        if self.section.type in MANUAL_SECTION_TYPES:
            return True
        return any(q.answer_key is None for q in self.section.questions.all())


class BandMap(models.Model):
    """Raw score range -> band, per exam type and section type."""
    exam_type = models.CharField(max_length=20, choices=Exam.Category.choices)
    section = models.CharField(max_length=20, choices=Section.Type.choices)
    min_raw = models.PositiveIntegerField()
    max_raw = models.PositiveIntegerField()
    band = models.DecimalField(max_digits=3, decimal_places=1)

    class Meta:
        ordering = ['exam_type', 'section', 'min_raw']

    def __str__(self):
        return f"{self.exam_type} {self.section} {self.min_raw}-{self.max_raw} = {self.band}"

    @classmethod
    def lookup(cls, exam_type, section, raw_score):
        """Band for an integer raw score, or None if nothing covers it."""
        row = cls.objects.filter(
            exam_type=exam_type, section=section, min_raw__lte=raw_score, max_raw__gte=raw_score
        ).order_by('-min_raw').first()
        return row.band if row else None
