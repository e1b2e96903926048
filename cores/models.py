from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.cache import cache
from django.db import models


class PlatformSetting(models.Model):
    class BandPolicy(models.TextChoices):
        MEAN = "MEAN", "Simple average"
        HALF_BAND = "HALF_BAND", "Average rounded to nearest half band"

    site_name = models.CharField(max_length=100, default="PrepDesk")
    support_email = models.EmailField(default="support@prepdesk.local")

    # --- Attempt runtime ---
    autosave_debounce_seconds = models.PositiveIntegerField(default=8)
    section_grace_seconds = models.PositiveIntegerField(
        default=5, help_text="Seconds a save is still accepted after a section's deadline"
    )
    default_section_duration = models.PositiveIntegerField(default=60, help_text="Default duration in minutes")

    # --- Scheduling ---
    booking_conflict_hours = models.PositiveIntegerField(default=2)

    # --- Grading ---
    overall_band_policy = models.CharField(max_length=20, choices=BandPolicy.choices, default=BandPolicy.MEAN)

    def save(self, *args, **kwargs):
        self.pk = 1  # Singleton pattern
        super().save(*args, **kwargs)
        cache.set('platform_settings', self)

    def delete(self, *args, **kwargs):
        pass

    @classmethod
    def load(cls):
        obj = cache.get('platform_settings')
        if obj is None:
            obj, created = cls.objects.get_or_create(pk=1)
            cache.set('platform_settings', obj)
        return obj

    def aggregate_bands(self, bands):
        """Combine per-section bands into the overall attempt band."""
        bands = [Decimal(str(b)) for b in bands if b is not None]
        if not bands:
            return None
        mean = sum(bands) / len(bands)
        if self.overall_band_policy == self.BandPolicy.HALF_BAND:
            return (mean * 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP) / 2
        return mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def __str__(self):
        return "Platform Settings"


class AuditLog(models.Model):
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('BOOKING', 'Booking Created'),
        ('SUBMIT', 'Attempt Submitted'),
        ('GRADE', 'Grade Submitted'),
        ('SEED', 'Fixtures Loaded'),
        ('SETTINGS', 'Settings Changed'),
    ]

    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    target_model = models.CharField(max_length=50, help_text="e.g., Exam, Attempt, AttemptSection")
    target_object_id = models.CharField(max_length=100, blank=True, null=True)
    details = models.TextField(blank=True, help_text="Description of changes")
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.actor} - {self.action} - {self.timestamp}"

    @classmethod
    def record(cls, actor, action, target, details=""):
        return cls.objects.create(
            actor=actor,
            action=action,
            target_model=target.__class__.__name__,
            target_object_id=str(target.pk),
            details=details,
        )
