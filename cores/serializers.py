from rest_framework import serializers
from .models import PlatformSetting, AuditLog

class PlatformSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = PlatformSetting
        fields = [
            'site_name', 'support_email', 'autosave_debounce_seconds',
            'section_grace_seconds', 'default_section_duration',
            'booking_conflict_hours', 'overall_band_policy',
        ]

    def validate_autosave_debounce_seconds(self, value):
        if value < 1:
            raise serializers.ValidationError("Autosave debounce must be at least 1 second")
        return value

    def validate_default_section_duration(self, value):
        if value < 1:
            raise serializers.ValidationError("Section duration must be at least 1 minute")
        return value

class AuditLogSerializer(serializers.ModelSerializer):
    actor_email = serializers.CharField(source='actor.email', read_only=True)
    actor_role = serializers.CharField(source='actor.role', read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'actor_email', 'actor_role', 'action', 'target_model', 'target_object_id', 'timestamp', 'details']
