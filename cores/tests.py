from decimal import Decimal
from unittest.mock import MagicMock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APIClient

from .exceptions import Conflict, api_exception_handler, first_error_message
from .models import AuditLog, PlatformSetting

User = get_user_model()


class ExceptionHandlerTests(SimpleTestCase):
    def handle(self, exc):
        return api_exception_handler(exc, {"view": MagicMock()})

    def test_validation_errors_keep_details(self):
        response = self.handle(ValidationError({"bandScore": ["Band must be in steps of 0.5"]}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "bandScore: Band must be in steps of 0.5")
        self.assertIn("bandScore", response.data["details"])

    def test_conflict_and_not_found(self):
        response = self.handle(Conflict("Section is locked"))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {"error": "Section is locked"})
        self.assertEqual(self.handle(NotFound("Attempt not found")).status_code, 404)

    def test_unexpected_errors_become_500(self):
        with self.assertLogs("cores.exceptions", level="ERROR"):
            response = self.handle(RuntimeError("boom"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": "An internal error occurred"})

    def test_first_error_message_skips_valid_rows(self):
        detail = [{}, {"answerKey": {"value": ["This field is required."]}}]
        self.assertEqual(first_error_message(detail), "answerKey: value: This field is required.")
        self.assertEqual(first_error_message({"non_field_errors": ["maxRaw must be >= minRaw"]}), "maxRaw must be >= minRaw")


class BandAggregationTests(SimpleTestCase):
    def test_mean_ignores_missing_bands(self):
        settings = PlatformSetting(overall_band_policy=PlatformSetting.BandPolicy.MEAN)
        self.assertEqual(settings.aggregate_bands([Decimal("9.0"), None, Decimal("6.5")]), Decimal("7.75"))
        self.assertIsNone(settings.aggregate_bands([None]))

    def test_half_band_rounding(self):
        settings = PlatformSetting(overall_band_policy=PlatformSetting.BandPolicy.HALF_BAND)
        self.assertEqual(settings.aggregate_bands([Decimal("6.0"), Decimal("6.5"), Decimal("6.5"), Decimal("6.5")]), Decimal("6.5"))
        self.assertEqual(settings.aggregate_bands([Decimal("7.0"), Decimal("7.5"), Decimal("7.5"), Decimal("7.5")]), Decimal("7.5"))
        self.assertEqual(settings.aggregate_bands([Decimal("9.0"), Decimal("6.5")]), Decimal("8.0"))


class PlatformSettingViewTests(TestCase):
    def setUp(self):
        cache.clear()
        self.admin = User.objects.create_user(
            username="admin", email="admin@example.com", password="pass12345", role=User.Role.ADMIN
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)
        self.url = reverse("platform-settings")

    def test_defaults(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["autosave_debounce_seconds"], 8)
        self.assertEqual(response.data["booking_conflict_hours"], 2)
        self.assertEqual(response.data["overall_band_policy"], "MEAN")

    def test_update_is_cached_and_audited(self):
        response = self.client.put(self.url, {"autosave_debounce_seconds": 5}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(PlatformSetting.load().autosave_debounce_seconds, 5)
        self.assertEqual(PlatformSetting.objects.count(), 1)
        self.assertTrue(AuditLog.objects.filter(action="SETTINGS", actor=self.admin).exists())

        response = self.client.get(reverse("audit-logs"), {"action": "SETTINGS"})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["actor_email"], "admin@example.com")

    def test_invalid_values(self):
        response = self.client.put(self.url, {"autosave_debounce_seconds": 0}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_admin_only(self):
        teacher = User.objects.create_user(
            username="t", email="t@example.com", password="pass12345", role=User.Role.TEACHER
        )
        self.client.force_authenticate(user=teacher)
        self.assertEqual(self.client.get(self.url).status_code, 403)
        self.assertEqual(self.client.put(self.url, {"site_name": "x"}, format="json").status_code, 403)
