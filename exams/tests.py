from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from assessments.models import BandMap, Booking
from cores.models import AuditLog
from .demo_exams import DEMO_EXAMS
from .models import Exam, Question, Section

User = get_user_model()


class ExamAuthoringTests(TestCase):
    def setUp(self):
        cache.clear()
        self.admin = User.objects.create_user(
            username="admin@example.com", email="admin@example.com", password="pass12345", role=User.Role.ADMIN
        )
        self.student = User.objects.create_user(
            username="student@example.com", email="student@example.com", password="pass12345"
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def create_exam(self, **overrides):
        payload = {"title": "IELTS Academic Mock", "category": "IELTS", "track": "ACADEMIC"}
        payload.update(overrides)
        return self.client.post(reverse("exams-list"), payload, format="json")

    def add_section(self, exam_id, **payload):
        return self.client.post(reverse("exams-sections", kwargs={"pk": exam_id}), payload, format="json")

    def test_admin_creates_exam(self):
        response = self.create_exam()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["navigationMode"], "IELTS")
        self.assertFalse(response.data["isActive"])
        exam = Exam.objects.get()
        self.assertEqual(exam.created_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action="CREATE", target_model="Exam").exists())

    def test_titles_are_unique_ignoring_case(self):
        self.create_exam()
        response = self.create_exam(title="ielts academic mock ")
        self.assertEqual(response.status_code, 400)
        self.assertIn("title", response.data["error"])

    def test_navigation_override(self):
        response = self.create_exam(title="Grammar sprint", category="GENERAL_ENGLISH", navigationOverride="LINEAR")
        self.assertEqual(response.data["navigationMode"], "LINEAR")

    def test_students_cannot_author_and_only_see_active_exams(self):
        self.create_exam()
        Exam.objects.create(title="Open exam", category="SAT", is_active=True)

        self.client.force_authenticate(user=self.student)
        self.assertEqual(self.create_exam(title="Sneaky").status_code, 403)
        response = self.client.get(reverse("exams-list"))
        self.assertEqual([e["title"] for e in response.data], ["Open exam"])
        self.assertNotIn("isActive", response.data[0])

    def test_students_never_see_answer_keys(self):
        exam = Exam.objects.create(title="Reading check", category="IELTS", is_active=True)
        section = Section.objects.create(exam=exam, type="READING", title="Reading", duration_min=60)
        Question.objects.create(
            section=section, qtype="MCQ_SINGLE", prompt={"text": "?"},
            options={"choices": ["A", "B"]}, answer_key={"index": 1}, explanation="Paragraph 2",
        )
        url = reverse("exams-detail", kwargs={"pk": exam.id})

        self.client.force_authenticate(user=self.student)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        question = response.data["sections"][0]["questions"][0]
        self.assertEqual(question["options"], {"choices": ["A", "B"]})
        self.assertNotIn("answerKey", question)
        self.assertNotIn("explanation", question)

        self.client.force_authenticate(user=self.admin)
        question = self.client.get(url).data["sections"][0]["questions"][0]
        self.assertEqual(question["answerKey"], {"index": 1})

    def test_section_defaults_and_ielts_uniqueness(self):
        exam_id = self.create_exam().data["id"]
        response = self.add_section(exam_id, type="READING", title="Reading")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["durationMin"], 60)

        response = self.add_section(exam_id, type="READING", title="Reading again")
        self.assertEqual(response.status_code, 400)
        self.assertIn("only be added once", response.data["error"])

        # Speaking may repeat
        self.assertEqual(self.add_section(exam_id, type="SPEAKING", title="Speaking 1").status_code, 201)
        self.assertEqual(self.add_section(exam_id, type="SPEAKING", title="Speaking 2").status_code, 201)

    def test_sections_listed_in_ielts_order(self):
        exam_id = self.create_exam().data["id"]
        self.add_section(exam_id, type="WRITING", title="Writing", durationMin=60)
        self.add_section(exam_id, type="LISTENING", title="Listening", durationMin=30)
        response = self.client.get(reverse("exams-sections", kwargs={"pk": exam_id}))
        self.assertEqual([s["type"] for s in response.data], ["LISTENING", "WRITING"])

    def test_toggle_active(self):
        exam_id = self.create_exam().data["id"]
        url = reverse("exams-toggle-active", kwargs={"pk": exam_id})
        self.assertEqual(self.client.post(url).data, {"id": exam_id, "isActive": True})
        self.assertEqual(self.client.post(url).data, {"id": exam_id, "isActive": False})

    def test_exam_with_bookings_cannot_be_deleted(self):
        exam = Exam.objects.create(title="Booked", category="SAT", is_active=True)
        Booking.objects.create(student=self.student, exam=exam, start_at=timezone.now() + timedelta(days=1))
        response = self.client.delete(reverse("exams-detail", kwargs={"pk": exam.id}))
        self.assertEqual(response.status_code, 409)
        self.assertTrue(Exam.objects.filter(pk=exam.id).exists())


class QuestionAuthoringTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin@example.com", email="admin@example.com", password="pass12345", role=User.Role.ADMIN
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)
        exam = Exam.objects.create(title="A2 Check", category="GENERAL_ENGLISH")
        self.section = Section.objects.create(exam=exam, type="GRAMMAR", title="Grammar", duration_min=20)
        self.url = reverse("sections-questions", kwargs={"pk": self.section.id})

    def post(self, **payload):
        payload.setdefault("prompt", {"text": "Pick one"})
        return self.client.post(self.url, payload, format="json")

    def test_mcq_key_must_point_at_a_choice(self):
        options = {"choices": ["am", "is", "are"]}
        response = self.post(qtype="MCQ_SINGLE", options=options, answerKey={"index": 3})
        self.assertEqual(response.status_code, 400)
        response = self.post(qtype="MCQ_SINGLE", options=options, answerKey={"index": 2})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["answerKey"], {"index": 2})

    def test_key_shape_follows_qtype(self):
        self.assertEqual(self.post(qtype="TF", answerKey={"index": 1}).status_code, 400)
        self.assertEqual(self.post(qtype="GAP").status_code, 400)
        self.assertEqual(self.post(qtype="MCQ_MULTI", answerKey={"indices": [1, 1]}).status_code, 400)
        self.assertEqual(self.post(qtype="ORDER_SENTENCE", answerKey={"order": [0, 2]}).status_code, 400)

    def test_manual_types(self):
        self.assertEqual(self.post(qtype="ESSAY", answerKey={"answers": ["x"]}).status_code, 400)
        self.assertEqual(self.post(qtype="ESSAY").status_code, 201)
        self.assertEqual(self.post(qtype="SHORT_TEXT", answerKey=None).status_code, 201)
        self.assertEqual(Question.objects.filter(answer_key__isnull=True).count(), 2)

    def test_import_is_all_or_nothing(self):
        url = reverse("sections-import-questions", kwargs={"pk": self.section.id})
        rows = [
            {"qtype": "TF", "prompt": {"text": "The sky is green."}, "answerKey": {"value": False}},
            {"qtype": "GAP", "prompt": {"text": "I ___ tea."}, "answerKey": {"answers": ["drink"]}},
        ]
        response = self.client.post(url, {"questions": rows + [{"qtype": "TF", "prompt": {"text": "?"}}]}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Question.objects.exists())

        response = self.client.post(url, {"questions": rows}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.section.questions.count(), 2)

    def test_partial_update_revalidates_key(self):
        question = Question.objects.create(
            section=self.section, qtype="MCQ_SINGLE", prompt={}, options={"choices": ["a", "b"]}, answer_key={"index": 0}
        )
        url = reverse("questions-detail", kwargs={"pk": question.id})
        self.assertEqual(self.client.patch(url, {"answerKey": {"index": 5}}, format="json").status_code, 400)
        self.assertEqual(self.client.patch(url, {"answerKey": {"index": 1}}, format="json").status_code, 200)
        question.refresh_from_db()
        self.assertEqual(question.answer_key, {"index": 1})


class SeedTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin@example.com", email="admin@example.com", password="pass12345", role=User.Role.ADMIN
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def test_seeding_twice_keeps_one_copy(self):
        url = reverse("seed-exam", kwargs={"slug": "ielts-mock-sample-1"})
        first = self.client.post(url)
        self.assertEqual(first.status_code, 201)
        self.assertTrue(first.data["created"])

        second = self.client.post(url)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.data["examId"], first.data["examId"])
        self.assertEqual(Exam.objects.count(), 1)

        exam = Exam.objects.get()
        types = [s.type for s in exam.ordered_sections()]
        self.assertEqual(types[:3], ["LISTENING", "READING", "WRITING"])
        self.assertEqual(exam.sections.get(type="LISTENING").questions.count(), 40)
        self.assertEqual(BandMap.lookup("IELTS", "READING", 30), 7)
        self.assertEqual(AuditLog.objects.filter(action="SEED").count(), 2)

    def test_unknown_slug(self):
        response = self.client.post(reverse("seed-exam", kwargs={"slug": "toefl-demo"}))
        self.assertEqual(response.status_code, 404)

    def test_management_command_loads_every_demo(self):
        out = StringIO()
        call_command("seed_exams", stdout=out)
        self.assertEqual(Exam.objects.count(), len(DEMO_EXAMS))
        call_command("seed_exams", "sat-demo", stdout=out)
        self.assertEqual(Exam.objects.count(), len(DEMO_EXAMS))
        self.assertIn("already exists", out.getvalue())

        with self.assertRaises(CommandError):
            call_command("seed_exams", "nope", stdout=out)
