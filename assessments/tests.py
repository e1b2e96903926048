from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import connection
from django.test import SimpleTestCase, TestCase
from django.test.utils import CaptureQueriesContext
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from cores.models import AuditLog, PlatformSetting
from exams.models import Exam, Question, Section
from users.models import Classroom
from .models import Attempt, AttemptSection, BandMap, Booking
from .navigation import NavigationPolicy
from .parts import part_progress, split_parts
from .scoring import score_question

User = get_user_model()
QType = Question.QType


def make_user(email, role):
    return User.objects.create_user(username=email, email=email, password="pass12345", role=role)


def make_exam(category, sections, active=True, title=None):
    """``sections`` is a list of (type, duration_min, [question dicts])."""
    exam = Exam.objects.create(title=title or f"{category} exam", category=category, is_active=active)
    for order, (section_type, duration, questions) in enumerate(sections, start=1):
        section = Section.objects.create(
            exam=exam, type=section_type, title=f"{section_type} {order}", duration_min=duration, order=order
        )
        for q_order, question in enumerate(questions, start=1):
            Question.objects.create(section=section, order=q_order, prompt={"text": "?"}, **question)
    return exam


def mcq(index, choices=4):
    return {"qtype": QType.MCQ_SINGLE, "options": {"choices": list("ABCD")[:choices]}, "answer_key": {"index": index}}


ESSAY = {"qtype": QType.ESSAY, "answer_key": None}


class ScoringTests(SimpleTestCase):
    def test_exact_answers_earn_full_credit(self):
        cases = [
            (QType.TF, True, {"value": True}),
            (QType.MCQ_SINGLE, 2, {"index": 2}),
            (QType.SELECT, 0, {"index": 0}),
            (QType.MCQ_MULTI, [3, 1], {"indices": [1, 3]}),
            (QType.GAP, "  Drink ", {"answers": ["drink", "have"]}),
            (QType.SHORT_TEXT, "paris", {"answers": ["Paris"]}),
            (QType.ORDER_SENTENCE, [2, 0, 1], {"order": [2, 0, 1]}),
            (QType.DND_GAP, ["AM", " are"], {"blanks": ["am", "are"]}),
            (QType.DND_MATCH, {"hot": "cold", "big": "small"}, {"pairs": {"hot": "cold", "big": "small"}}),
        ]
        for qtype, answer, key in cases:
            with self.subTest(qtype=qtype):
                self.assertEqual(score_question(qtype, answer, key), 1)

    def test_wrong_answers_score_zero(self):
        cases = [
            (QType.TF, False, {"value": True}),
            (QType.MCQ_SINGLE, 1, {"index": 2}),
            (QType.MCQ_MULTI, [1], {"indices": [1, 3]}),
            (QType.GAP, "eat", {"answers": ["drink"]}),
            (QType.ORDER_SENTENCE, [0, 2, 1], {"order": [2, 0, 1]}),
            (QType.DND_GAP, ["am"], {"blanks": ["am", "are"]}),
        ]
        for qtype, answer, key in cases:
            with self.subTest(qtype=qtype):
                self.assertEqual(score_question(qtype, answer, key), 0)

    def test_booleans_are_not_indices(self):
        self.assertEqual(score_question(QType.MCQ_SINGLE, True, {"index": 1}), 0)
        self.assertEqual(score_question(QType.TF, 1, {"value": True}), 0)

    def test_dnd_match_gives_partial_credit(self):
        key = {"pairs": {"hot": "cold", "big": "small", "fast": "slow", "up": "down"}}
        credit = score_question(QType.DND_MATCH, {"hot": "cold", "big": "slow"}, key)
        self.assertEqual(credit, Decimal("0.25"))

    def test_manual_and_unkeyed_questions_score_zero(self):
        self.assertEqual(score_question(QType.ESSAY, "An essay", None), 0)
        self.assertEqual(score_question(QType.SHORT_TEXT, "Paris", None), 0)
        self.assertEqual(score_question(QType.MCQ_SINGLE, None, {"index": 0}), 0)


class NavigationPolicyTests(SimpleTestCase):
    def sections(self, *specs):
        return [{"id": i, "type": t, "locked": locked} for i, (t, locked) in enumerate(specs, start=1)]

    def test_linear_only_unlocks_next_module(self):
        policy = NavigationPolicy("LINEAR", self.sections(("READING", True), ("READING", False), ("GRAMMAR", False)))
        self.assertTrue(policy.is_selectable(1))
        self.assertTrue(policy.is_selectable(2))
        self.assertFalse(policy.is_selectable(3))
        self.assertFalse(policy.is_editable(1))
        self.assertTrue(policy.is_editable(2))
        self.assertFalse(policy.can_submit_attempt())

    def test_free_allows_everything_not_locked(self):
        policy = NavigationPolicy("FREE", self.sections(("READING", False), ("GRAMMAR", True)))
        self.assertTrue(policy.is_selectable(2))
        self.assertTrue(policy.is_editable(1))
        self.assertFalse(policy.is_editable(2))

    def test_ielts_moves_forward_one_type_at_a_time(self):
        policy = NavigationPolicy(
            "IELTS",
            self.sections(("LISTENING", False), ("READING", False), ("WRITING", False)),
            current_id=1,
        )
        self.assertTrue(policy.is_selectable(1))
        self.assertTrue(policy.is_selectable(2))
        self.assertFalse(policy.is_selectable(3))
        self.assertEqual(policy.sections_locked_by_entering(2), [1])
        self.assertFalse(policy.is_editable(2))


class PartsTests(SimpleTestCase):
    def test_ielts_listening_has_four_parts(self):
        questions = [{"id": i, "prompt": {}} for i in range(1, 41)]
        parts = split_parts("IELTS", "LISTENING", questions)
        self.assertEqual([p["key"] for p in parts], ["s1", "s2", "s3", "s4"])
        self.assertEqual(parts[1]["questionIds"], list(range(11, 21)))

    def test_ielts_reading_passages(self):
        questions = [{"id": i, "prompt": {}} for i in range(1, 41)]
        parts = split_parts("IELTS", "READING", questions)
        self.assertEqual([len(p["questionIds"]) for p in parts], [13, 13, 14])

    def test_speaking_uses_prompt_part(self):
        questions = [{"id": 1, "prompt": {"part": 1}}, {"id": 2, "prompt": {"part": 3}}, {"id": 3, "prompt": {}}]
        parts = split_parts("IELTS", "SPEAKING", questions)
        self.assertEqual([p["questionIds"] for p in parts], [[1, 3], [2]])

    def test_progress_counts_answered_questions(self):
        parts = split_parts("GENERAL_ENGLISH", "GRAMMAR", [{"id": 1}, {"id": 2}, {"id": 3}, {"id": 4}])
        progress = part_progress(parts, {"1": 0, "2": "  ", "3": ["a"]})
        self.assertEqual(progress, [{"key": "s1", "answered": 2, "total": 4, "percentage": 50}])


class BookingTests(TestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user("admin@example.com", User.Role.ADMIN)
        self.teacher = make_user("teacher@example.com", User.Role.TEACHER)
        self.student = make_user("student@example.com", User.Role.STUDENT)
        self.exam = make_exam(Exam.Category.GENERAL_ENGLISH, [(Section.Type.GRAMMAR, 10, [mcq(0)])])
        self.client = APIClient()
        self.url = reverse("bookings")
        self.start = timezone.now() + timedelta(days=1)

    def book(self, start_at, user=None, **extra):
        self.client.force_authenticate(user=user or self.admin)
        payload = {"studentId": self.student.id, "examId": self.exam.id, "startAt": start_at.isoformat()}
        payload.update(extra)
        return self.client.post(self.url, payload, format="json")

    def test_admin_books_all_sections_by_default(self):
        response = self.book(self.start)
        self.assertEqual(response.status_code, 201)
        booking = Booking.objects.get()
        self.assertEqual(booking.sections, [self.exam.sections.get().id])
        self.assertIsNone(booking.teacher)
        self.assertTrue(AuditLog.objects.filter(action="BOOKING").exists())

    def test_booking_within_conflict_window_is_rejected(self):
        self.assertEqual(self.book(self.start).status_code, 201)
        response = self.book(self.start + timedelta(hours=1, minutes=59))
        self.assertEqual(response.status_code, 409)
        self.assertIn("error", response.data)

    def test_booking_exactly_at_window_edge_is_allowed(self):
        self.assertEqual(self.book(self.start).status_code, 201)
        self.assertEqual(self.book(self.start + timedelta(hours=2)).status_code, 201)

    def test_cancelled_bookings_do_not_conflict(self):
        self.book(self.start)
        Booking.objects.update(status=Booking.Status.CANCELLED)
        self.assertEqual(self.book(self.start).status_code, 201)

    def test_teacher_needs_student_in_class(self):
        response = self.book(self.start, user=self.teacher)
        self.assertEqual(response.status_code, 403)

        classroom = Classroom.objects.create(name="A2 Mornings", teacher=self.teacher)
        classroom.students.add(self.student)
        response = self.book(self.start, user=self.teacher)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Booking.objects.get().teacher, self.teacher)

    def test_inactive_exam_is_rejected(self):
        self.exam.is_active = False
        self.exam.save()
        response = self.book(self.start)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Exam is not active")

    def test_non_student_and_unknown_student(self):
        self.client.force_authenticate(user=self.admin)
        payload = {"studentId": self.teacher.id, "examId": self.exam.id, "startAt": self.start.isoformat()}
        self.assertEqual(self.client.post(self.url, payload, format="json").status_code, 400)
        payload["studentId"] = 9999
        self.assertEqual(self.client.post(self.url, payload, format="json").status_code, 404)

    def test_students_cannot_book(self):
        response = self.book(self.start, user=self.student)
        self.assertEqual(response.status_code, 403)

    def book_with_attempt(self, days):
        booking = Booking.objects.create(
            student=self.student, exam=self.exam, start_at=self.start + timedelta(days=days)
        )
        Attempt.objects.create(booking=booking, student=self.student, exam=self.exam)
        return booking

    def test_list_query_count_does_not_grow_with_bookings(self):
        self.client.force_authenticate(user=self.admin)
        self.book_with_attempt(0)
        with CaptureQueriesContext(connection) as one:
            self.assertEqual(self.client.get(self.url).status_code, 200)

        for days in range(1, 5):
            self.book_with_attempt(days)
        with CaptureQueriesContext(connection) as five:
            response = self.client.get(self.url)
        self.assertEqual(len(response.data), 5)
        self.assertTrue(all(row["attemptId"] for row in response.data))
        self.assertEqual(len(five), len(one))

    def test_list_is_scoped_to_the_student(self):
        self.book(self.start)
        other = make_user("other@example.com", User.Role.STUDENT)
        self.client.force_authenticate(user=other)
        self.assertEqual(self.client.get(self.url, {"role": "student"}).data, [])
        self.client.force_authenticate(user=self.student)
        self.assertEqual(len(self.client.get(self.url, {"role": "student"}).data), 1)


class AttemptTestCase(TestCase):
    """Books ``self.exam`` for a student and starts the attempt."""
    category = Exam.Category.IELTS
    sections = [(Section.Type.READING, 60, [mcq(1), mcq(3)])]

    def setUp(self):
        cache.clear()
        self.admin = make_user("admin@example.com", User.Role.ADMIN)
        self.student = make_user("student@example.com", User.Role.STUDENT)
        self.exam = make_exam(self.category, self.sections)
        self.booking = Booking.objects.create(
            student=self.student, exam=self.exam, start_at=timezone.now(),
            sections=[s.id for s in self.exam.ordered_sections()],
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.student)
        response = self.client.post(reverse("attempt-start"), {"bookingId": self.booking.id}, format="json")
        self.assertEqual(response.status_code, 201)
        self.attempt_id = response.data["attemptId"]

    def url(self, name):
        return reverse(name, kwargs={"attempt_id": self.attempt_id})

    def bootstrap(self):
        response = self.client.get(self.url("attempt-detail"))
        self.assertEqual(response.status_code, 200)
        return response.data

    def section_ids(self):
        return [s.id for s in self.exam.ordered_sections()]

    def question_ids(self, section_id):
        return [q.id for q in Section.objects.get(pk=section_id).questions.all()]


class AttemptLifecycleTests(AttemptTestCase):
    def test_start_is_idempotent_and_moves_booking_in_progress(self):
        response = self.client.post(reverse("attempt-start"), {"bookingId": self.booking.id}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["attemptId"], self.attempt_id)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.IN_PROGRESS)
        self.assertEqual(AttemptSection.objects.filter(attempt_id=self.attempt_id).count(), 1)

    def test_first_bootstrap_starts_the_attempt(self):
        self.assertEqual(Attempt.objects.get().status, Attempt.Status.NOT_STARTED)
        data = self.bootstrap()
        self.assertEqual(data["status"], Attempt.Status.IN_PROGRESS)
        self.assertEqual(data["navigationMode"], "IELTS")
        self.assertEqual(data["autosaveDebounceSeconds"], 8)
        question = data["sections"][0]["questions"][0]
        self.assertNotIn("answerKey", question)
        self.assertEqual(data["sections"][0]["timeRemaining"], 3600)

    def test_other_students_get_404(self):
        intruder = make_user("intruder@example.com", User.Role.STUDENT)
        self.client.force_authenticate(user=intruder)
        response = self.client.get(self.url("attempt-detail"))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"error": "Attempt not found"})

    def test_save_then_bootstrap_round_trip(self):
        section_id = self.section_ids()[0]
        q1, q2 = self.question_ids(section_id)
        answers = {str(q1): 1, str(q2): 0}
        response = self.client.post(
            self.url("attempt-save"), {"sectionType": "READING", "answers": answers}, format="json"
        )
        self.assertEqual(response.status_code, 200)

        saved = self.bootstrap()["savedAnswers"]
        self.assertEqual(saved["READING"], answers)
        self.assertEqual(saved[str(section_id)], answers)

    def test_save_needs_a_known_section(self):
        response = self.client.post(self.url("attempt-save"), {"answers": {}}, format="json")
        self.assertEqual(response.status_code, 400)
        response = self.client.post(self.url("attempt-save"), {"sectionType": "WRITING", "answers": {}}, format="json")
        self.assertEqual(response.status_code, 404)
        response = self.client.post(self.url("attempt-save"), {"sectionId": 9999, "answers": {}}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_save_rejects_foreign_question_ids(self):
        response = self.client.post(
            self.url("attempt-save"), {"sectionType": "READING", "answers": {"999999": 1}}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_saves_rejected_after_section_end(self):
        section_id = self.section_ids()[0]
        q1, _ = self.question_ids(section_id)
        response = self.client.post(
            self.url("attempt-section-end"), {"sectionId": section_id, "answers": {str(q1): 1}}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["section"]["status"], AttemptSection.Status.LOCKED)

        response = self.client.post(
            self.url("attempt-save"), {"sectionId": section_id, "answers": {str(q1): 2}}, format="json"
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(AttemptSection.objects.get().answers, {str(q1): 1})

        response = self.client.post(self.url("attempt-section-end"), {"sectionId": section_id}, format="json")
        self.assertEqual(response.status_code, 409)

    def test_save_after_deadline_locks_and_rejects(self):
        self.bootstrap()
        section_id = self.section_ids()[0]
        AttemptSection.objects.update(
            status=AttemptSection.Status.IN_PROGRESS,
            started_at=timezone.now() - timedelta(minutes=61),
        )
        response = self.client.post(
            self.url("attempt-save"), {"sectionId": section_id, "answers": {}}, format="json"
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"], "Section time has expired")
        self.assertEqual(AttemptSection.objects.get().status, AttemptSection.Status.LOCKED)

    def test_submit_scores_and_maps_band(self):
        BandMap.objects.create(exam_type="IELTS", section="READING", min_raw=2, max_raw=2, band=Decimal("9.0"))
        section_id = self.section_ids()[0]
        q1, q2 = self.question_ids(section_id)
        self.client.post(
            self.url("attempt-save"), {"sectionType": "READING", "answers": {str(q1): 1, str(q2): 3}}, format="json"
        )

        response = self.client.post(self.url("attempt-submit"))
        self.assertEqual(response.status_code, 200)

        attempt = Attempt.objects.get()
        self.assertEqual(attempt.status, Attempt.Status.GRADED)
        self.assertEqual(attempt.band_overall, Decimal("9.00"))
        attempt_section = attempt.sections.get()
        self.assertEqual(attempt_section.raw_score, Decimal("2"))
        self.assertEqual(attempt_section.max_score, 2)
        self.assertEqual(attempt_section.band_score, Decimal("9.0"))
        self.assertEqual(attempt_section.part_scores, {"s1": 2.0})
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)
        self.assertTrue(AuditLog.objects.filter(action="SUBMIT").exists())

        # Keys are revealed once submitted
        question = self.bootstrap()["sections"][0]["questions"][0]
        self.assertEqual(question["answerKey"], {"index": 1})

    def test_double_submit_conflicts(self):
        self.assertEqual(self.client.post(self.url("attempt-submit")).status_code, 200)
        self.assertEqual(self.client.post(self.url("attempt-submit")).status_code, 409)

    def test_submit_locks_the_attempt_row(self):
        with mock.patch.object(
            Attempt.objects, "select_for_update", wraps=Attempt.objects.select_for_update
        ) as select_for_update:
            self.assertEqual(self.client.post(self.url("attempt-submit")).status_code, 200)
        select_for_update.assert_called_once_with()

        self.assertEqual(self.client.post(self.url("attempt-submit")).status_code, 409)
        self.assertEqual(AuditLog.objects.filter(action="SUBMIT").count(), 1)

    def test_results_wait_for_submission(self):
        self.assertEqual(self.client.get(self.url("attempt-results")).status_code, 409)
        self.client.post(self.url("attempt-submit"))
        response = self.client.get(self.url("attempt-results"))
        self.assertEqual(response.status_code, 200)
        self.assertNotIn("answers", response.data["sections"][0])

        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url("attempt-results"))
        self.assertIn("answers", response.data["sections"][0])
        self.assertEqual(response.data["studentEmail"], "student@example.com")


class LinearNavigationTests(AttemptTestCase):
    category = Exam.Category.SAT
    sections = [(Section.Type.READING, 32, [mcq(0)]) for _ in range(4)]

    def start(self, section_id):
        return self.client.post(self.url("attempt-section-start"), {"sectionId": section_id}, format="json")

    def test_module_three_rejected_while_module_two_open(self):
        m1, m2, m3, m4 = self.section_ids()
        self.assertEqual(self.start(m1).status_code, 200)
        self.assertEqual(self.start(m3).status_code, 409)

        response = self.client.post(self.url("attempt-section-end"), {"sectionId": m1}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.start(m2).status_code, 200)

        self.assertEqual(self.start(m3).status_code, 409)
        response = self.client.post(self.url("attempt-save"), {"sectionId": m3, "answers": {}}, format="json")
        self.assertEqual(response.status_code, 409)

    def test_submit_needs_earlier_modules_done(self):
        m1, m2, m3, m4 = self.section_ids()
        response = self.client.post(self.url("attempt-submit"))
        self.assertEqual(response.status_code, 400)

        for module in (m1, m2, m3):
            self.start(module)
            self.client.post(self.url("attempt-section-end"), {"sectionId": module}, format="json")
        self.assertEqual(self.client.post(self.url("attempt-submit")).status_code, 200)

    def test_bootstrap_reports_selectability(self):
        sections = self.bootstrap()["sections"]
        self.assertEqual([s["selectable"] for s in sections], [True, False, False, False])
        self.assertEqual([s["editable"] for s in sections], [True, False, False, False])


class IeltsNavigationTests(AttemptTestCase):
    sections = [
        (Section.Type.READING, 60, [mcq(0)]),
        (Section.Type.LISTENING, 30, [mcq(0)]),
        (Section.Type.WRITING, 60, [ESSAY]),
    ]

    def test_sections_follow_ielts_order(self):
        types = [s["type"] for s in self.bootstrap()["sections"]]
        self.assertEqual(types, ["LISTENING", "READING", "WRITING"])

    def test_entering_reading_locks_listening(self):
        listening, reading, writing = self.section_ids()
        start_url = self.url("attempt-section-start")
        self.assertEqual(self.client.post(start_url, {"sectionType": "LISTENING"}, format="json").status_code, 200)
        self.assertEqual(self.client.post(start_url, {"sectionType": "WRITING"}, format="json").status_code, 409)
        self.assertEqual(self.client.post(start_url, {"sectionType": "READING"}, format="json").status_code, 200)

        locked = AttemptSection.objects.get(section_id=listening)
        self.assertEqual(locked.status, AttemptSection.Status.LOCKED)
        response = self.client.post(self.url("attempt-save"), {"sectionType": "LISTENING", "answers": {}}, format="json")
        self.assertEqual(response.status_code, 409)


class GradingTests(AttemptTestCase):
    sections = [
        (Section.Type.READING, 60, [mcq(1), mcq(3)]),
        (Section.Type.WRITING, 60, [ESSAY]),
    ]

    def setUp(self):
        super().setUp()
        BandMap.objects.create(exam_type="IELTS", section="READING", min_raw=2, max_raw=2, band=Decimal("9.0"))
        self.teacher = make_user("teacher@example.com", User.Role.TEACHER)
        self.booking.teacher = self.teacher
        self.booking.save()

        reading_id = self.section_ids()[0]
        q1, q2 = self.question_ids(reading_id)
        self.client.post(
            self.url("attempt-save"), {"sectionId": reading_id, "answers": {str(q1): 1, str(q2): 3}}, format="json"
        )
        self.assertEqual(self.client.post(self.url("attempt-submit")).status_code, 200)
        self.writing = AttemptSection.objects.get(section__type="WRITING")

    def grade(self, payload, user=None):
        self.client.force_authenticate(user=user or self.teacher)
        return self.client.post(reverse("attempt-section-grade", kwargs={"pk": self.writing.pk}), payload, format="json")

    def test_writing_waits_in_the_queue(self):
        attempt = Attempt.objects.get()
        self.assertEqual(attempt.status, Attempt.Status.SUBMITTED)
        self.assertIsNone(attempt.band_overall)

        self.client.force_authenticate(user=self.teacher)
        response = self.client.get(reverse("grading-queue"))
        self.assertEqual([row["id"] for row in response.data], [self.writing.pk])
        self.assertEqual(response.data[0]["sectionType"], "WRITING")

    def test_grading_closes_the_attempt(self):
        response = self.grade({
            "bandScore": 6.5,
            "rubric": {"taskAchievement": 6, "lexicalResource": 7},
            "feedback": "Clear structure.",
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["attemptStatus"], Attempt.Status.GRADED)

        attempt = Attempt.objects.get()
        self.assertEqual(attempt.band_overall, Decimal("7.75"))
        self.writing.refresh_from_db()
        self.assertEqual(self.writing.graded_by, self.teacher)
        self.assertEqual(self.writing.rubric, {"taskAchievement": 6.0, "lexicalResource": 7.0})
        self.assertTrue(AuditLog.objects.filter(action="GRADE").exists())

        self.client.force_authenticate(user=self.teacher)
        self.assertEqual(self.client.get(reverse("grading-queue")).data, [])
        self.assertEqual(len(self.client.get(reverse("grading-queue"), {"status": "all"}).data), 1)

    def test_half_band_policy(self):
        settings = PlatformSetting.load()
        settings.overall_band_policy = PlatformSetting.BandPolicy.HALF_BAND
        settings.save()
        self.grade({"bandScore": 6.5})
        self.assertEqual(Attempt.objects.get().band_overall, Decimal("8.0"))

    def test_band_validation(self):
        self.assertEqual(self.grade({"bandScore": 9.5}).status_code, 400)
        self.assertEqual(self.grade({"bandScore": 6.3}).status_code, 400)
        self.assertEqual(self.grade({"bandScore": 6, "rubric": {"style": 5}}).status_code, 400)
        self.assertEqual(self.grade({"bandScore": 6, "feedback": "x" * 5001}).status_code, 400)

    def test_only_the_booking_teacher_or_staff_may_grade(self):
        stranger = make_user("stranger@example.com", User.Role.TEACHER)
        self.assertEqual(self.grade({"bandScore": 6}, user=stranger).status_code, 403)
        self.assertEqual(self.grade({"bandScore": 6}, user=self.student).status_code, 403)
        self.assertEqual(self.grade({"bandScore": 6}, user=self.admin).status_code, 200)

    def test_grading_detail_shows_answers_and_keys(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.get(reverse("attempt-section-detail", kwargs={"pk": self.writing.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["studentEmail"], "student@example.com")
        self.assertIn("answerKey", response.data["questions"][0])


class BandMapAdminTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin@example.com", User.Role.ADMIN)
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)
        self.url = reverse("bandmap")

    def test_create_list_delete(self):
        payload = {"examType": "IELTS", "section": "READING", "minRaw": 30, "maxRaw": 31, "band": 7}
        response = self.client.post(self.url, payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(self.client.get(self.url).data["bandMaps"]), 1)

        response = self.client.delete(f"{self.url}?id={response.data['id']}")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(BandMap.objects.exists())

    def test_max_raw_must_not_be_below_min_raw(self):
        payload = {"examType": "IELTS", "section": "READING", "minRaw": 10, "maxRaw": 5, "band": 4}
        response = self.client.post(self.url, payload, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "maxRaw must be >= minRaw")

    def test_bulk_import(self):
        items = [
            {"examType": "IELTS", "section": "LISTENING", "minRaw": 39, "maxRaw": 40, "band": 9},
            {"examType": "IELTS", "section": "LISTENING", "minRaw": 37, "maxRaw": 38, "band": 8.5},
        ]
        response = self.client.post(reverse("bandmap-import"), {"items": items}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(BandMap.lookup("IELTS", "LISTENING", 38), Decimal("8.5"))

    def test_teachers_cannot_manage_band_maps(self):
        self.client.force_authenticate(user=make_user("teacher@example.com", User.Role.TEACHER))
        self.assertEqual(self.client.get(self.url).status_code, 403)
