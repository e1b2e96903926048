from decimal import Decimal
from unittest.mock import MagicMock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import RequestsClient
from rest_framework_simplejwt.tokens import RefreshToken

from assessments.models import Attempt, BandMap, Booking
from exams.models import Exam, Question, Section
from .autosave import AutosaveController
from .client import AttemptAPIClient, AttemptAPIError
from .runner import AttemptRunner, NavigationError, SectionLockedError
from .scheduler import ManualClock, TaskScheduler
from .timer import CountdownTimer

User = get_user_model()


def manual_scheduler():
    return TaskScheduler(clock=ManualClock())


class CountdownTimerTests(SimpleTestCase):
    def test_expires_once_at_zero(self):
        scheduler = manual_scheduler()
        on_expire = MagicMock()
        ticks = []
        timer = CountdownTimer(scheduler, 60, on_expire=on_expire, on_tick=ticks.append)
        timer.start()

        scheduler.advance(59)
        on_expire.assert_not_called()
        self.assertEqual(timer.time_remaining, 1)

        scheduler.advance(1)
        on_expire.assert_called_once_with()
        self.assertTrue(timer.is_expired)
        self.assertEqual(ticks[-1], 0)

        scheduler.advance(30)
        on_expire.assert_called_once_with()
        self.assertEqual(scheduler.pending(), 0)

    def test_stop_pauses_and_start_resumes(self):
        scheduler = manual_scheduler()
        on_expire = MagicMock()
        timer = CountdownTimer(scheduler, 10, on_expire=on_expire)
        timer.start()
        scheduler.advance(4)
        timer.stop()
        scheduler.advance(100)
        self.assertEqual(timer.time_remaining, 6)
        on_expire.assert_not_called()

        timer.start()
        scheduler.advance(6)
        on_expire.assert_called_once_with()

    def test_failing_callback_does_not_stop_the_scheduler(self):
        scheduler = manual_scheduler()
        later = MagicMock()
        scheduler.call_later(1, MagicMock(side_effect=RuntimeError("boom")))
        scheduler.call_later(2, later)
        with self.assertLogs("exam_runner.scheduler", level="ERROR"):
            scheduler.advance(5)
        later.assert_called_once_with()


class AutosaveTests(SimpleTestCase):
    def setUp(self):
        self.scheduler = manual_scheduler()
        self.save_fn = MagicMock()
        self.autosave = AutosaveController(self.scheduler, self.save_fn, debounce_seconds=8)

    def test_each_edit_restarts_the_debounce(self):
        self.autosave.note_edit(7, {"1": "A"})
        self.scheduler.advance(5)
        self.autosave.note_edit(7, {"1": "A", "2": "B"})

        self.scheduler.advance(7)  # t=12
        self.save_fn.assert_not_called()

        self.scheduler.advance(1)  # t=13
        self.save_fn.assert_called_once_with(7, {"1": "A", "2": "B"})
        self.assertFalse(self.autosave.has_pending(7))

    def test_background_failure_is_kept_quiet(self):
        self.save_fn.side_effect = AttemptAPIError(None, "offline")
        self.autosave.note_edit(7, {"1": "A"})
        with self.assertLogs("exam_runner.autosave", level="WARNING"):
            self.scheduler.advance(8)
        self.assertEqual(self.autosave.last_error.status, None)

    def test_manual_save_raises(self):
        self.save_fn.side_effect = AttemptAPIError(409, "Section is locked")
        with self.assertRaises(AttemptAPIError):
            self.autosave.save_now(7, {"1": "A"})
        self.assertEqual(self.autosave.saving, set())

    def test_one_save_in_flight_per_section(self):
        def slow_save(section_id, answers):
            # A second save for the same section while this one runs
            self.assertFalse(self.autosave.save_now(section_id, {"1": "late"}))

        self.save_fn.side_effect = slow_save
        self.assertTrue(self.autosave.save_now(7, {"1": "A"}))
        self.assertTrue(self.autosave.has_pending(7))


def section_payload(section_id, section_type="READING", duration=1, status="NOT_STARTED", locked=False):
    return {
        "id": section_id,
        "type": section_type,
        "title": f"{section_type} {section_id}",
        "durationMin": duration,
        "status": status,
        "locked": locked,
        "timeRemaining": duration * 60,
        "parts": [{"key": "s1", "label": "Part 1", "questionIds": [section_id * 10 + 1, section_id * 10 + 2]}],
        "questions": [],
    }


class RunnerTests(SimpleTestCase):
    def make_runner(self, mode, sections, **kwargs):
        client = MagicMock()
        client.bootstrap.return_value = {
            "id": 1,
            "navigationMode": mode,
            "status": "IN_PROGRESS",
            "autosaveDebounceSeconds": 8,
            "sections": sections,
            "savedAnswers": {},
        }
        client.start_section.side_effect = lambda attempt_id, section_id: {"timeRemaining": 60}
        scheduler = manual_scheduler()
        runner = AttemptRunner(client, 1, scheduler, **kwargs)
        runner.bootstrap()
        return runner, client, scheduler

    def test_linear_module_submits_itself_when_time_runs_out(self):
        runner, client, scheduler = self.make_runner("LINEAR", [section_payload(1), section_payload(2)])
        self.assertEqual(runner.current_section_id, 1)
        runner.set_answer(11, 0)

        with self.assertRaises(NavigationError):
            runner.select_section(2)

        scheduler.advance(59)
        client.end_section.assert_not_called()
        scheduler.advance(1)
        client.end_section.assert_called_once_with(1, 1, {"11": 0})
        self.assertIn(1, runner.locked)

        with self.assertRaises(SectionLockedError):
            runner.set_answer(11, 1)

        scheduler.advance(120)
        client.end_section.assert_called_once_with(1, 1, {"11": 0})
        self.assertEqual(runner.next_section_id(), 2)

    def test_expiry_still_locks_when_the_server_refuses(self):
        runner, client, scheduler = self.make_runner("LINEAR", [section_payload(1), section_payload(2)])
        client.end_section.side_effect = AttemptAPIError(409, "Section time has expired")
        with self.assertLogs("exam_runner.runner", level="ERROR"):
            scheduler.advance(60)
        self.assertIn(1, runner.locked)

    def test_failed_manual_submit_keeps_the_clock_running(self):
        runner, client, scheduler = self.make_runner("LINEAR", [section_payload(1), section_payload(2)])
        scheduler.advance(10)
        client.end_section.side_effect = AttemptAPIError(None, "network down")
        with self.assertRaises(AttemptAPIError):
            runner.submit_section()

        self.assertNotIn(1, runner.locked)
        self.assertEqual(runner.time_remaining(), 50)
        self.assertTrue(runner.section_timers[1].running)

        client.end_section.side_effect = None
        scheduler.advance(50)
        self.assertEqual(client.end_section.call_count, 2)
        self.assertIn(1, runner.locked)

    def test_conflict_on_manual_submit_locks_locally(self):
        runner, client, scheduler = self.make_runner("LINEAR", [section_payload(1), section_payload(2)])
        client.end_section.side_effect = AttemptAPIError(409, "Section has already been submitted")
        with self.assertRaises(AttemptAPIError):
            runner.submit_section()
        self.assertIn(1, runner.locked)
        self.assertFalse(runner.section_timers[1].running)

        scheduler.advance(120)
        client.end_section.assert_called_once()

    def test_free_mode_submits_the_attempt_when_time_runs_out(self):
        sections = [section_payload(1, "GRAMMAR", duration=1), section_payload(2, "VOCABULARY", duration=1)]
        sections[0]["timeRemaining"] = sections[1]["timeRemaining"] = 120
        runner, client, scheduler = self.make_runner("FREE", sections)

        runner.select_section(2)
        runner.set_answer(21, "went")
        self.assertEqual(runner.time_remaining(), 120)

        scheduler.advance(119)
        client.submit.assert_not_called()
        scheduler.advance(1)
        client.submit.assert_called_once_with(1)
        client.save.assert_called_with(1, 2, {"21": "went"})
        self.assertTrue(runner.submitted)

        scheduler.advance(60)
        client.submit.assert_called_once_with(1)

    def test_submit_asks_for_confirmation(self):
        confirm = MagicMock(return_value=False)
        runner, client, scheduler = self.make_runner("FREE", [section_payload(1, "GRAMMAR")], confirm_submit=confirm)
        self.assertIsNone(runner.submit_attempt())
        client.submit.assert_not_called()

        confirm.return_value = True
        runner.submit_attempt()
        client.submit.assert_called_once_with(1)
        with self.assertRaises(SectionLockedError):
            runner.submit_attempt()

    def test_ielts_locks_listening_after_moving_on(self):
        sections = [section_payload(1, "LISTENING", 30), section_payload(2, "READING", 60), section_payload(3, "WRITING", 60)]
        runner, client, scheduler = self.make_runner("IELTS", sections)
        with self.assertRaises(NavigationError):
            runner.select_section(3)

        runner.set_answer(11, 2)
        runner.select_section(2)
        client.save.assert_called_once_with(1, 1, {"11": 2})
        self.assertIn(1, runner.locked)
        self.assertEqual(runner.progress(), [{"key": "s1", "answered": 0, "total": 2, "percentage": 0}])


class RunnerIntegrationTests(TestCase):
    """The runner against the real API through an in-process requests session."""

    def setUp(self):
        cache.clear()
        self.student = User.objects.create_user(
            username="student", email="student@example.com", password="pass12345"
        )
        exam = Exam.objects.create(title="IELTS Reading Check", category="IELTS", is_active=True)
        section = Section.objects.create(exam=exam, type="READING", title="Reading", duration_min=60)
        self.questions = [
            Question.objects.create(
                section=section, qtype="MCQ_SINGLE", order=i, prompt={"text": f"Q{i}"},
                options={"choices": ["A", "B", "C", "D"]}, answer_key={"index": index},
            )
            for i, index in enumerate([1, 3], start=1)
        ]
        BandMap.objects.create(exam_type="IELTS", section="READING", min_raw=2, max_raw=2, band=Decimal("9.0"))
        self.booking = Booking.objects.create(
            student=self.student, exam=exam, start_at=timezone.now(), sections=[section.id]
        )
        self.section = section
        token = str(RefreshToken.for_user(self.student).access_token)
        self.client = AttemptAPIClient("http://testserver/api", token=token, session=RequestsClient())

    def test_answer_save_reload_and_submit(self):
        attempt_id = self.client.start_attempt(self.booking.id)["attemptId"]
        runner = AttemptRunner(self.client, attempt_id, manual_scheduler())
        runner.bootstrap()
        self.assertEqual(runner.current_section_id, self.section.id)

        q1, q2 = self.questions
        runner.set_answer(q1.id, 1)
        runner.set_answer(q2.id, 3)
        self.assertTrue(runner.save())

        reloaded = self.client.bootstrap(attempt_id)
        self.assertEqual(reloaded["savedAnswers"]["READING"], {str(q1.id): 1, str(q2.id): 3})
        self.assertEqual(reloaded["sections"][0]["status"], "IN_PROGRESS")

        result = runner.submit_attempt()
        self.assertEqual(result["status"], "GRADED")
        self.assertEqual(result["bandOverall"], 9.0)
        self.assertEqual(Attempt.objects.get(pk=attempt_id).band_overall, Decimal("9.00"))

        with self.assertRaises(SectionLockedError):
            runner.set_answer(q1.id, 0)
        with self.assertRaises(AttemptAPIError) as ctx:
            self.client.save(attempt_id, self.section.id, {})
        self.assertEqual(ctx.exception.status, 409)

    def test_login_helper(self):
        client = AttemptAPIClient.login(
            "http://testserver/api", "student@example.com", "pass12345", session=RequestsClient()
        )
        self.assertEqual(client.start_attempt(self.booking.id)["created"], True)

        with self.assertRaises(AttemptAPIError) as ctx:
            AttemptAPIClient.login("http://testserver/api", "student@example.com", "wrong", session=RequestsClient())
        self.assertEqual(ctx.exception.status, 401)
