from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from assessments.models import Attempt, Booking
from exams.models import Exam
from .models import Classroom

User = get_user_model()


class AuthTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_register_always_creates_students(self):
        payload = {
            "email": "amina@example.com",
            "first_name": "Amina",
            "last_name": "Bello",
            "password": "longenough1",
            "role": "ADMIN",
        }
        response = self.client.post(reverse("register"), payload, format="json")
        self.assertEqual(response.status_code, 201)
        user = User.objects.get(email="amina@example.com")
        self.assertEqual(user.role, User.Role.STUDENT)
        self.assertTrue(user.check_password("longenough1"))

    def test_register_rejects_short_password(self):
        payload = {"email": "short@example.com", "password": "short"}
        response = self.client.post(reverse("register"), payload, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.data["error"].startswith("password"))

    def test_login_with_email_returns_tokens_and_profile(self):
        User.objects.create_user(
            username="teacher1", email="teacher@example.com", password="pass12345", role=User.Role.TEACHER
        )
        response = self.client.post(
            reverse("login"), {"email": "Teacher@Example.com", "password": "pass12345"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.data)
        self.assertEqual(response.data["user"]["role"], "TEACHER")

        token = response.data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        profile = self.client.get(reverse("user-profile"))
        self.assertEqual(profile.data["email"], "teacher@example.com")

    def test_wrong_password(self):
        User.objects.create_user(username="s", email="s@example.com", password="pass12345")
        response = self.client.post(reverse("login"), {"email": "s@example.com", "password": "nope"}, format="json")
        self.assertEqual(response.status_code, 401)
        self.assertIn("error", response.data)

    def test_profile_cannot_change_role(self):
        user = User.objects.create_user(username="s", email="s@example.com", password="pass12345")
        self.client.force_authenticate(user=user)
        self.client.patch(reverse("user-profile"), {"role": "ADMIN", "phone_number": "0800"}, format="json")
        user.refresh_from_db()
        self.assertEqual(user.role, User.Role.STUDENT)
        self.assertEqual(user.phone_number, "0800")


class ClassroomTests(TestCase):
    def setUp(self):
        self.teacher = User.objects.create_user(
            username="t", email="t@example.com", password="pass12345", role=User.Role.TEACHER
        )
        self.other_teacher = User.objects.create_user(
            username="t2", email="t2@example.com", password="pass12345", role=User.Role.TEACHER
        )
        self.student = User.objects.create_user(username="s", email="s@example.com", password="pass12345")
        self.client = APIClient()
        self.client.force_authenticate(user=self.teacher)

    def test_teacher_creates_class_and_adds_student(self):
        response = self.client.post(reverse("classes-list"), {"name": "IELTS Evenings"}, format="json")
        self.assertEqual(response.status_code, 201)
        classroom = Classroom.objects.get()
        self.assertEqual(classroom.teacher, self.teacher)

        url = reverse("classes-add-student", kwargs={"pk": classroom.id})
        self.assertEqual(self.client.post(url, {"studentId": self.student.id}, format="json").status_code, 200)
        self.assertEqual(list(classroom.students.all()), [self.student])

        response = self.client.post(url, {"studentId": self.other_teacher.id}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_teachers_only_see_their_classes(self):
        Classroom.objects.create(name="Mine", teacher=self.teacher)
        Classroom.objects.create(name="Theirs", teacher=self.other_teacher)
        response = self.client.get(reverse("classes-list"))
        self.assertEqual([c["name"] for c in response.data], ["Mine"])

    def test_students_have_no_access(self):
        self.client.force_authenticate(user=self.student)
        self.assertEqual(self.client.get(reverse("classes-list")).status_code, 403)


class AdminStatsTests(TestCase):
    def test_counts(self):
        boss = User.objects.create_user(username="b", email="b@example.com", password="pass12345", role=User.Role.BOSS)
        student = User.objects.create_user(username="s", email="s@example.com", password="pass12345")
        exam = Exam.objects.create(title="Live", category="SAT", is_active=True)
        Exam.objects.create(title="Draft", category="SAT")
        booking = Booking.objects.create(student=student, exam=exam, start_at=timezone.now())
        Attempt.objects.create(booking=booking, student=student, exam=exam, status=Attempt.Status.IN_PROGRESS)

        client = APIClient()
        client.force_authenticate(user=boss)
        response = client.get(reverse("admin-stats"))
        self.assertEqual(response.data, {
            "total_exams": 2,
            "active_exams": 1,
            "total_students": 1,
            "attempts_in_progress": 1,
            "pending_grading": 0,
        })

        client.force_authenticate(user=student)
        self.assertEqual(client.get(reverse("admin-stats")).status_code, 403)
