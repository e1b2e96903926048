# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models

class User(AbstractUser):
    class Role(models.TextChoices):
        ADMIN = "ADMIN", "Admin"
        BOSS = "BOSS", "Boss"
        BRANCH_ADMIN = "BRANCH_ADMIN", "Branch Admin"
        TEACHER = "TEACHER", "Teacher"
        STUDENT = "STUDENT", "Student"

    STAFF_ROLES = (Role.ADMIN, Role.BOSS, Role.BRANCH_ADMIN)

    # Enforce unique email for authentication
    email = models.EmailField(unique=True)

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT)
    phone_number = models.CharField(max_length=15, blank=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    @property
    def is_student(self):
        return self.role == self.Role.STUDENT

    @property
    def is_teacher(self):
        return self.role == self.Role.TEACHER

    @property
    def is_staff_role(self):
        return self.role in self.STAFF_ROLES or self.is_superuser

    def __str__(self):
        return self.email


class Classroom(models.Model):
    """A teacher's class; bookings by a teacher are limited to its students."""
    name = models.CharField(max_length=100)
    teacher = models.ForeignKey(User, on_delete=models.CASCADE, related_name='classrooms')
    students = models.ManyToManyField(User, related_name='enrolled_classrooms', blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.teacher})"
