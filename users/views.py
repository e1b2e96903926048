from rest_framework import generics, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model

from exams.models import Exam
from assessments.models import Attempt, AttemptSection
from assessments.permissions import IsGraderOrAdmin, IsStaffRole

from .models import Classroom
from .serializers import (
    RegisterSerializer,
    CustomTokenObtainPairSerializer,
    UserSerializer,
    ClassroomSerializer,
    AddStudentSerializer,
)

User = get_user_model()

# --- Authentication Views ---
class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

class CustomLoginView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer

class UserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user

# --- Classes (teacher rosters) ---
class ClassroomViewSet(viewsets.ModelViewSet):
    """
    Teachers manage their own classes; staff roles see every class.
    Booking a student as a teacher requires the student to be in one of these.
    """
    serializer_class = ClassroomSerializer
    permission_classes = [IsGraderOrAdmin]
    http_method_names = ['get', 'post', 'delete']

    def get_queryset(self):
        queryset = Classroom.objects.select_related('teacher').order_by('name')
        if self.request.user.is_staff_role:
            return queryset
        return queryset.filter(teacher=self.request.user)

    def perform_create(self, serializer):
        serializer.save(teacher=self.request.user)

    @action(detail=True, methods=['post'], url_path='add-student')
    def add_student(self, request, pk=None):
        classroom = self.get_object()
        serializer = AddStudentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        student = serializer.validated_data['studentId']
        classroom.students.add(student)
        return Response({"status": f"Added {student.email} to {classroom.name}"}, status=status.HTTP_200_OK)

# --- Dashboard Stats ---
class AdminStatsView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request):
        stats = {
            "total_exams": Exam.objects.count(),
            "active_exams": Exam.objects.filter(is_active=True).count(),
            "total_students": User.objects.filter(role=User.Role.STUDENT).count(),
            "attempts_in_progress": Attempt.objects.filter(status=Attempt.Status.IN_PROGRESS).count(),
            "pending_grading": AttemptSection.objects.pending_grading().count(),
        }
        return Response(stats)
