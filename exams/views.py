import logging

from django.db import transaction
from rest_framework import mixins, viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from assessments.permissions import IsAdminRole
from cores.exceptions import Conflict
from cores.models import AuditLog, PlatformSetting
from .demo_exams import DEMO_EXAMS, seed_demo_exam
from .models import Exam, Section, Question
from .serializers import (
    ExamSerializer, ExamDetailSerializer, ExamListSerializer, ExamPublicDetailSerializer,
    SectionSerializer, QuestionSerializer,
)

logger = logging.getLogger(__name__)


class ExamViewSet(viewsets.ModelViewSet):
    queryset = Exam.objects.all().prefetch_related('sections')

    # Enable search on title and track
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'track']

    def get_queryset(self):
        queryset = super().get_queryset()
        # Students only ever see what is open for booking
        if not self.request.user.is_staff_role:
            queryset = queryset.filter(is_active=True)
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        return queryset

    def get_serializer_class(self):
        # Answer keys are for staff only
        staff = self.request.user.is_staff_role
        if self.action == 'retrieve':
            return ExamDetailSerializer if staff else ExamPublicDetailSerializer
        if self.action == 'list' and not staff:
            return ExamListSerializer
        return ExamSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.IsAuthenticated()]
        return [IsAdminRole()]

    def perform_create(self, serializer):
        exam = serializer.save(created_by=self.request.user)
        AuditLog.record(self.request.user, 'CREATE', exam, f"Created exam {exam.title}")

    def perform_update(self, serializer):
        exam = serializer.save()
        AuditLog.record(self.request.user, 'UPDATE', exam, f"Updated exam {exam.title}")

    def perform_destroy(self, instance):
        if instance.bookings.exists():
            raise Conflict("Exam has bookings and cannot be deleted")
        AuditLog.record(self.request.user, 'DELETE', instance, f"Deleted exam {instance.title}")
        instance.delete()

    @action(detail=True, methods=['post'], url_path='toggle-active')
    def toggle_active(self, request, pk=None):
        exam = self.get_object()
        exam.is_active = not exam.is_active
        exam.save(update_fields=['is_active'])
        state = "activated" if exam.is_active else "deactivated"
        AuditLog.record(request.user, 'UPDATE', exam, f"Exam {state}")
        return Response({"id": exam.id, "isActive": exam.is_active})

    @action(detail=True, methods=['get', 'post'], url_path='sections')
    def sections(self, request, pk=None):
        """
        GET lists the exam's sections in delivery order.
        POST adds a section: { "type": "READING", "title": ..., "durationMin": 60 }
        """
        exam = self.get_object()
        if request.method == 'GET':
            return Response(SectionSerializer(exam.ordered_sections(), many=True).data)

        data = request.data.copy()
        data.setdefault('durationMin', PlatformSetting.load().default_section_duration)
        serializer = SectionSerializer(data=data, context={'exam': exam})
        serializer.is_valid(raise_exception=True)
        section = serializer.save(exam=exam)
        return Response(SectionSerializer(section).data, status=status.HTTP_201_CREATED)


class SectionViewSet(mixins.RetrieveModelMixin, mixins.UpdateModelMixin,
                     mixins.DestroyModelMixin, viewsets.GenericViewSet):
    # Sections are created through /exams/<id>/sections/
    queryset = Section.objects.select_related('exam').prefetch_related('questions')
    serializer_class = SectionSerializer
    permission_classes = [IsAdminRole]

    @action(detail=True, methods=['get', 'post'], url_path='questions')
    def questions(self, request, pk=None):
        section = self.get_object()
        if request.method == 'GET':
            return Response(QuestionSerializer(section.questions.all(), many=True).data)

        serializer = QuestionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        question = serializer.save(section=section)
        return Response(QuestionSerializer(question).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='import-questions')
    def import_questions(self, request, pk=None):
        """
        Bulk-add questions from JSON.
        Payload: { "questions": [ { "qtype": "MCQ_SINGLE", "prompt": {...}, ... }, ... ] }
        All rows are validated before anything is written.
        """
        section = self.get_object()
        rows = request.data.get('questions')
        if not isinstance(rows, list) or not rows:
            return Response({"error": "questions must be a non-empty list"}, status=status.HTTP_400_BAD_REQUEST)

        serializer = QuestionSerializer(data=rows, many=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            serializer.save(section=section)
        logger.info("Imported %s questions into section %s", len(rows), section.id)
        return Response({"status": f"Successfully imported {len(rows)} questions"}, status=status.HTTP_201_CREATED)


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.all()
    serializer_class = QuestionSerializer
    permission_classes = [IsAdminRole]
    http_method_names = ['get', 'put', 'patch', 'delete']

    def get_queryset(self):
        queryset = super().get_queryset()
        # Filter by section if provided ?section_id=1
        section_id = self.request.query_params.get('section_id')
        if section_id:
            queryset = queryset.filter(section_id=section_id)
        return queryset


class SeedExamView(APIView):
    """Load a demo exam by slug. Running it twice leaves a single copy."""
    permission_classes = [IsAdminRole]

    def post(self, request, slug):
        if slug not in DEMO_EXAMS:
            return Response({"error": f"Unknown demo exam '{slug}'"}, status=status.HTTP_404_NOT_FOUND)
        exam, created = seed_demo_exam(slug, created_by=request.user)
        AuditLog.record(request.user, 'SEED', exam, f"Seeded {slug}")
        return Response(
            {"examId": exam.id, "slug": slug, "created": created},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
