import logging

from django.db import transaction
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from cores.context import RequestContext
from cores.models import AuditLog
from . import services
from .models import BandMap
from .permissions import IsAdminRole, IsGraderOrAdmin, IsStudent
from .serializers import (
    AttemptResultSerializer, AttemptReviewSerializer, AttemptSectionSerializer,
    BandMapSerializer, BookingCreateSerializer, BookingSerializer,
    EndSectionSerializer, GradeSerializer, GradingDetailSerializer,
    GradingQueueSerializer, SaveAnswersSerializer, SectionKeySerializer,
    StartAttemptSerializer,
)

logger = logging.getLogger(__name__)


def _section_key(data):
    return {"section_id": data.get('sectionId'), "section_type": data.get('sectionType')}


# --- Bookings ---

class BookingListCreateView(views.APIView):
    """
    GET  ?role=student|teacher lists the caller's bookings.
    POST books a student onto an exam (teachers: only students in their classes).
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsGraderOrAdmin()]
        return [permissions.IsAuthenticated()]

    def get(self, request):
        ctx = RequestContext.from_request(request)
        bookings = services.bookings_for(ctx, request.query_params.get('role'))
        return Response(BookingSerializer(bookings, many=True).data)

    def post(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = services.create_booking(
            RequestContext.from_request(request),
            student_id=data['studentId'],
            exam_id=data['examId'],
            start_at=data['startAt'],
            section_ids=data['sections'],
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


# --- STUDENT VIEWS ---

class AttemptStartView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request):
        serializer = StartAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attempt, created = services.start_attempt(RequestContext.from_request(request), serializer.validated_data['bookingId'])
        return Response(
            {"attemptId": attempt.id, "status": attempt.status, "created": created},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class AttemptDetailView(views.APIView):
    """Bootstrap payload; the first load starts the clock."""
    permission_classes = [IsStudent]

    def get(self, request, attempt_id):
        return Response(services.bootstrap_attempt(RequestContext.from_request(request), attempt_id))


class AttemptSaveView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        serializer = SaveAnswersSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attempt_section = services.save_section_answers(
            RequestContext.from_request(request), attempt_id,
            answers=serializer.validated_data['answers'],
            **_section_key(serializer.validated_data),
        )
        return Response({"success": True, "sectionId": attempt_section.section_id, "status": attempt_section.status})


class SectionStartView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        serializer = SectionKeySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attempt_section, remaining = services.start_section(
            RequestContext.from_request(request), attempt_id, **_section_key(serializer.validated_data)
        )
        return Response({
            "section": AttemptSectionSerializer(attempt_section).data,
            "durationMin": attempt_section.section.duration_min,
            "timeRemaining": remaining,
        })


class SectionEndView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        serializer = EndSectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attempt_section = services.end_section(
            RequestContext.from_request(request), attempt_id,
            answers=serializer.validated_data.get('answers'),
            **_section_key(serializer.validated_data),
        )
        return Response({"section": AttemptSectionSerializer(attempt_section).data})


class AttemptSubmitView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        attempt = services.submit_attempt(RequestContext.from_request(request), attempt_id)
        return Response(AttemptResultSerializer(attempt).data)


class AttemptResultsView(views.APIView):
    def get(self, request, attempt_id):
        attempt, full_review = services.attempt_for_results(RequestContext.from_request(request), attempt_id)
        serializer_class = AttemptReviewSerializer if full_review else AttemptResultSerializer
        return Response(serializer_class(attempt).data)


# --- GRADING ---

class GradingQueueView(generics.ListAPIView):
    """?status=pending (default) or ?status=all"""
    permission_classes = [IsGraderOrAdmin]
    serializer_class = GradingQueueSerializer

    def get_queryset(self):
        return services.grading_queue(
            RequestContext.from_request(self.request), self.request.query_params.get('status', 'pending')
        )


class AttemptSectionDetailView(views.APIView):
    permission_classes = [IsGraderOrAdmin]

    def get(self, request, pk):
        attempt_section = services.grading_detail(RequestContext.from_request(request), pk)
        return Response(GradingDetailSerializer(attempt_section).data)


class AttemptSectionGradeView(views.APIView):
    permission_classes = [IsGraderOrAdmin]

    def post(self, request, pk):
        serializer = GradeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        attempt_section = services.grade_section(
            RequestContext.from_request(request), pk,
            band_score=data['bandScore'],
            rubric=data.get('rubric'),
            feedback=data.get('feedback', ''),
        )
        return Response({
            "section": AttemptSectionSerializer(attempt_section).data,
            "attemptStatus": attempt_section.attempt.status,
            "bandOverall": attempt_section.attempt.band_overall,
        })


# --- ADMIN VIEWS ---

class BandMapView(views.APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        queryset = BandMap.objects.all()
        exam_type = request.query_params.get('examType')
        if exam_type:
            queryset = queryset.filter(exam_type=exam_type)
        return Response({"bandMaps": BandMapSerializer(queryset, many=True).data})

    def post(self, request):
        serializer = BandMapSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        band_map = serializer.save()
        AuditLog.record(request.user, 'CREATE', band_map, str(band_map))
        return Response(BandMapSerializer(band_map).data, status=status.HTTP_201_CREATED)

    def delete(self, request):
        band_map = BandMap.objects.filter(pk=request.query_params.get('id') or 0).first()
        if band_map is None:
            return Response({"error": "Band mapping not found"}, status=status.HTTP_404_NOT_FOUND)
        AuditLog.record(request.user, 'DELETE', band_map, str(band_map))
        band_map.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class BandMapImportView(views.APIView):
    """Bulk import: { "items": [ {examType, section, minRaw, maxRaw, band}, ... ] }"""
    permission_classes = [IsAdminRole]

    def post(self, request):
        items = request.data.get('items')
        if not isinstance(items, list) or not items:
            return Response({"error": "At least one band mapping is required"}, status=status.HTTP_400_BAD_REQUEST)
        serializer = BandMapSerializer(data=items, many=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            serializer.save()
        logger.info("Imported %s band mappings", len(items))
        return Response({"count": len(items)}, status=status.HTTP_201_CREATED)
