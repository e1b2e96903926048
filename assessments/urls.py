from django.urls import path
from .views import (
    AttemptDetailView, AttemptResultsView, AttemptSaveView, AttemptSectionDetailView,
    AttemptSectionGradeView, AttemptStartView, AttemptSubmitView, BandMapImportView,
    BandMapView, BookingListCreateView, GradingQueueView, SectionEndView, SectionStartView,
)

urlpatterns = [
    path('bookings/', BookingListCreateView.as_view(), name='bookings'),

    # --- Student attempt flow ---
    path('attempts/', AttemptStartView.as_view(), name='attempt-start'),
    path('attempts/<int:attempt_id>/', AttemptDetailView.as_view(), name='attempt-detail'),
    path('attempts/<int:attempt_id>/save/', AttemptSaveView.as_view(), name='attempt-save'),
    path('attempts/<int:attempt_id>/section/start/', SectionStartView.as_view(), name='attempt-section-start'),
    path('attempts/<int:attempt_id>/section/end/', SectionEndView.as_view(), name='attempt-section-end'),
    path('attempts/<int:attempt_id>/submit/', AttemptSubmitView.as_view(), name='attempt-submit'),
    path('attempts/<int:attempt_id>/results/', AttemptResultsView.as_view(), name='attempt-results'),

    # --- Grading ---
    path('grading/queue/', GradingQueueView.as_view(), name='grading-queue'),
    path('attempt-sections/<int:pk>/', AttemptSectionDetailView.as_view(), name='attempt-section-detail'),
    path('attempt-sections/<int:pk>/grade/', AttemptSectionGradeView.as_view(), name='attempt-section-grade'),

    # --- Band maps (Admin) ---
    path('admin/bandmap/', BandMapView.as_view(), name='bandmap'),
    path('admin/bandmap/import/', BandMapImportView.as_view(), name='bandmap-import'),
]
