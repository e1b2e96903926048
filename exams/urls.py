from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ExamViewSet, SectionViewSet, QuestionViewSet, SeedExamView

router = DefaultRouter()
router.register(r'exams', ExamViewSet, basename='exams')
router.register(r'sections', SectionViewSet, basename='sections')
router.register(r'questions', QuestionViewSet, basename='questions')

urlpatterns = [
    path('admin/seed/<slug:slug>/', SeedExamView.as_view(), name='seed-exam'),
    path('', include(router.urls)),
]
