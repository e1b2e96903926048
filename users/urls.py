from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import (
    RegisterView,
    CustomLoginView,
    AdminStatsView,
    ClassroomViewSet,
    UserProfileView,
)

router = SimpleRouter()
router.register(r'classes', ClassroomViewSet, basename='classes')

urlpatterns = [
    # --- Authentication ---
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/login/', CustomLoginView.as_view(), name='login'),

    # --- Dashboard ---
    path('admin/stats/', AdminStatsView.as_view(), name='admin-stats'),

    path('profile/', UserProfileView.as_view(), name='user-profile'),
    path('', include(router.urls)),
]
