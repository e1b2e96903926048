from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Accounts, classes & dashboard stats ---
    path('api/', include('users.urls')),

    # --- Attempt runtime, grading & band maps ---
    path('api/', include('assessments.urls')),

    # --- Settings & audit trail ---
    path('api/', include('cores.urls')),

    # --- Exam authoring & demo fixtures ---
    path('api/', include('exams.urls')),
]
