from django.contrib import admin

from .models import Attempt, AttemptSection, BandMap, Booking


class AttemptSectionInline(admin.TabularInline):
    model = AttemptSection
    extra = 0
    fields = ('section', 'status', 'raw_score', 'max_score', 'band_score', 'graded_by')
    readonly_fields = ('raw_score', 'max_score')


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('student', 'exam', 'teacher', 'start_at', 'status')
    list_filter = ('status',)


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'exam', 'status', 'band_overall', 'submitted_at')
    list_filter = ('status',)
    inlines = [AttemptSectionInline]


@admin.register(BandMap)
class BandMapAdmin(admin.ModelAdmin):
    list_display = ('exam_type', 'section', 'min_raw', 'max_raw', 'band')
    list_filter = ('exam_type', 'section')
