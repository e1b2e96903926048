from django.contrib import admin

from .models import Exam, Section, Question


class SectionInline(admin.TabularInline):
    model = Section
    extra = 0


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ('title', 'category', 'track', 'is_active', 'created_at')
    list_filter = ('category', 'is_active')
    inlines = [SectionInline]


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ('id', 'section', 'qtype', 'max_score', 'order')
    list_filter = ('qtype',)

admin.site.register(Section)
