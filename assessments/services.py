"""
Attempt runtime: bookings, bootstrap, saving, section navigation, submit
and grading. Every function takes the RequestContext of the caller.
"""
import logging
from collections import Counter
from datetime import timedelta
from decimal import ROUND_FLOOR

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from cores.exceptions import Conflict
from cores.models import AuditLog, PlatformSetting
from exams.models import Exam
from users.models import Classroom
from . import navigation
from .models import Attempt, AttemptSection, BandMap, Booking
from .parts import split_parts
from .scoring import question_points, score_section

logger = logging.getLogger(__name__)

User = get_user_model()

PART_SCORED_TYPES = ("LISTENING", "READING")


# --- Bookings ---

def create_booking(ctx, *, student_id, exam_id, start_at, section_ids=None):
    student = User.objects.filter(pk=student_id).first()
    if student is None:
        raise NotFound("Student not found")
    if student.role != User.Role.STUDENT:
        raise ValidationError("Only students can be booked onto exams")

    exam = Exam.objects.filter(pk=exam_id).first()
    if exam is None:
        raise NotFound("Exam not found")
    if not exam.is_active:
        raise ValidationError("Exam is not active")

    if ctx.role == User.Role.TEACHER and not ctx.is_staff_role:
        in_class = Classroom.objects.filter(teacher=ctx.user, students=student).exists()
        if not in_class:
            raise PermissionDenied("Student is not in any of your classes")

    exam_section_ids = [s.id for s in exam.ordered_sections()]
    if not exam_section_ids:
        raise ValidationError("Exam has no sections")
    if section_ids:
        unknown = set(section_ids) - set(exam_section_ids)
        if unknown:
            raise ValidationError(f"Sections {sorted(unknown)} do not belong to this exam")
        booked = [sid for sid in exam_section_ids if sid in set(section_ids)]
    else:
        booked = exam_section_ids

    window = timedelta(hours=PlatformSetting.load().booking_conflict_hours)
    clash = Booking.objects.filter(
        student=student,
        status__in=Booking.ACTIVE_STATUSES,
        start_at__gt=start_at - window,
        start_at__lt=start_at + window,
    ).first()
    if clash:
        logger.info("Booking conflict for student %s at %s (existing booking %s)", student.pk, start_at, clash.pk)
        raise Conflict("Student already has a booking within the conflict window")

    booking = Booking.objects.create(
        student=student,
        teacher=ctx.user if ctx.role == User.Role.TEACHER else None,
        exam=exam,
        sections=booked,
        start_at=start_at,
        status=Booking.Status.CONFIRMED,
    )
    AuditLog.record(ctx.user, 'BOOKING', booking, f"Booked {student.email} onto {exam.title}")
    return booking


def bookings_for(ctx, role=None):
    queryset = Booking.objects.select_related('student', 'teacher', 'exam', 'attempt')
    if role == 'student' or ctx.role == User.Role.STUDENT:
        return queryset.filter(student=ctx.user)
    if role == 'teacher' or not ctx.is_staff_role:
        return queryset.filter(teacher=ctx.user)
    return queryset


# --- Loading helpers ---

def _student_attempt(ctx, attempt_id, lock=False):
    queryset = Attempt.objects.select_for_update() if lock else Attempt.objects.all()
    attempt = queryset.select_related('exam', 'booking').filter(pk=attempt_id, student=ctx.user).first()
    if attempt is None:
        raise NotFound("Attempt not found")
    return attempt


def _load_sections(attempt):
    order = {section.id: index for index, section in enumerate(attempt.exam.ordered_sections())}
    sections = list(attempt.sections.select_related('section').prefetch_related('section__questions'))
    sections.sort(key=lambda a: order.get(a.section_id, len(order)))
    return sections


def _current_section_id(sections):
    open_sections = [a for a in sections if a.status == AttemptSection.Status.IN_PROGRESS]
    if not open_sections:
        return None
    return max(open_sections, key=lambda a: a.started_at).section_id


def _policy(attempt, sections):
    states = [{"id": a.section_id, "type": a.section.type, "locked": a.is_locked} for a in sections]
    return navigation.NavigationPolicy(attempt.exam.navigation_mode, states, _current_section_id(sections))


def _resolve_section(sections, section_id=None, section_type=None):
    if section_id is not None:
        for attempt_section in sections:
            if attempt_section.section_id == section_id:
                return attempt_section
        raise NotFound("Section not found in this attempt")
    if not section_type:
        raise ValidationError("sectionId or sectionType is required")
    matches = [a for a in sections if a.section.type == section_type]
    if not matches:
        raise NotFound("Section not found in this attempt")
    if len(matches) > 1:
        raise ValidationError(f"More than one {section_type} section; send sectionId instead")
    return matches[0]


def _deadline(attempt, attempt_section, sections):
    if attempt.exam.navigation_mode == navigation.FREE:
        if attempt.started_at is None:
            return None
        return attempt.started_at + timedelta(minutes=sum(a.section.duration_min for a in sections))
    if attempt_section.started_at is None:
        return None
    return attempt_section.started_at + timedelta(minutes=attempt_section.section.duration_min)


def _time_remaining(ctx, attempt, attempt_section, sections):
    if attempt_section.is_locked:
        return 0
    deadline = _deadline(attempt, attempt_section, sections)
    if deadline is None:
        if attempt.exam.navigation_mode == navigation.FREE:
            return sum(a.section.duration_min for a in sections) * 60
        return attempt_section.section.duration_min * 60
    return max(0, int((deadline - ctx.now).total_seconds()))


def _lock(attempt_section, now, status=AttemptSection.Status.LOCKED):
    attempt_section.status = status
    attempt_section.ended_at = attempt_section.ended_at or now
    attempt_section.started_at = attempt_section.started_at or now
    attempt_section.save(update_fields=['status', 'ended_at', 'started_at'])


def _reject_if_expired(ctx, attempt, attempt_section, sections):
    deadline = _deadline(attempt, attempt_section, sections)
    if deadline is None:
        return
    grace = timedelta(seconds=PlatformSetting.load().section_grace_seconds)
    if ctx.now > deadline + grace:
        _lock(attempt_section, ctx.now)
        logger.warning(
            "Rejected late write to attempt %s section %s (deadline %s)",
            attempt.pk, attempt_section.section_id, deadline,
        )
        raise Conflict("Section time has expired")


def _ensure_started(attempt, now):
    if attempt.status == Attempt.Status.NOT_STARTED:
        attempt.status = Attempt.Status.IN_PROGRESS
        attempt.started_at = now
        attempt.save(update_fields=['status', 'started_at'])


def _ensure_open(attempt):
    if attempt.is_closed:
        raise Conflict("Attempt has already been submitted")


def _check_answer_keys(attempt_section, answers):
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object keyed by question id")
    known = {str(q.id) for q in attempt_section.section.questions.all()}
    unknown = sorted(set(map(str, answers)) - known)
    if unknown:
        raise ValidationError(f"Questions {', '.join(unknown)} are not part of this section")
    return {str(key): value for key, value in answers.items()}


def _start_section_clock(attempt_section, now):
    if attempt_section.status == AttemptSection.Status.NOT_STARTED:
        attempt_section.status = AttemptSection.Status.IN_PROGRESS
        attempt_section.started_at = now


# --- Attempt lifecycle ---

@transaction.atomic
def start_attempt(ctx, booking_id):
    """Create the attempt for a booking, or return the one that exists."""
    booking = Booking.objects.select_related('exam').filter(pk=booking_id, student=ctx.user).first()
    if booking is None:
        raise NotFound("Booking not found")

    existing = Attempt.objects.filter(booking=booking).first()
    if existing:
        return existing, False
    if booking.status == Booking.Status.CANCELLED:
        raise ValidationError("Booking has been cancelled")

    attempt = Attempt.objects.create(booking=booking, student=ctx.user, exam=booking.exam)
    section_ids = booking.sections or [s.id for s in booking.exam.ordered_sections()]
    AttemptSection.objects.bulk_create([
        AttemptSection(attempt=attempt, section_id=section_id) for section_id in section_ids
    ])
    booking.status = Booking.Status.IN_PROGRESS
    booking.save(update_fields=['status'])
    logger.info("Attempt %s created for booking %s", attempt.pk, booking.pk)
    return attempt, True


def _public_question(question, reveal):
    data = {
        "id": question.id,
        "qtype": question.qtype,
        "prompt": question.prompt,
        "options": question.options,
        "maxScore": question.max_score,
        "order": question.order,
    }
    if reveal:
        data["answerKey"] = question.answer_key
        data["explanation"] = question.explanation
    return data


def _isoformat(value):
    return value.isoformat() if value else None


def bootstrap_attempt(ctx, attempt_id):
    """Everything the runner needs to render and resume an attempt."""
    attempt = _student_attempt(ctx, attempt_id)
    _ensure_started(attempt, ctx.now)
    sections = _load_sections(attempt)
    policy = _policy(attempt, sections)
    reveal = attempt.is_closed
    category = attempt.exam.category

    type_counts = Counter(a.section.type for a in sections)
    saved_answers = {}
    payload_sections = []
    for attempt_section in sections:
        section = attempt_section.section
        questions = list(section.questions.all())
        instruction = section.instruction if isinstance(section.instruction, dict) else {}
        payload_sections.append({
            "id": section.id,
            "attemptSectionId": attempt_section.id,
            "type": section.type,
            "title": section.title,
            "durationMin": section.duration_min,
            "order": section.order,
            "instruction": instruction.get("text", ""),
            "passage": instruction.get("passage"),
            "audio": instruction.get("audio"),
            "introduction": instruction.get("introduction"),
            "status": attempt_section.status,
            "startedAt": _isoformat(attempt_section.started_at),
            "endedAt": _isoformat(attempt_section.ended_at),
            "timeRemaining": _time_remaining(ctx, attempt, attempt_section, sections),
            "locked": attempt_section.is_locked,
            "selectable": policy.is_selectable(section.id),
            "editable": not reveal and policy.is_editable(section.id),
            "parts": split_parts(category, section.type, [{"id": q.id, "prompt": q.prompt} for q in questions]),
            "questions": [_public_question(q, reveal) for q in questions],
        })
        saved_answers[str(section.id)] = attempt_section.answers or {}
        if type_counts[section.type] == 1:
            saved_answers[section.type] = attempt_section.answers or {}

    return {
        "id": attempt.id,
        "examId": attempt.exam_id,
        "examTitle": attempt.exam.title,
        "examCategory": category,
        "navigationMode": attempt.exam.navigation_mode,
        "status": attempt.status,
        "startedAt": _isoformat(attempt.started_at),
        "submittedAt": _isoformat(attempt.submitted_at),
        "autosaveDebounceSeconds": PlatformSetting.load().autosave_debounce_seconds,
        "sections": payload_sections,
        "savedAnswers": saved_answers,
    }


def save_section_answers(ctx, attempt_id, *, answers, section_id=None, section_type=None):
    """Overwrite one section's answers. Last writer wins."""
    attempt = _student_attempt(ctx, attempt_id)
    _ensure_open(attempt)
    _ensure_started(attempt, ctx.now)
    sections = _load_sections(attempt)
    attempt_section = _resolve_section(sections, section_id, section_type)
    if attempt_section.is_locked:
        raise Conflict("Section is locked")
    answers = _check_answer_keys(attempt_section, answers)
    _reject_if_expired(ctx, attempt, attempt_section, sections)
    if not _policy(attempt, sections).is_editable(attempt_section.section_id):
        raise Conflict("Section is not open for editing")

    attempt_section.answers = answers
    _start_section_clock(attempt_section, ctx.now)
    attempt_section.save(update_fields=['answers', 'status', 'started_at'])
    return attempt_section


def start_section(ctx, attempt_id, *, section_id=None, section_type=None):
    attempt = _student_attempt(ctx, attempt_id)
    _ensure_open(attempt)
    _ensure_started(attempt, ctx.now)
    sections = _load_sections(attempt)
    attempt_section = _resolve_section(sections, section_id, section_type)

    if attempt_section.is_locked:
        raise Conflict("Section is locked")
    policy = _policy(attempt, sections)
    if not policy.is_selectable(attempt_section.section_id):
        raise Conflict("Section is not available yet")

    with transaction.atomic():
        closing = set(policy.sections_locked_by_entering(attempt_section.section_id))
        for other in sections:
            if other.section_id in closing:
                _lock(other, ctx.now)
        if closing:
            logger.info("Attempt %s entered %s; locked sections %s", attempt.pk, attempt_section.section.type, sorted(closing))

        _start_section_clock(attempt_section, ctx.now)
        attempt_section.save(update_fields=['status', 'started_at'])

    return attempt_section, _time_remaining(ctx, attempt, attempt_section, sections)


def end_section(ctx, attempt_id, *, answers=None, section_id=None, section_type=None):
    """Final snapshot for one section/module; it can no longer be edited."""
    attempt = _student_attempt(ctx, attempt_id)
    _ensure_open(attempt)
    _ensure_started(attempt, ctx.now)
    sections = _load_sections(attempt)
    attempt_section = _resolve_section(sections, section_id, section_type)

    if attempt_section.is_locked:
        raise Conflict("Section has already been submitted")
    if answers is not None:
        answers = _check_answer_keys(attempt_section, answers)
    _reject_if_expired(ctx, attempt, attempt_section, sections)
    if not _policy(attempt, sections).is_editable(attempt_section.section_id):
        raise Conflict("Section is not open for editing")

    if answers is not None:
        attempt_section.answers = answers
        attempt_section.save(update_fields=['answers'])
    _lock(attempt_section, ctx.now)
    logger.info("Attempt %s: section %s submitted", attempt.pk, attempt_section.section_id)
    return attempt_section


# --- Scoring ---

def _part_scores(category, attempt_section, questions):
    if category != Exam.Category.IELTS or attempt_section.section.type not in PART_SCORED_TYPES:
        return None
    by_id = {q.id: q for q in questions}
    answers = attempt_section.answers or {}
    scores = {}
    for part in split_parts(category, attempt_section.section.type, [{"id": q.id, "prompt": q.prompt} for q in questions]):
        total = sum(question_points(by_id[qid], answers) for qid in part["questionIds"])
        scores[part["key"]] = float(total)
    return scores


def score_attempt_section(attempt_section, category, now):
    """Auto-score one submitted section. Manual sections keep waiting for a teacher."""
    questions = list(attempt_section.section.questions.all())
    raw, maximum = score_section(questions, attempt_section.answers or {})
    attempt_section.raw_score = raw
    attempt_section.max_score = maximum
    attempt_section.part_scores = _part_scores(category, attempt_section, questions)

    if attempt_section.requires_manual_grading:
        attempt_section.status = AttemptSection.Status.SUBMITTED
    else:
        floored = int(raw.to_integral_value(rounding=ROUND_FLOOR))
        attempt_section.band_score = BandMap.lookup(category, attempt_section.section.type, floored)
        attempt_section.status = AttemptSection.Status.GRADED
        attempt_section.graded_at = now
    attempt_section.save()


def recompute_overall(attempt):
    """Close out the attempt once nothing is waiting for a teacher."""
    sections = list(attempt.sections.select_related('section').prefetch_related('section__questions'))
    if any(a.status != AttemptSection.Status.GRADED for a in sections):
        return attempt
    attempt.band_overall = PlatformSetting.load().aggregate_bands([a.band_score for a in sections])
    attempt.status = Attempt.Status.GRADED
    attempt.save(update_fields=['band_overall', 'status'])
    logger.info("Attempt %s graded, overall band %s", attempt.pk, attempt.band_overall)
    return attempt


@transaction.atomic
def submit_attempt(ctx, attempt_id):
    # Row lock: a concurrent submit waits here and then sees the attempt closed
    attempt = _student_attempt(ctx, attempt_id, lock=True)
    _ensure_open(attempt)
    _ensure_started(attempt, ctx.now)
    sections = _load_sections(attempt)
    if not _policy(attempt, sections).can_submit_attempt():
        raise ValidationError("Submit every module before the last one first")

    for attempt_section in sections:
        attempt_section.ended_at = attempt_section.ended_at or ctx.now
        score_attempt_section(attempt_section, attempt.exam.category, ctx.now)

    attempt.status = Attempt.Status.SUBMITTED
    attempt.submitted_at = ctx.now
    attempt.save(update_fields=['status', 'submitted_at'])

    attempt.booking.status = Booking.Status.COMPLETED
    attempt.booking.save(update_fields=['status'])

    recompute_overall(attempt)
    AuditLog.record(ctx.user, 'SUBMIT', attempt, f"Submitted {attempt.exam.title}")

    logger.info("Attempt %s submitted by %s", attempt.pk, ctx.user.pk)
    return attempt


# --- Grading ---

def _grading_target(ctx, attempt_section_id):
    attempt_section = (
        AttemptSection.objects
        .select_related('attempt__booking', 'attempt__exam', 'attempt__student', 'section')
        .filter(pk=attempt_section_id)
        .first()
    )
    if attempt_section is None:
        raise NotFound("Attempt section not found")
    if not ctx.is_staff_role and attempt_section.attempt.booking.teacher_id != ctx.user.pk:
        raise PermissionDenied("You can only grade your own students")
    return attempt_section


def grading_detail(ctx, attempt_section_id):
    return _grading_target(ctx, attempt_section_id)


def grading_queue(ctx, status='pending'):
    queryset = AttemptSection.objects.select_related('attempt__student', 'attempt__exam', 'section')
    if status == 'all':
        queryset = queryset.needs_manual_grading().filter(
            status__in=[AttemptSection.Status.SUBMITTED, AttemptSection.Status.GRADED]
        )
    else:
        queryset = queryset.pending_grading()
    if not ctx.is_staff_role:
        queryset = queryset.filter(attempt__booking__teacher=ctx.user)
    return queryset.order_by('attempt__submitted_at', 'id')


def grade_section(ctx, attempt_section_id, *, band_score, rubric=None, feedback=""):
    attempt_section = _grading_target(ctx, attempt_section_id)
    if attempt_section.status not in (AttemptSection.Status.SUBMITTED, AttemptSection.Status.GRADED):
        raise Conflict("Section has not been submitted yet")

    with transaction.atomic():
        attempt_section.band_score = band_score
        attempt_section.rubric = rubric
        attempt_section.feedback = feedback or ""
        attempt_section.status = AttemptSection.Status.GRADED
        attempt_section.graded_by = ctx.user
        attempt_section.graded_at = ctx.now
        attempt_section.save()

        recompute_overall(attempt_section.attempt)
        AuditLog.record(ctx.user, 'GRADE', attempt_section, f"Band {band_score} for {attempt_section.section.type}")

    logger.info("Section %s graded %s by %s", attempt_section.pk, band_score, ctx.user.pk)
    return attempt_section


def attempt_for_results(ctx, attempt_id):
    """Owner sees a summary after submitting; their teacher and staff see the full review."""
    attempt = Attempt.objects.select_related('exam', 'booking', 'student').filter(pk=attempt_id).first()
    if attempt is None:
        raise NotFound("Attempt not found")
    if attempt.student_id == ctx.user.pk:
        if not attempt.is_closed:
            raise Conflict("Results are available after the attempt is submitted")
        return attempt, False
    if ctx.is_staff_role or attempt.booking.teacher_id == ctx.user.pk:
        return attempt, True
    raise NotFound("Attempt not found")
