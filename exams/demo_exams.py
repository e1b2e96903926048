"""
Demo exams that admins can load from the dashboard or with
``manage.py seed_exams``. Each loader is idempotent: an exam with the same
title is returned as-is instead of being created twice.
"""
import logging

from django.db import transaction

from assessments.models import BandMap
from .models import Exam, Section, Question

logger = logging.getLogger(__name__)

QType = Question.QType

# Academic IELTS conversion for 40-question Listening/Reading papers
IELTS_RAW_BANDS = [
    (39, 40, "9.0"), (37, 38, "8.5"), (35, 36, "8.0"), (32, 34, "7.5"),
    (30, 31, "7.0"), (26, 29, "6.5"), (23, 25, "6.0"), (18, 22, "5.5"),
    (16, 17, "5.0"), (13, 15, "4.5"), (10, 12, "4.0"), (6, 9, "3.5"),
    (4, 5, "3.0"), (2, 3, "2.5"), (1, 1, "1.0"), (0, 0, "0.0"),
]


def _mcq_block(count, start, text, choices, index_for):
    return [
        {
            "qtype": QType.MCQ_SINGLE,
            "prompt": {"text": f"Question {start + i}: {text}"},
            "options": {"choices": choices},
            "answer_key": {"index": index_for(i)},
        }
        for i in range(count)
    ]


def _reading_block(count, start, passage, text, choices):
    questions = _mcq_block(count, start, text, choices, lambda i: 0)
    for question in questions:
        question["prompt"]["passage"] = passage
    return questions


def ielts_mock_sample_1():
    listening = (
        _mcq_block(10, 1, "What is the main topic of the conversation?",
                   ["Making a hotel reservation", "Ordering food at a restaurant",
                    "Asking for directions", "Discussing travel plans"], lambda i: i % 4)
        + _mcq_block(10, 11, "What is the main purpose of this announcement?",
                     ["To inform about a schedule change", "To advertise a new service",
                      "To provide safety instructions", "To introduce a new staff member"], lambda i: (i + 1) % 4)
        + _mcq_block(10, 21, "What do the speakers agree about?",
                     ["The deadline should be extended", "The topic needs more research",
                      "The presentation format is suitable", "The group should meet more often"], lambda i: (i + 2) % 4)
        + _mcq_block(10, 31, "What is the key finding of the research?",
                     ["Climate affects migration", "Technology improves communication",
                      "Education reduces poverty", "Healthcare access increases life expectancy"], lambda i: (i + 3) % 4)
    )
    reading = (
        _reading_block(13, 1, "The History of Coffee\n\nCoffee originated in Ethiopia and was first "
                              "cultivated in the Arabian Peninsula.",
                       "Where did coffee originate?", ["Ethiopia", "Arabian Peninsula", "Brazil", "Europe"])
        + _reading_block(13, 14, "Urban Planning and Sustainable Development\n\nModern urban planning "
                                 "focuses on sustainable cities.",
                         "What is the main focus of modern urban planning?",
                         ["Creating sustainable cities", "Reducing population growth",
                          "Building more highways", "Increasing industrial zones"])
        + _reading_block(14, 27, "Cognitive Psychology and Memory Formation\n\nMemory formation involves "
                                 "the hippocampus and prefrontal cortex.",
                         "Which brain regions are involved in memory formation?",
                         ["Hippocampus and prefrontal cortex", "Cerebellum and brainstem",
                          "Thalamus and hypothalamus", "Amygdala and temporal lobe"])
    )
    return {
        "title": "IELTS Mock Test Sample 1",
        "category": Exam.Category.IELTS,
        "track": "ACADEMIC",
        "sections": [
            {"type": Section.Type.LISTENING, "title": "Listening Section", "duration_min": 30,
             "instruction": {"text": "The test is in four parts. Each recording is played once."},
             "questions": listening},
            {"type": Section.Type.READING, "title": "Reading Section", "duration_min": 60,
             "instruction": {"text": "You should spend about 20 minutes on each passage."},
             "questions": reading},
            {"type": Section.Type.WRITING, "title": "Writing Section", "duration_min": 60,
             "instruction": {"text": "Spend about 20 minutes on Task 1 and 40 minutes on Task 2."},
             "questions": [
                 {"qtype": QType.ESSAY, "prompt": {"text": "Task 1: Summarize the graph. Write at least 150 words."}},
                 {"qtype": QType.ESSAY, "prompt": {"text": "Task 2: Single-sex or mixed schools? Write at least 250 words."}},
             ]},
            {"type": Section.Type.SPEAKING, "title": "Speaking Section", "duration_min": 14,
             "instruction": {"text": "Part 1: interview. Part 2: long turn. Part 3: discussion."},
             "questions": [
                 {"qtype": QType.SHORT_TEXT, "prompt": {"text": "What is your full name?", "part": 1}},
                 {"qtype": QType.SHORT_TEXT, "prompt": {"text": "Where are you from?", "part": 1}},
                 {"qtype": QType.ESSAY, "prompt": {"text": "Describe a place that made a strong impression on you.", "part": 2}},
                 {"qtype": QType.SHORT_TEXT, "prompt": {"text": "Does tourism help local communities?", "part": 3}},
             ]},
        ],
        "band_maps": [
            (Exam.Category.IELTS, section_type, low, high, band)
            for section_type in (Section.Type.LISTENING, Section.Type.READING)
            for low, high, band in IELTS_RAW_BANDS
        ],
    }


def ge_demo():
    return {
        "title": "General English A2 - Demo Unit",
        "category": Exam.Category.GENERAL_ENGLISH,
        "track": "A2",
        "sections": [
            {"type": Section.Type.READING, "title": "Reading Comprehension", "duration_min": 15, "questions": [
                {"qtype": QType.TF,
                 "prompt": {"passage": "Emma lives in London and works at a bookstore.", "text": "Emma works at a library."},
                 "answer_key": {"value": False}, "explanation": "Emma works at a bookstore."},
                {"qtype": QType.MCQ_SINGLE,
                 "prompt": {"passage": "Tom usually takes the bus to work.", "text": "How does Tom go to work?"},
                 "options": {"choices": ["by car", "by bus", "on foot", "by train"]},
                 "answer_key": {"index": 1}},
                {"qtype": QType.MCQ_MULTI, "prompt": {"text": "Which of these are healthy breakfast options?"},
                 "options": {"choices": ["Fresh fruit", "Donuts", "Yogurt", "Candy"]},
                 "answer_key": {"indices": [0, 2]}},
            ]},
            {"type": Section.Type.LISTENING, "title": "Listening Comprehension", "duration_min": 15, "questions": [
                {"qtype": QType.TF,
                 "prompt": {"transcript": "The meeting will start at 9:30 in room 204.", "text": "The meeting starts at 9:30."},
                 "answer_key": {"value": True}},
                {"qtype": QType.SELECT,
                 "prompt": {"transcript": "Please bring your ID card and a pen.", "text": "What should you bring?"},
                 "options": {"choices": ["Notebook", "ID card and pen", "Laptop", "Calculator"]},
                 "answer_key": {"index": 1}},
            ]},
            {"type": Section.Type.GRAMMAR, "title": "Grammar", "duration_min": 10, "questions": [
                {"qtype": QType.ORDER_SENTENCE, "prompt": {"text": "Put the words in order."},
                 "options": {"tokens": ["is", "playing", "she", "in", "the", "garden"]},
                 "answer_key": {"order": [2, 0, 1, 3, 4, 5]}},
                {"qtype": QType.DND_GAP, "prompt": {"textWithBlanks": "I ___ reading. You ___ watching TV. He ___ cooking."},
                 "options": {"bank": ["am", "is", "are", "was", "were"]},
                 "answer_key": {"blanks": ["am", "are", "is"]}},
                {"qtype": QType.GAP, "prompt": {"text": "I usually ___ coffee in the morning."},
                 "answer_key": {"answers": ["drink"]}},
            ]},
            {"type": Section.Type.VOCABULARY, "title": "Vocabulary", "duration_min": 10, "questions": [
                {"qtype": QType.DND_MATCH, "prompt": {"text": "Match each word with its opposite."},
                 "options": {"left": ["hot", "big", "fast"], "right": ["slow", "cold", "small"]},
                 "answer_key": {"pairs": {"hot": "cold", "big": "small", "fast": "slow"}}, "max_score": 3},
                {"qtype": QType.MCQ_MULTI, "prompt": {"text": "Select words related to transport."},
                 "options": {"choices": ["bus", "keyboard", "train", "window", "bicycle"]},
                 "answer_key": {"indices": [0, 2, 4]}},
            ]},
        ],
        "band_maps": [],
    }


def sat_demo():
    def module(number, title, prompt, choices, index):
        return {
            "type": Section.Type.READING if number <= 2 else Section.Type.GRAMMAR,
            "title": f"Module {number}: {title}",
            "duration_min": 32,
            "questions": [
                {"qtype": QType.MCQ_SINGLE, "prompt": {"text": prompt},
                 "options": {"choices": choices}, "answer_key": {"index": index}},
            ],
        }

    return {
        "title": "SAT Practice Test - Demo",
        "category": Exam.Category.SAT,
        "track": "DIGITAL",
        "sections": [
            module(1, "Reading and Writing", "Which choice best states the main idea of the text?",
                   ["A", "B", "C", "D"], 2),
            module(2, "Reading and Writing", "Which choice completes the text with the most logical transition?",
                   ["However", "Therefore", "Similarly", "Meanwhile"], 1),
            module(3, "Standard English Conventions", "Which choice conforms to Standard English?",
                   ["its", "it's", "its'", "it is'"], 0),
            module(4, "Standard English Conventions", "Which punctuation is correct?",
                   ["comma", "semicolon", "colon", "dash"], 1),
        ],
        "band_maps": [],
    }


DEMO_EXAMS = {
    "ielts-mock-sample-1": ielts_mock_sample_1,
    "ge-demo": ge_demo,
    "sat-demo": sat_demo,
}


@transaction.atomic
def seed_demo_exam(slug, created_by=None):
    """Create the demo exam named by ``slug``. Returns ``(exam, created)``."""
    fixture = DEMO_EXAMS[slug]()

    for exam_type, section_type, low, high, band in fixture["band_maps"]:
        BandMap.objects.get_or_create(
            exam_type=exam_type, section=section_type, min_raw=low, max_raw=high,
            defaults={"band": band},
        )

    existing = Exam.objects.filter(title=fixture["title"]).first()
    if existing:
        logger.info("Demo exam %s already exists (id=%s)", slug, existing.id)
        return existing, False

    exam = Exam.objects.create(
        title=fixture["title"],
        category=fixture["category"],
        track=fixture["track"],
        is_active=True,
        created_by=created_by,
    )
    for section_order, section_data in enumerate(fixture["sections"], start=1):
        section = Section.objects.create(
            exam=exam,
            type=section_data["type"],
            title=section_data["title"],
            duration_min=section_data["duration_min"],
            order=section_order,
            instruction=section_data.get("instruction", {}),
        )
        Question.objects.bulk_create([
            Question(
                section=section,
                qtype=q["qtype"],
                prompt=q["prompt"],
                options=q.get("options", {}),
                answer_key=q.get("answer_key"),
                max_score=q.get("max_score", 1),
                order=order,
                explanation=q.get("explanation", ""),
            )
            for order, q in enumerate(section_data["questions"], start=1)
        ])

    logger.info("Seeded demo exam %s (id=%s)", slug, exam.id)
    return exam, True
