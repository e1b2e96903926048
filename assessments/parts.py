"""
Splitting a section's questions into parts.

IELTS Listening has four parts of ten questions, IELTS Reading three
passages (13/13/14), Writing one part per task and Speaking uses each
question's ``prompt.part``. Every other section is a single part.

Works on plain dicts (``{"id": ..., "prompt": {...}}``) so the runner can use
it on the bootstrap payload without Django.
"""

IELTS_RANGES = {
    "LISTENING": [(1, 10), (11, 20), (21, 30), (31, 40)],
    "READING": [(1, 13), (14, 26), (27, 40)],
}


def _prompt(question):
    prompt = question.get("prompt") if isinstance(question, dict) else None
    return prompt if isinstance(prompt, dict) else {}


def split_parts(category, section_type, questions):
    """
    Return ``[{"key": "s1", "label": "Part 1", "questionIds": [...]}, ...]``.

    ``questions`` must already be in delivery order; positions are 1-based.
    """
    questions = list(questions)
    if category != "IELTS":
        return [_part(1, questions)]

    if section_type in IELTS_RANGES:
        parts = []
        for number, (low, high) in enumerate(IELTS_RANGES[section_type], start=1):
            chunk = questions[low - 1:high]
            if chunk:
                parts.append(_part(number, chunk, "Passage" if section_type == "READING" else "Part"))
        # Anything past Q40 stays in the last part
        if len(questions) > 40 and parts:
            parts[-1]["questionIds"].extend(q["id"] for q in questions[40:])
        return parts or [_part(1, questions)]

    if section_type == "WRITING":
        return [_part(n, [q], "Task") for n, q in enumerate(questions, start=1)] or [_part(1, [])]

    if section_type == "SPEAKING":
        grouped = {}
        for question in questions:
            try:
                number = int(_prompt(question).get("part") or 1)
            except (TypeError, ValueError):
                number = 1
            grouped.setdefault(number, []).append(question)
        return [_part(n, grouped[n]) for n in sorted(grouped)] or [_part(1, [])]

    return [_part(1, questions)]


def _part(number, questions, label="Part"):
    return {
        "key": f"s{number}",
        "label": f"{label} {number}",
        "questionIds": [q["id"] for q in questions],
    }


def is_answered(value):
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def part_progress(parts, answers):
    """Per-part ``{"key", "answered", "total", "percentage"}``."""
    progress = []
    for part in parts:
        total = len(part["questionIds"])
        answered = sum(1 for qid in part["questionIds"] if is_answered(answers.get(str(qid))))
        progress.append({
            "key": part["key"],
            "answered": answered,
            "total": total,
            "percentage": round(answered * 100 / total) if total else 0,
        })
    return progress
