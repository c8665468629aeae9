# src/minimind/voice/speech_processor.py

from __future__ import annotations

"""
Voice capture: turn free (transcribed) text into task drafts via an LLM.

The LLM is asked for a JSON array of tasks. Its answer is parsed leniently
(bare array, {"tasks": [...]}, array embedded in prose, loose objects). If
nothing usable comes back, the caller still gets one draft built from the raw
text, so capture never silently loses what the user said.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..core.ports import LLMClient, TaskRepo
from ..tasks.task_models import Priority, Task

logger = logging.getLogger(__name__)

FALLBACK_EMOJI = "📝"

VOICE_SYSTEM_PROMPT = """
You are an assistant that structures tasks dictated by voice.

Split the input text into separate tasks. For each task determine:
1. title: short and clear, starting with one fitting emoji
2. description: optional details
3. priority: high, medium or low, based on urgency
4. category: Work, Personal, Health, Shopping, Education, Finance, Travel, Design, Research or Other
5. tags: important keywords (suggested: Urgent, Important, Meeting, Project, Reminder, Design,
   Feedback, Later, InProgress, Review)
6. dueDate: ISO-8601 date if a date is mentioned, otherwise today ({today})

Return ONLY a JSON array, no preamble and no explanations:
[
  {{
    "title": "🛒 Buy groceries",
    "description": "",
    "priority": "high|medium|low",
    "category": "Shopping",
    "tags": ["Reminder"],
    "dueDate": "{today}"
  }}
]
""".strip()

# Common emoji blocks; good enough to decide whether a title already starts with one.
_EMOJI_RE = re.compile(
    "["
    "\U0001F300-\U0001F5FF"
    "\U0001F600-\U0001F64F"
    "\U0001F680-\U0001F6FF"
    "\U0001F900-\U0001F9FF"
    "\U0001F1E6-\U0001F1FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\u2B50\u2B55\u23F0-\u23FA"
    "]"
)
_ARRAY_RE = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_OBJECT_RE = re.compile(r"\{[^{}]*\}")


@dataclass(slots=True)
class TaskDraft:
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)


def _shorten(text: str, limit: int) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text


def fallback_draft(text: str, today: date) -> TaskDraft:
    """One draft carrying the raw text, used whenever extraction fails."""
    clean = (text or "").strip()
    return TaskDraft(
        title=f"{FALLBACK_EMOJI} {_shorten(clean, 30)}",
        description=clean,
        due_date=today.isoformat(),
    )


def _strip_trailing_commas(raw: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", raw)


def _extract_task_objects(content: str) -> list[Any]:
    """Best-effort JSON extraction from an LLM answer; returns [] when nothing parses."""
    raw = content.strip()

    try:
        if raw.startswith("{") and '"tasks"' in raw:
            obj = json.loads(raw)
            tasks = obj.get("tasks") if isinstance(obj, dict) else None
            return tasks if isinstance(tasks, list) else []
        if raw.startswith("[") and raw.endswith("]"):
            arr = json.loads(raw)
            return arr if isinstance(arr, list) else []
        m = _ARRAY_RE.search(raw)
        if m:
            arr = json.loads(m.group(0))
            return arr if isinstance(arr, list) else []
    except ValueError:
        logger.debug("Voice: strict JSON parse failed, trying loose objects.")

    objects = _OBJECT_RE.findall(raw)
    if not objects:
        return []
    joined = f"[{','.join(objects)}]"
    for candidate in (joined, _strip_trailing_commas(joined)):
        try:
            arr = json.loads(candidate)
        except ValueError:
            continue
        return arr if isinstance(arr, list) else []
    return []


def _normalize_due(raw: Any, today: date) -> str:
    if raw is None or str(raw).strip() == "":
        return today.isoformat()
    s = str(raw).strip()
    try:
        if len(s) <= 10:
            return date.fromisoformat(s).isoformat()
        return datetime.fromisoformat(s).isoformat()
    except ValueError:
        return today.isoformat()


def _normalize_tags(raw: Any) -> list[str]:
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, list):
        items = [str(x) for x in raw]
    else:
        return []
    out: list[str] = []
    for t in items:
        t = t.strip()
        if t and t not in out:
            out.append(t)
    return out


def _to_draft(obj: Any, today: date) -> TaskDraft | None:
    if not isinstance(obj, dict):
        return None
    title = str(obj.get("title") or "").strip()
    if not title:
        return None
    if not _EMOJI_RE.match(title):
        title = f"{FALLBACK_EMOJI} {title}"

    category = obj.get("category")
    return TaskDraft(
        title=title,
        description=str(obj.get("description") or ""),
        priority=Priority.parse(obj.get("priority")),
        due_date=_normalize_due(obj.get("dueDate") or obj.get("due_date"), today),
        category=category.strip() if isinstance(category, str) else "",
        tags=_normalize_tags(obj.get("tags")),
    )


def process_voice_text(llm: LLMClient, text: str, *, now: datetime | None = None) -> list[TaskDraft]:
    """
    Ask the LLM to split text into task drafts.

    Never raises for LLM or parsing problems: those are logged and replaced
    by a single fallback draft built from the text.
    """
    today = (now or datetime.now()).date()
    text = (text or "").strip()
    if not text:
        return []

    raw = ""
    try:
        for piece in llm.stream_chat(
            [{"role": "user", "content": text}],
            VOICE_SYSTEM_PROMPT.format(today=today.isoformat()),
        ):
            raw += piece
    except Exception:
        logger.exception("Voice: LLM call failed; using raw text.")
        return [fallback_draft(text, today)]

    raw = raw.strip()
    if not raw:
        logger.info("Voice: LLM returned no content; using raw text.")
        return [fallback_draft(text, today)]

    objects = _extract_task_objects(raw)
    drafts = [d for d in (_to_draft(o, today) for o in objects) if d is not None]
    if not drafts:
        logger.warning("Voice: no tasks in LLM answer. Raw=%r", raw[:500])
        return [fallback_draft(text, today)]

    logger.info("Voice: extracted %d task(s)", len(drafts))
    return drafts


def add_voice_tasks(
    store: TaskRepo,
    llm: LLMClient,
    text: str,
    *,
    now: datetime | None = None,
) -> list[Task]:
    """Extract drafts from text and add each one to the store; returns the created tasks."""
    created: list[Task] = []
    for draft in process_voice_text(llm, text, now=now):
        res = store.add_task(
            draft.title,
            description=draft.description,
            due_date=draft.due_date,
            category=draft.category,
            tags=draft.tags,
            priority=draft.priority,
        )
        created.append(res.value)
    return created
