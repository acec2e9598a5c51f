"""Form descriptions for the two record kinds.

Forms are plain data here; the Discord adapter turns them into modals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .links import clean_urls
from .models import IntroductionRecord, LinkSetRecord, RecordKind

FORM_ID_PREFIX = "introbot:form:"

# Persistent buttons attached to the guide messages, one per record kind.
WIDGET_IDS = {
    RecordKind.INTRODUCTION: "introbot:guide:introduction",
    RecordKind.LINK_SET: "introbot:guide:link_set",
}

NAME = "name"
CONTACT_HANDLE = "contact_handle"
COURSE = "course"
COHORT = "cohort"
NOTE = "note"
INTRODUCTION_FIELDS = (NAME, CONTACT_HANDLE, COURSE, COHORT, NOTE)

MAX_LINKS = 5
LINK_FIELDS = tuple(f"url_{index}" for index in range(1, MAX_LINKS + 1))
_LINK_PLACEHOLDERS = (
    "https://x.com/username",
    "https://instagram.com/username",
    "https://tiktok.com/@username",
    "https://youtube.com/@channel",
    "https://github.com/username",
)


@dataclass(frozen=True)
class FormField:
    key: str
    label: str
    value: Optional[str] = None
    placeholder: Optional[str] = None
    required: bool = True
    paragraph: bool = False


@dataclass(frozen=True)
class FormSpec:
    title: str
    custom_id: str
    fields: List[FormField] = field(default_factory=list)


def form_custom_id(token: str) -> str:
    return f"{FORM_ID_PREFIX}{token}"


def token_from_custom_id(custom_id: Optional[str]) -> Optional[str]:
    if not custom_id or not custom_id.startswith(FORM_ID_PREFIX):
        return None
    token = custom_id[len(FORM_ID_PREFIX):]
    return token or None


def introduction_form(
    token: str,
    record: Optional[IntroductionRecord] = None,
    *,
    course_examples: Sequence[str] = (),
    cohort_letters: str = "NSR",
) -> FormSpec:
    """Empty form for a new introduction, pre-filled when editing."""

    examples = ", ".join(course_examples)
    course_hint = f"e.g. {examples}" if examples else "Your course"
    cohort_hint = ", ".join(f"{letter}{i}" for i, letter in enumerate(cohort_letters, start=1))
    return FormSpec(
        title="Edit introduction" if record else "Introduce yourself",
        custom_id=form_custom_id(token),
        fields=[
            FormField(NAME, "Name", record.name if record else None),
            FormField(CONTACT_HANDLE, "Slack name", record.contact_handle if record else None),
            FormField(COURSE, "Course", record.course if record else None, course_hint[:100]),
            FormField(
                COHORT,
                f"Cohort (e.g. {cohort_hint})"[:45],
                record.cohort if record else None,
                f"One of {', '.join(cohort_letters)} followed by a number",
            ),
            FormField(NOTE, "A few words", record.note if record else None, paragraph=True),
        ],
    )


def link_set_form(token: str, record: Optional[LinkSetRecord] = None) -> FormSpec:
    urls = list(record.urls) if record else []
    fields = []
    for index, key in enumerate(LINK_FIELDS):
        fields.append(
            FormField(
                key,
                f"Link {index + 1} ({'required' if index == 0 else 'optional'})",
                urls[index] if index < len(urls) else None,
                _LINK_PLACEHOLDERS[index],
                required=index == 0,
            )
        )
    return FormSpec(
        title="Edit your links" if record else "Share your links",
        custom_id=form_custom_id(token),
        fields=fields,
    )


def read_introduction(values: Dict[str, str]) -> Dict[str, str]:
    """Pull the introduction fields out of submitted form values."""

    return {key: (values.get(key) or "").strip() for key in INTRODUCTION_FIELDS}


def read_links(values: Dict[str, str]) -> List[str]:
    return clean_urls(values.get(key) for key in LINK_FIELDS)


__all__ = [
    "FormField",
    "FormSpec",
    "INTRODUCTION_FIELDS",
    "LINK_FIELDS",
    "WIDGET_IDS",
    "form_custom_id",
    "introduction_form",
    "link_set_form",
    "read_introduction",
    "read_links",
    "token_from_custom_id",
]
