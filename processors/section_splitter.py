"""
Splits an AI-generated notes document into titled sections.

The generator writes one `## Title` header per section with free text
underneath until the next header. Output is not guaranteed to be well formed,
so splitting is best-effort and never raises.
"""

import re
from typing import List, Optional

from models.notes_models import RawSection, Section
from processors.section_registry import get_presentation

_LEADING_HEADER = re.compile(r"^## ")
_SECTION_BREAK = re.compile(r"\n## ")
_HEADER_MARKS = re.compile(r"^#+\s*")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def split_sections(text: Optional[str]) -> List[RawSection]:
    """
    Split a notes document on top-level `## ` headers.

    Returns (title, body) pairs in document order. The body is an empty
    string when a header has nothing underneath it.
    """
    if not text:
        return []

    normalised = _LEADING_HEADER.sub("", text.replace("\r\n", "\n"), count=1)
    sections: List[RawSection] = []
    for part in _SECTION_BREAK.split(normalised):
        head, sep, rest = part.partition("\n")
        title = _HEADER_MARKS.sub("", head).strip()
        if not title:
            continue
        body = rest.strip() if sep else ""
        sections.append(RawSection(title=title, body=body))
    return sections


def section_id(title: str) -> str:
    """URL-fragment id for a title, e.g. "Stories & Examples" -> "stories-examples"."""
    slug = _NON_SLUG.sub("-", title.lower()).strip("-")
    return slug or "section"


def build_sections(text: Optional[str]) -> List[Section]:
    """Split a document and attach ids and presentation to every section."""
    sections: List[Section] = []
    used = set()
    for raw in split_sections(text):
        base = sid = section_id(raw.title)
        count = 1
        # "Notes 2" slugs to notes-2, which a repeated "Notes" may already hold
        while sid in used:
            count += 1
            sid = f"{base}-{count}"
        used.add(sid)
        sections.append(Section(
            id=sid,
            title=raw.title,
            content=raw.body,
            presentation=get_presentation(raw.title),
        ))
    return sections


def find_section_body(text: Optional[str], title: str) -> Optional[str]:
    """Body of the first section with this exact title, or None."""
    for raw in split_sections(text):
        if raw.title == title:
            return raw.body
    return None
