"""
Per-section body parsers for generated study notes.

Each parser takes the free-text body of one section and pulls out typed
records using the markdown conventions the notes prompt asks the model to
follow. Model output drifts from those conventions, so every parser is
total: when nothing matches it returns an empty list and the caller shows
the raw body instead.

    parse_takeaways("- Point one\\n- Point two")
    -> [Takeaway(text="Point one"), Takeaway(text="Point two")]
"""

import re
from typing import Callable, Dict, List

from models.notes_models import (
    ActionItem,
    Hadith,
    PreparationNote,
    QuizOption,
    QuizQuestion,
    Section,
    SectionRenderer,
    Story,
    Takeaway,
    Theme,
    Verse,
    VocabWord,
)

ARABIC_SCRIPT = re.compile(r"[\u0600-\u06FF]")

_SUBHEADER_LEAD = re.compile(r"^### ")
_SUBHEADER_BREAK = re.compile(r"\n### ")
_HEADER_MARKS = re.compile(r"^#+\s*")

_VERSE_LEAD = re.compile(r"^> \*\*")
_VERSE_BREAK = re.compile(r"\n> \*\*")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_VERSE_CONTEXT = re.compile(r"\*\*Context from the teacher:\*\*\s*(.+)")
_QUOTE_MARK = re.compile(r"^>\s*")

_HADITH_LEAD = re.compile(r"^> \*\*Hadith:\*\*")
_HADITH_BREAK = re.compile(r"\n> \*\*Hadith:\*\*")
_FIRST_LINE = re.compile(r"^\s*(.+?)(?:\n|$)")
_HADITH_SOURCE = re.compile(r"\*\*Source:\*\*\s*(.+?)(?:\n|$)")
_HADITH_CONTEXT = re.compile(r"\*\*Context:\*\*\s*(.+?)(?:\n|$)")

_TABLE_SEPARATOR_CELL = re.compile(r"^:?-{2,}:?$")

_ACTION_LINE = re.compile(r"^\d+\.\s*\*\*")
_ACTION_PARTS = re.compile(r"^\d+\.\s*\*\*(.+?)\*\*:?\s*(.+)?")

_BULLET = re.compile(r"^-\s*")

_QUESTION_BREAK = re.compile(r"\*\*Q\d+\.\*\*")
_OPTION = re.compile(r"^-\s*([A-D])\)\s*(.+)")
_ANSWER = re.compile(r"\*\*Answer:\*\*\s*([A-D])(?:\)|\b)\s*(.*)")

_TASK = re.compile(r"^(?:[-*]|\d+\.)\s+(.+)")


def _split_subheaders(content: str) -> List[Dict[str, str]]:
    cleaned = _SUBHEADER_LEAD.sub("", content, count=1)
    blocks = [b for b in _SUBHEADER_BREAK.split(cleaned) if b.strip()]
    result = []
    for block in blocks:
        head, sep, rest = block.partition("\n")
        title = _HEADER_MARKS.sub("", head).strip()
        result.append({"title": title, "body": rest.strip() if sep else ""})
    return result


def parse_themes(content: str) -> List[Theme]:
    """`### Theme title` blocks."""
    return [Theme(**block) for block in _split_subheaders(content or "")]


def parse_stories(content: str) -> List[Story]:
    """`### Story title` blocks."""
    return [Story(**block) for block in _split_subheaders(content or "")]


def parse_verses(content: str) -> List[Verse]:
    """
    Blockquoted verses:

        > **Al-Fatihah (1:2)**
        >
        > ٱلْحَمْدُ لِلَّهِ رَبِّ ٱلْعَٰلَمِينَ
        >
        > *All praise is for Allah, Lord of all worlds*

        **Context from the teacher:** ...
    """
    cleaned = _VERSE_LEAD.sub("", content or "", count=1)
    verses: List[Verse] = []
    for block in _VERSE_BREAK.split(cleaned):
        if not block.strip():
            continue
        full = block if block.startswith("**") else "**" + block
        ref_match = _BOLD.search(full)
        if not ref_match:
            continue
        context_match = _VERSE_CONTEXT.search(full)

        arabic = ""
        translation = ""
        for line in full.split("\n"):
            text = _QUOTE_MARK.sub("", line).strip()
            if ARABIC_SCRIPT.search(text) and not text.startswith("*"):
                arabic = text
            if text.startswith("*") and text.endswith("*") and not text.startswith("**"):
                translation = text.strip("*").strip()

        verses.append(Verse(
            reference=ref_match.group(1).replace("**", "").strip(),
            arabic=arabic,
            translation=translation,
            context=context_match.group(1).strip() if context_match else "",
        ))
    return verses


def _table_cells(line: str) -> List[str]:
    cells = [c.strip().replace("**", "").replace("*", "") for c in line.split("|")]
    return [c for c in cells if c]


def parse_vocabulary(content: str) -> List[VocabWord]:
    """Pipe-table rows: Arabic | Transliteration | Root | Meaning | Explanation."""
    words: List[VocabWord] = []
    for line in (content or "").split("\n"):
        if "|" not in line:
            continue
        cells = _table_cells(line)
        if not cells or all(_TABLE_SEPARATOR_CELL.match(c) for c in cells):
            continue
        if cells[0].lower().startswith("arabic"):
            continue
        if len(cells) < 4:
            continue
        words.append(VocabWord(
            arabic=cells[0],
            transliteration=cells[1],
            root=cells[2],
            meaning=cells[3],
            explanation=cells[4] if len(cells) > 4 else "",
        ))
    return words


def parse_hadith(content: str) -> List[Hadith]:
    """`> **Hadith:** text` blocks with optional Source and Context lines."""
    cleaned = _HADITH_LEAD.sub("", content or "", count=1)
    hadiths: List[Hadith] = []
    for block in _HADITH_BREAK.split(cleaned):
        if not block.strip():
            continue
        text_match = _FIRST_LINE.search(block)
        source_match = _HADITH_SOURCE.search(block)
        context_match = _HADITH_CONTEXT.search(block)
        text = ""
        if text_match:
            text = _QUOTE_MARK.sub("", text_match.group(1)).replace('"', "").strip()
        if not text:
            continue
        hadiths.append(Hadith(
            text=text,
            source=source_match.group(1).strip() if source_match else "",
            context=context_match.group(1).strip() if context_match else "",
        ))
    return hadiths


def parse_action_items(content: str) -> List[ActionItem]:
    """Numbered lines with a bold lead: `1. **Action**: how to do it`."""
    items: List[ActionItem] = []
    for line in (content or "").split("\n"):
        stripped = line.strip()
        if not _ACTION_LINE.match(stripped):
            continue
        match = _ACTION_PARTS.match(stripped)
        if match:
            title = match.group(1).strip().rstrip(":").strip()
            description = (match.group(2) or "").strip()
        else:
            title, description = stripped, ""
        items.append(ActionItem(title=title or stripped, description=description))
    return items


def parse_takeaways(content: str) -> List[Takeaway]:
    """Dash bullets."""
    return [
        Takeaway(text=_BULLET.sub("", line.strip()).strip())
        for line in (content or "").split("\n")
        if line.strip().startswith("- ")
    ]


def parse_quiz(content: str) -> List[QuizQuestion]:
    """
    Multiple-choice questions:

        **Q1.** What is X?
        - A) foo
        - B) bar

        **Answer:** B) because ...

    A question with no options is dropped. A missing answer line leaves
    `answer` empty, so no selection can score for it.
    """
    questions: List[QuizQuestion] = []
    blocks = _QUESTION_BREAK.split(content or "")
    for block in blocks[1:]:
        lines = [l.strip() for l in block.strip().split("\n") if l.strip()]
        if not lines:
            continue
        question_text = lines[0]
        options: List[QuizOption] = []
        answer = ""
        explanation = ""
        for line in lines[1:]:
            opt_match = _OPTION.match(line)
            if opt_match:
                options.append(QuizOption(letter=opt_match.group(1), text=opt_match.group(2).strip()))
                continue
            ans_match = _ANSWER.search(line)
            if ans_match:
                answer = ans_match.group(1)
                explanation = (ans_match.group(2) or "").strip()
        if question_text and options:
            questions.append(QuizQuestion(
                question=question_text,
                options=options,
                answer=answer,
                explanation=explanation,
            ))
    return questions


def parse_preparation(content: str) -> List[PreparationNote]:
    """The whole body as one note; bullet or numbered lines become tasks."""
    body = (content or "").strip()
    if not body:
        return []
    tasks = []
    for line in body.split("\n"):
        match = _TASK.match(line.strip())
        if match:
            tasks.append(match.group(1).strip())
    return [PreparationNote(body=body, tasks=tasks)]


PARSERS: Dict[SectionRenderer, Callable[[str], list]] = {
    SectionRenderer.THEMES: parse_themes,
    SectionRenderer.VERSES: parse_verses,
    SectionRenderer.VOCABULARY: parse_vocabulary,
    SectionRenderer.HADITH: parse_hadith,
    SectionRenderer.STORIES: parse_stories,
    SectionRenderer.ACTION_POINTS: parse_action_items,
    SectionRenderer.TAKEAWAYS: parse_takeaways,
    SectionRenderer.QUIZ: parse_quiz,
    SectionRenderer.PREPARATION: parse_preparation,
}


def parse_section(section: Section) -> list:
    """Records for a section, or [] when it has no parser or nothing matched."""
    parser = PARSERS.get(section.presentation.renderer)
    if parser is None:
        return []
    return parser(section.content)
