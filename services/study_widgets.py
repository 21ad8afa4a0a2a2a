"""
Interactive widgets for study notes sections.

A widget owns the records parsed from one section plus the small amount of
UI state that goes with them (expanded cards, flipped flashcards, ticked
action points, quiz answers). `to_dict()` is the view model sent to the
front-end and `apply()` is the only way state changes.

Quiz lifecycle, per question:

    unanswered --select--> selected --select--> selected
                                    --reveal--> revealed (final)

When every question is revealed the completion callback fires once with
the rounded percentage score.
"""

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Set

from models.notes_models import (
    Hadith,
    PreparationNote,
    QuestionState,
    QuizQuestion,
    Section,
    SectionRenderer,
    Takeaway,
    Verse,
)
from processors.section_parsers import parse_section
from utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

STORY_EMOJIS = ["🌱", "⚖️", "🌟", "🕊️", "💎", "🔑"]

HADITH_DISCLAIMER = "Note: Please verify exact hadith references independently."


def score_percent(correct: int, total: int) -> int:
    """Half-up rounded percentage, so 1 of 8 is 13 rather than 12."""
    if total <= 0:
        return 0
    return int(math.floor(correct / total * 100 + 0.5))


def _dump(records: list) -> List[Dict[str, Any]]:
    return [r.model_dump() for r in records]


class Widget:
    kind = "widget"

    def __init__(self, section: Section):
        self.section_id = section.id

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind}

    def apply(self, action: str, index: Optional[int] = None, letter: Optional[str] = None) -> None:
        raise ValidationError(
            f"'{action}' is not supported by {self.kind} widgets",
            error_code="INVALID_WIDGET_ACTION",
            context={"section_id": self.section_id, "action": action},
        )

    def _check_index(self, index: Optional[int], size: int) -> int:
        if index is None or index < 0 or index >= size:
            raise ValidationError(
                f"Index {index} is out of range for {self.kind}",
                error_code="INVALID_WIDGET_ACTION",
                context={"section_id": self.section_id, "index": index, "size": size},
            )
        return index


class _ToggleSetWidget(Widget):
    """Widgets whose whole state is a set of toggled item indices."""

    def __init__(self, section: Section, records: list, initial: Optional[Set[int]] = None):
        super().__init__(section)
        self.records = records
        self.active: Set[int] = set(initial or ())

    def toggle(self, index: int) -> None:
        index = self._check_index(index, len(self.records))
        if index in self.active:
            self.active.discard(index)
        else:
            self.active.add(index)

    def apply(self, action: str, index: Optional[int] = None, letter: Optional[str] = None) -> None:
        if action == "toggle":
            self.toggle(index)
            return
        super().apply(action, index, letter)


class MarkdownBlock(Widget):
    """Raw section body; also the fallback when a parser finds nothing."""
    kind = "markdown"

    def __init__(self, section: Section):
        super().__init__(section)
        self.content = section.content

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "content": self.content}


class ExpandableCards(_ToggleSetWidget):
    """Themes and stories. The first card starts expanded."""
    kind = "expandable_cards"

    def __init__(self, section: Section, records: list, emojis: Optional[List[str]] = None):
        super().__init__(section, records, initial={0})
        self.emojis = emojis

    @property
    def expanded(self) -> Set[int]:
        return self.active

    def to_dict(self) -> Dict[str, Any]:
        cards = []
        for idx, record in enumerate(self.records):
            card = {
                "index": idx,
                "number": idx + 1,
                "title": record.title,
                "body": record.body,
                "expanded": idx in self.active,
            }
            if self.emojis:
                card["emoji"] = self.emojis[idx % len(self.emojis)]
            cards.append(card)
        return {"kind": self.kind, "cards": cards}


class VerseCards(Widget):
    kind = "verse_cards"

    def __init__(self, section: Section, verses: List[Verse]):
        super().__init__(section)
        self.verses = verses

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "verses": _dump(self.verses)}


class HadithCards(Widget):
    kind = "hadith_cards"

    def __init__(self, section: Section, hadiths: List[Hadith]):
        super().__init__(section)
        self.hadiths = hadiths

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "hadiths": _dump(self.hadiths), "disclaimer": HADITH_DISCLAIMER}


class Flashcards(_ToggleSetWidget):
    """Vocabulary cards; a flipped card shows its meaning."""
    kind = "flashcards"

    @property
    def flipped(self) -> Set[int]:
        return self.active

    def toggle_all(self) -> None:
        if len(self.active) == len(self.records):
            self.active = set()
        else:
            self.active = set(range(len(self.records)))

    def apply(self, action: str, index: Optional[int] = None, letter: Optional[str] = None) -> None:
        if action == "toggle_all":
            self.toggle_all()
            return
        super().apply(action, index, letter)

    def to_dict(self) -> Dict[str, Any]:
        all_flipped = len(self.active) == len(self.records)
        return {
            "kind": self.kind,
            "cards": [
                {**word.model_dump(), "index": idx, "flipped": idx in self.active}
                for idx, word in enumerate(self.records)
            ],
            "bulk_label": "Hide all" if all_flipped else "Reveal all",
        }


class ActionChecklist(_ToggleSetWidget):
    """Action points ticked off locally. Never persisted."""
    kind = "checklist"

    @property
    def checked(self) -> Set[int]:
        return self.active

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "items": [
                {**item.model_dump(), "index": idx, "checked": idx in self.active}
                for idx, item in enumerate(self.records)
            ],
            "progress": f"{len(self.active)}/{len(self.records)} completed",
        }


class TakeawayList(Widget):
    kind = "takeaways"

    def __init__(self, section: Section, takeaways: List[Takeaway]):
        super().__init__(section)
        self.takeaways = takeaways

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "items": [{"number": i + 1, "text": t.text} for i, t in enumerate(self.takeaways)],
        }


class PreparationCard(Widget):
    kind = "preparation"

    def __init__(self, section: Section, notes: List[PreparationNote]):
        super().__init__(section)
        self.note = notes[0]

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **self.note.model_dump()}


class QuizWidget(Widget):
    """
    Multiple-choice quiz with per-question reveal.

    `on_complete` is called exactly once, with the percentage score, when
    the last unrevealed question is revealed.
    """
    kind = "quiz"

    def __init__(
        self,
        section: Section,
        questions: List[QuizQuestion],
        on_complete: Optional[Callable[[int], None]] = None,
    ):
        super().__init__(section)
        self.questions = questions
        self.on_complete = on_complete
        self.selected: Dict[int, str] = {}
        self.revealed: Set[int] = set()
        self.fired = False

    def state_of(self, index: int) -> QuestionState:
        if index in self.revealed:
            return QuestionState.REVEALED
        if index in self.selected:
            return QuestionState.SELECTED
        return QuestionState.UNANSWERED

    def select(self, index: int, letter: Optional[str]) -> None:
        index = self._check_index(index, len(self.questions))
        if index in self.revealed:
            # answers are locked once checked
            return
        letters = {opt.letter for opt in self.questions[index].options}
        if letter not in letters:
            raise ValidationError(
                f"Option {letter!r} does not exist for question {index + 1}",
                error_code="INVALID_WIDGET_ACTION",
                context={"section_id": self.section_id, "index": index, "letter": letter},
            )
        self.selected[index] = letter

    def reveal(self, index: int) -> None:
        index = self._check_index(index, len(self.questions))
        if index in self.revealed:
            return
        if index not in self.selected:
            raise ValidationError(
                "Select an answer before checking it",
                error_code="INVALID_WIDGET_ACTION",
                context={"section_id": self.section_id, "index": index},
            )
        self.revealed.add(index)
        if self.is_complete:
            self._fire_completion()

    def is_correct(self, index: int) -> bool:
        return self.selected.get(index) == self.questions[index].answer

    @property
    def score(self) -> int:
        return sum(1 for idx in self.revealed if self.is_correct(idx))

    @property
    def is_complete(self) -> bool:
        return len(self.revealed) == len(self.questions)

    @property
    def percent(self) -> int:
        return score_percent(self.score, len(self.questions))

    def _fire_completion(self) -> None:
        if self.fired:
            return
        self.fired = True
        logger.info(f"Quiz in section {self.section_id} completed: {self.score}/{len(self.questions)}")
        if self.on_complete is not None:
            self.on_complete(self.percent)

    def verdict(self) -> str:
        total = len(self.questions)
        if self.score == total:
            return "Perfect score!"
        if self.score >= total / 2:
            return "Well done!"
        return "Keep revising!"

    def apply(self, action: str, index: Optional[int] = None, letter: Optional[str] = None) -> None:
        if action == "select":
            self.select(index, letter)
        elif action == "reveal":
            self.reveal(index)
        else:
            super().apply(action, index, letter)

    def to_dict(self) -> Dict[str, Any]:
        questions = []
        for idx, q in enumerate(self.questions):
            state = self.state_of(idx)
            item = {
                "index": idx,
                "number": idx + 1,
                "question": q.question,
                "options": [opt.model_dump() for opt in q.options],
                "state": state.value,
                "selected": self.selected.get(idx),
            }
            if state == QuestionState.REVEALED:
                item["answer"] = q.answer
                item["correct"] = self.is_correct(idx)
                item["explanation"] = q.explanation
            questions.append(item)

        result = {
            "kind": self.kind,
            "questions": questions,
            "score": self.score,
            "revealed_count": len(self.revealed),
            "total": len(self.questions),
            "complete": self.is_complete,
        }
        if self.is_complete:
            result["percent"] = self.percent
            result["verdict"] = self.verdict()
        return result


def build_widget(section: Section, on_quiz_complete: Optional[Callable[[int], None]] = None) -> Widget:
    """
    Parse a section and wrap the records in the matching widget.
    Falls back to MarkdownBlock when nothing structured was found.
    """
    renderer = section.presentation.renderer
    records = parse_section(section)
    if not records:
        return MarkdownBlock(section)

    if renderer == SectionRenderer.THEMES:
        return ExpandableCards(section, records)
    if renderer == SectionRenderer.STORIES:
        return ExpandableCards(section, records, emojis=STORY_EMOJIS)
    if renderer == SectionRenderer.VERSES:
        return VerseCards(section, records)
    if renderer == SectionRenderer.VOCABULARY:
        return Flashcards(section, records)
    if renderer == SectionRenderer.HADITH:
        return HadithCards(section, records)
    if renderer == SectionRenderer.ACTION_POINTS:
        return ActionChecklist(section, records)
    if renderer == SectionRenderer.TAKEAWAYS:
        return TakeawayList(section, records)
    if renderer == SectionRenderer.PREPARATION:
        return PreparationCard(section, records)
    if renderer == SectionRenderer.QUIZ:
        return QuizWidget(section, records, on_complete=on_quiz_complete)
    return MarkdownBlock(section)
