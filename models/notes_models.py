"""
Pydantic models for session study notes.
Records parsed from AI-generated notes, page view models and request bodies.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Literal
from datetime import datetime, timezone
from enum import Enum


class SectionRenderer(str, Enum):
    OVERVIEW = "overview"
    THEMES = "themes"
    VERSES = "verses"
    VOCABULARY = "vocabulary"
    HADITH = "hadith"
    STORIES = "stories"
    CONNECTIONS = "connections"
    ACTION_POINTS = "action_points"
    QUIZ = "quiz"
    TAKEAWAYS = "takeaways"
    PREPARATION = "preparation"
    MARKDOWN = "markdown"


class QuestionState(str, Enum):
    UNANSWERED = "unanswered"
    SELECTED = "selected"
    REVEALED = "revealed"


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


# Sections
class SectionPresentation(BaseModel):
    """How a section is dressed in the UI"""
    icon: str
    color: str
    bg_color: str
    border_color: str
    gradient_from: str
    gradient_to: str
    renderer: SectionRenderer = SectionRenderer.MARKDOWN


class RawSection(BaseModel):
    title: str
    body: str = ""


class Section(BaseModel):
    """A titled block of a notes document. Derived, never stored."""
    id: str
    title: str
    content: str
    presentation: SectionPresentation


# Parsed records
class Theme(BaseModel):
    title: str
    body: str = ""


class Story(BaseModel):
    title: str
    body: str = ""


class Verse(BaseModel):
    reference: str
    arabic: str = ""
    translation: str = ""
    context: str = ""


class VocabWord(BaseModel):
    arabic: str
    transliteration: str
    root: str
    meaning: str
    explanation: str = ""


class Hadith(BaseModel):
    text: str
    source: str = ""
    context: str = ""


class ActionItem(BaseModel):
    title: str
    description: str = ""


class Takeaway(BaseModel):
    text: str


class QuizOption(BaseModel):
    letter: str
    text: str


class QuizQuestion(BaseModel):
    question: str
    options: List[QuizOption]
    answer: str = ""
    explanation: str = ""


class PreparationNote(BaseModel):
    body: str
    tasks: List[str] = []


# Progress
class QuizProgress(BaseModel):
    """The only record in the pipeline with a persistence contract"""
    session_id: str
    student_id: str
    score_percent: int = Field(..., ge=0, le=100)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        return {
            "course_session_id": self.session_id,
            "student_id": self.student_id,
            "quiz_score": self.score_percent,
            "quiz_completed_at": self.completed_at.isoformat(),
        }


# Access
class NotesAccess(BaseModel):
    has_access: bool
    price_pounds: float
    is_privileged: bool = False


class PaywallOffer(BaseModel):
    price_pounds: float
    features: List[str]
    message: str


# Page view model
class TocEntry(BaseModel):
    id: str
    title: str
    icon: str
    color: str


class SectionView(BaseModel):
    id: str
    title: str
    presentation: SectionPresentation
    collapsed: bool = False
    locked: bool = False
    widget: Dict[str, Any]


class RecordingInfo(BaseModel):
    url: Optional[str] = None
    expires_at: Optional[str] = None
    expired: bool = False
    expires_in_days: Optional[int] = None
    expiry_warning: bool = False
    can_refresh: bool = False


class SessionNav(BaseModel):
    session_number: int
    total_sessions: int
    has_prev: bool
    has_next: bool
    prev_session: Optional[int] = None
    next_session: Optional[int] = None


class InsightHeader(BaseModel):
    id: str
    title: Optional[str] = None
    summary: Optional[str] = None
    created_at: Optional[str] = None
    session_title: Optional[str] = None
    session_date: Optional[str] = None
    course_name: str
    course_slug: str
    teacher_name: Optional[str] = None


class NotesPage(BaseModel):
    course_session_id: str
    insight: InsightHeader
    nav: SessionNav
    can_view_notes: bool
    access: NotesAccess
    table_of_contents: List[TocEntry] = []
    sections: List[SectionView] = []
    paywall: Optional[PaywallOffer] = None
    recording: Optional[RecordingInfo] = None
    notice: Optional[str] = None


# Request Models
class WidgetActionRequest(BaseModel):
    """Mutate one section widget"""
    action: Literal["toggle", "toggle_all", "select", "reveal"]
    index: Optional[int] = None
    letter: Optional[str] = None


class GenerateInsightsRequest(BaseModel):
    model: Optional[str] = None


class SpeakRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    language: Literal["arabic", "english"] = "english"
    # Section or widget id the clip belongs to; it owns the audio channel.
    owner: str = Field(..., min_length=1)


class AudioControlRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    action: Literal["play", "pause", "toggle", "stop", "release"]
