"""
Section-type registry.

Maps the exact header titles the notes generator emits to the presentation
used for that section. Anything else gets the neutral default.
"""

from typing import Dict

from models.notes_models import SectionPresentation, SectionRenderer


def _presentation(icon: str, tone: str, gradient_from: str, gradient_to: str, renderer: SectionRenderer) -> SectionPresentation:
    return SectionPresentation(
        icon=icon,
        color=f"text-{tone}-600 dark:text-{tone}-400",
        bg_color=f"bg-{tone}-50 dark:bg-{tone}-900/20",
        border_color=f"border-{tone}-200 dark:border-{tone}-800",
        gradient_from=f"from-{gradient_from}-500",
        gradient_to=f"to-{gradient_to}",
        renderer=renderer,
    )


SECTION_PRESENTATIONS: Dict[str, SectionPresentation] = {
    "Session Overview": _presentation("book-open", "blue", "blue", "blue-600", SectionRenderer.OVERVIEW),
    "Key Themes Covered": _presentation("lightbulb", "amber", "amber", "orange-500", SectionRenderer.THEMES),
    "Qur'anic Verses Referenced": _presentation("book-marked", "emerald", "emerald", "teal-500", SectionRenderer.VERSES),
    "Key Arabic Vocabulary": _presentation("languages", "purple", "purple", "violet-500", SectionRenderer.VOCABULARY),
    "Hadith References": _presentation("scroll-text", "teal", "teal", "cyan-500", SectionRenderer.HADITH),
    "Stories & Examples": _presentation("message-circle", "rose", "rose", "pink-500", SectionRenderer.STORIES),
    "Connection to Previous Sessions": _presentation("chevron-right", "indigo", "indigo", "blue-500", SectionRenderer.CONNECTIONS),
    "Reflections & Action Points": _presentation("target", "orange", "orange", "red-500", SectionRenderer.ACTION_POINTS),
    "Mini Quiz": _presentation("help-circle", "pink", "pink", "rose-500", SectionRenderer.QUIZ),
    "Key Takeaways": _presentation("sparkles", "emerald", "emerald", "green-500", SectionRenderer.TAKEAWAYS),
    "Preparation for Next Session": _presentation("graduation-cap", "sky", "sky", "blue-500", SectionRenderer.PREPARATION),
}

DEFAULT_PRESENTATION = SectionPresentation(
    icon="book-open",
    color="text-gray-600 dark:text-gray-400",
    bg_color="bg-gray-50 dark:bg-gray-800",
    border_color="border-gray-200 dark:border-gray-700",
    gradient_from="from-gray-500",
    gradient_to="to-gray-600",
    renderer=SectionRenderer.MARKDOWN,
)


def get_presentation(title: str) -> SectionPresentation:
    """Exact-title lookup; unknown titles get DEFAULT_PRESENTATION."""
    return SECTION_PRESENTATIONS.get(title, DEFAULT_PRESENTATION)
