# Prompts module initialization

# Study Notes Prompts
from .insight_prompts import (
    COURSE_INSIGHT_PROMPT,
    build_insight_user_prompt,
    build_previous_sessions_context,
    format_session_date
)

__all__ = [
    'COURSE_INSIGHT_PROMPT',
    'build_insight_user_prompt',
    'build_previous_sessions_context',
    'format_session_date'
]
