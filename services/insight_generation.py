"""
InsightGenerator: turns a course session transcript into its study notes.

The generated document is stored in course_insights.insights_content and is
what NotesService later splits into sections. Session status moves
transcript_added -> generating -> published, and back to transcript_added
when generation fails.
"""

import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional

from clients import supabase_client as db
from prompts.insight_prompts import COURSE_INSIGHT_PROMPT, build_insight_user_prompt
from processors.section_splitter import find_section_body
from services.notes_access import is_admin, is_course_owner
from utils.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    GenerationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from utils.model_config import ModelConfig

logger = logging.getLogger(__name__)

SUMMARY_PATTERN = re.compile(r"\*\*Summary\*\*:\s*(.+?)(?:\n|$)")
SUMMARY_FALLBACK_CHARS = 500
CONFIDENCE_SCORE = 0.85

STATUS_GENERATING = "generating"
STATUS_PUBLISHED = "published"
STATUS_TRANSCRIPT_ADDED = "transcript_added"


def extract_summary(content: str) -> str:
    match = SUMMARY_PATTERN.search(content)
    if match:
        return match.group(1).strip()
    return content[:SUMMARY_FALLBACK_CHARS]


def _strip_rule(body: Optional[str]) -> Optional[str]:
    """Drop the trailing `---` separator the notes put between sections."""
    if body is None:
        return None
    return re.sub(r"\n?-{3,}\s*$", "", body).strip()


class InsightGenerator:

    def __init__(self, client=None):
        # anthropic.Anthropic(); created lazily so importing needs no API key
        self._client = client

    def _anthropic(self):
        if self._client is None:
            import anthropic
            self._client = anthropic.Anthropic()
        return self._client

    async def generate(
        self,
        course_session_id: str,
        access_token: Optional[str],
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate (or regenerate) the study notes for one course session.

        Args:
            course_session_id: course_sessions.id
            access_token: bearer token of the teacher, course creator or an admin
            model: key from MODEL_CONFIGS; INSIGHTS_MODEL / default when omitted

        Returns:
            {success, insight_id, course_session_id, title, summary, processing_time_ms}
        """
        start_time = time.time()

        try:
            model_key = model or ModelConfig.default_model()
            model_config = ModelConfig.get_config(model_key)
        except ValueError as e:
            raise ValidationError(str(e), error_code="INVALID_MODEL")

        user = await asyncio.to_thread(db.get_user_from_token, access_token)
        if not user:
            raise AuthenticationError("Please sign in to generate study notes")

        session = await asyncio.to_thread(db.get_course_session_by_id, course_session_id)
        if not session:
            raise NotFoundError("Course session not found", error_code="SESSION_NOT_FOUND",
                                context={"course_session_id": course_session_id})

        course = await asyncio.to_thread(db.get_group_session_by_id, session["group_session_id"])
        if not course:
            raise NotFoundError("Course not found", error_code="COURSE_NOT_FOUND",
                                context={"group_session_id": session["group_session_id"]})

        if not is_course_owner(course, user["id"]):
            if not await asyncio.to_thread(is_admin, user["id"]):
                raise AccessDeniedError(
                    "Only the course teacher can generate study notes",
                    error_code="NOT_COURSE_OWNER",
                    context={"course_id": course["id"]},
                )

        if not session.get("transcript"):
            raise ValidationError("No transcript available for this session", error_code="NO_TRANSCRIPT",
                                  context={"course_session_id": course_session_id})

        await asyncio.to_thread(db.update_course_session, course_session_id, {"status": STATUS_GENERATING})

        try:
            teacher_name = await self._teacher_name(course)
            previous = await self._previous_summaries(course["id"], int(session["session_number"]))
            total_sessions = await asyncio.to_thread(db.count_course_sessions, course["id"])

            user_prompt = build_insight_user_prompt(
                course_name=course["name"],
                teacher_name=teacher_name,
                session_number=int(session["session_number"]),
                total_sessions=total_sessions,
                session_title=session.get("title"),
                session_date=session.get("session_date"),
                transcript=session["transcript"],
                course_description=course.get("description"),
                previous_sessions=previous,
            )
            system_prompt = course.get("custom_insight_prompt") or COURSE_INSIGHT_PROMPT

            logger.info(f"Calling Claude for session {session['session_number']} of \"{course['name']}\"...")
            content = await asyncio.to_thread(self._call_claude, system_prompt, user_prompt, model_config)
            if not content:
                raise GenerationError("No response generated from AI", error_code="EMPTY_RESPONSE")
        except Exception as e:
            await self._reset_status(course_session_id)
            if isinstance(e, GenerationError):
                raise
            logger.error(f"Insight generation failed for session {course_session_id}: {e}")
            raise GenerationError("Failed to generate insights", context={"reason": str(e)})

        processing_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Insights generated in {processing_time_ms}ms, saving to database...")

        summary = extract_summary(content)
        title = session.get("title") or f"{course['name']} - Session {session['session_number']}"
        detailed = {
            "content": content,
            "course_name": course["name"],
            "teacher_name": teacher_name,
            "session_number": session["session_number"],
            "session_date": session.get("session_date"),
            "generated_at": db.utc_now_iso(),
        }
        quiz_section = _strip_rule(find_section_body(content, "Mini Quiz"))
        if quiz_section:
            detailed["quiz_section"] = quiz_section
        key_takeaways = _strip_rule(find_section_body(content, "Key Takeaways"))
        if key_takeaways:
            detailed["key_takeaways"] = key_takeaways

        try:
            insight_id = await asyncio.to_thread(
                db.save_course_insight,
                course_session_id,
                course["id"],
                {
                    "title": title,
                    "summary": summary,
                    "insights_content": content,
                    "detailed_insights": detailed,
                    "ai_model": model_config["model"],
                    "confidence_score": CONFIDENCE_SCORE,
                    "processing_time_ms": processing_time_ms,
                },
            )
        except Exception as e:
            logger.error(f"Error saving insight for session {course_session_id}: {e}")
            await self._reset_status(course_session_id)
            raise StorageError("Failed to save insight", context={"reason": str(e)})

        await asyncio.to_thread(db.update_course_session, course_session_id, {"status": STATUS_PUBLISHED})
        logger.info(f"Course insight saved successfully: {insight_id}")

        return {
            "success": True,
            "insight_id": insight_id,
            "course_session_id": course_session_id,
            "title": title,
            "summary": summary,
            "processing_time_ms": processing_time_ms,
        }

    async def _teacher_name(self, course: Dict[str, Any]) -> str:
        if not course.get("teacher_id"):
            return "Teacher"
        profile = await asyncio.to_thread(db.get_profile, course["teacher_id"])
        return (profile or {}).get("full_name") or "Teacher"

    async def _previous_summaries(self, group_session_id: str, session_number: int) -> List[Dict[str, Any]]:
        if session_number <= 1:
            return []
        earlier = await asyncio.to_thread(db.list_earlier_sessions, group_session_id, session_number)
        insights = await asyncio.to_thread(db.get_insights_for_sessions, [s["id"] for s in earlier])
        by_session = {i["course_session_id"]: i for i in insights}
        previous = []
        for s in earlier:
            insight = by_session.get(s["id"])
            if insight is None:
                continue
            previous.append({
                "session_number": s["session_number"],
                "session_date": s.get("session_date"),
                "title": s.get("title") or insight.get("title"),
                "summary": insight.get("summary"),
            })
        return previous

    async def _reset_status(self, course_session_id: str) -> None:
        try:
            await asyncio.to_thread(db.update_course_session, course_session_id, {"status": STATUS_TRANSCRIPT_ADDED})
        except Exception as e:
            logger.error(f"Failed to reset status for session {course_session_id}: {e}")

    def _call_claude(self, system_prompt: str, user_prompt: str, model_config: Dict[str, Any]) -> str:
        """Blocking call; run it in a worker thread."""
        response = self._anthropic().messages.create(
            model=model_config["model"],
            max_tokens=model_config["max_tokens"],
            temperature=model_config.get("temperature", 0.3),
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text
        return content
