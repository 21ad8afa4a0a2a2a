"""
FastAPI routes for session study notes.

  GET  /api/v1/courses/{slug}/sessions/{session_number}/notes
      Load the notes page (sections, widget state, paywall, recording).

  POST /api/v1/course-sessions/{course_session_id}/notes/sections/{section_id}/toggle
  POST /api/v1/course-sessions/{course_session_id}/notes/widgets/{section_id}/actions
      Collapse a section / drive a section widget (cards, flashcards,
      checklist, quiz).

  POST /api/v1/course-sessions/{course_session_id}/notes/checkout
  POST /api/v1/course-sessions/{course_session_id}/notes/recording/refresh
  DELETE /api/v1/course-sessions/{course_session_id}/notes

  POST /api/v1/course-sessions/{course_session_id}/insights
      Generate the notes from the session transcript (teacher/admin).

All endpoints take the viewer's Supabase access token as
`Authorization: Bearer <token>`.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Header, Query, Request

from models.notes_models import GenerateInsightsRequest, WidgetActionRequest
from services.insight_generation import InsightGenerator
from services.notes_service import NotesService
from utils.cancellation import CancelToken

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["notes"])

notes_service = NotesService()
insight_generator = InsightGenerator()

DISCONNECT_POLL_SECONDS = 0.5


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def _watch_disconnect(request: Request, token: CancelToken) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            token.cancel("client disconnected")
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


# ─── Page load ────────────────────────────────────────────────────────────────

@router.get("/courses/{slug}/sessions/{session_number}/notes")
async def get_session_notes(
    request: Request,
    slug: str,
    session_number: int,
    notes_unlocked: bool = Query(False),
    authorization: Optional[str] = Header(None),
):
    """
    Load the study notes for one course session.

    - Viewer must be enrolled, own the course, or be an admin.
    - Session 1 is free; later sessions need purchased notes. Locked viewers
      get the first section as a preview plus a `paywall` offer.
    - `notes_unlocked=true` (set by the checkout success URL) adds a notice.

    Errors carry `detail.redirect_to` with the route the page should go to.
    """
    cancel_token = CancelToken()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_token))
    try:
        page = await notes_service.load_session_notes(
            slug=slug,
            session_number=session_number,
            access_token=bearer_token(authorization),
            notes_unlocked=notes_unlocked,
            cancel_token=cancel_token,
        )
    finally:
        watcher.cancel()
    return page.model_dump()


# ─── Page interactions ────────────────────────────────────────────────────────

@router.post("/course-sessions/{course_session_id}/notes/sections/{section_id}/toggle")
async def toggle_section(
    course_session_id: str,
    section_id: str,
    authorization: Optional[str] = Header(None),
):
    """Collapse or expand a section. Returns its new `collapsed` flag."""
    return await notes_service.toggle_section(course_session_id, bearer_token(authorization), section_id)


@router.post("/course-sessions/{course_session_id}/notes/widgets/{section_id}/actions")
async def widget_action(
    course_session_id: str,
    section_id: str,
    body: WidgetActionRequest = Body(...),
    authorization: Optional[str] = Header(None),
):
    """
    Apply an action to a section widget and return its new state.

    Actions:
    - toggle {index}: expand a card, flip a flashcard, tick a checklist item
    - toggle_all: reveal / hide all flashcards
    - select {index, letter}: choose a quiz answer (ignored once revealed)
    - reveal {index}: check a quiz answer; the final reveal saves the score
    """
    return await notes_service.apply_widget_action(
        course_session_id, bearer_token(authorization), section_id, body
    )


@router.delete("/course-sessions/{course_session_id}/notes")
async def leave_notes_page(
    course_session_id: str,
    authorization: Optional[str] = Header(None),
):
    """Discard the viewer's page state for this session."""
    closed = await notes_service.leave_page(course_session_id, bearer_token(authorization))
    return {"closed": closed}


# ─── Hand-offs ────────────────────────────────────────────────────────────────

@router.post("/course-sessions/{course_session_id}/notes/checkout")
async def start_notes_checkout(
    course_session_id: str,
    authorization: Optional[str] = Header(None),
    origin: Optional[str] = Header(None),
):
    """
    Start a checkout for the course's notes.
    Returns `checkout_url` to redirect to, or `already_unlocked: true`.
    """
    return await notes_service.start_checkout(course_session_id, bearer_token(authorization), origin=origin)


@router.post("/course-sessions/{course_session_id}/notes/recording/refresh")
async def refresh_recording(
    course_session_id: str,
    authorization: Optional[str] = Header(None),
):
    """Get a fresh signed URL for an expired session recording."""
    recording = await notes_service.refresh_recording(course_session_id, bearer_token(authorization))
    return recording.model_dump()


@router.post("/course-sessions/{course_session_id}/insights", status_code=201)
async def generate_session_insights(
    course_session_id: str,
    body: Optional[GenerateInsightsRequest] = Body(None),
    authorization: Optional[str] = Header(None),
):
    """
    Generate study notes from the session transcript.

    **Blocking operation** - typically 30-90 seconds.
    Only the course teacher, its creator or an admin may call this.
    """
    return await insight_generator.generate(course_session_id, bearer_token(authorization),
                                            model=body.model if body else None)
