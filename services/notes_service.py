"""
NotesService: loads a course session's study notes page for one viewer.

  1. load_session_notes: authenticate, authorize, fetch the notes document,
                        mark it viewed, gate it behind the paywall and build
                        section widgets.
  2. toggle_section /
     apply_widget_action: mutate the viewer's page state; a finished quiz
                          persists its score in the background.
  3. start_checkout /
     refresh_recording: hand-offs to edge functions.

Page state lives in memory, one NotesView per (viewer, course session).
Loading the page again replaces it.
"""

import asyncio
import logging
import math
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from clients import supabase_client as db
from clients.edge_functions import EdgeFunctionError, refresh_recording_url
from models.notes_models import (
    InsightHeader,
    NotesAccess,
    NotesPage,
    QuizProgress,
    RecordingInfo,
    Section,
    SectionView,
    SessionNav,
    TocEntry,
    WidgetActionRequest,
)
from processors.section_splitter import build_sections
from services.notes_access import NotesAccessService, can_view_session, is_course_owner
from services.study_widgets import Widget, build_widget
from utils.cancellation import CancelToken, run_step
from utils.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    NotesError,
    NotesLoadError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

# Table of contents is only worth showing for longer notes.
TOC_MIN_SECTIONS = 4

RECORDING_WARNING_DAYS = 2

# Page views held in memory across all viewers.
MAX_VIEWS = 1000

NOTES_UNLOCKED_NOTICE = "Study notes unlocked! You now have access to all session notes."


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_recording_info(session: Dict[str, Any], now: Optional[datetime] = None) -> Optional[RecordingInfo]:
    url = session.get("recording_url")
    if not url:
        return None
    now = now or datetime.now(timezone.utc)
    expires_at = _parse_timestamp(session.get("recording_expires_at"))
    expired = bool(expires_at and expires_at < now)
    days_left = None
    if expires_at:
        days_left = max(0, math.ceil((expires_at - now).total_seconds() / 86400))
    return RecordingInfo(
        url=url,
        expires_at=session.get("recording_expires_at"),
        expired=expired,
        expires_in_days=days_left,
        expiry_warning=days_left is not None and 0 < days_left <= RECORDING_WARNING_DAYS,
        can_refresh=expired and bool(session.get("recording_asset_id")),
    )


class NotesView:
    """One viewer's state for one session's notes page."""

    def __init__(
        self,
        viewer_id: str,
        course: Dict[str, Any],
        session: Dict[str, Any],
        insight: Dict[str, Any],
        teacher_name: Optional[str],
        total_sessions: int,
        access: NotesAccess,
        can_view: bool,
    ):
        self.viewer_id = viewer_id
        self.course = course
        self.session = session
        self.insight = insight
        self.teacher_name = teacher_name
        self.total_sessions = total_sessions
        self.access = access
        self.can_view = can_view
        self.sections: List[Section] = build_sections(insight.get("insights_content"))
        self.widgets: Dict[str, Widget] = {}
        self.collapsed: Set[str] = set()

    @property
    def key(self) -> Tuple[str, str]:
        return (self.viewer_id, self.session["id"])

    @property
    def session_number(self) -> int:
        return int(self.session["session_number"])

    def visible_sections(self) -> List[Section]:
        if self.can_view:
            return self.sections
        return self.sections[:1]

    def build_widgets(self, on_quiz_complete) -> None:
        # Locked viewers get a preview of the first section with an inert quiz.
        callback = on_quiz_complete if self.can_view else None
        self.widgets = {s.id: build_widget(s, on_quiz_complete=callback) for s in self.visible_sections()}

    def section(self, section_id: str) -> Section:
        for s in self.sections:
            if s.id == section_id:
                return s
        raise NotFoundError(
            "Section not found",
            error_code="SECTION_NOT_FOUND",
            context={"section_id": section_id},
        )

    def widget(self, section_id: str) -> Widget:
        self.section(section_id)
        widget = self.widgets.get(section_id)
        if widget is None or not self.can_view:
            raise AccessDeniedError(
                "Unlock the study notes to use this section",
                error_code="NOTES_LOCKED",
                context={"section_id": section_id},
            )
        return widget

    def toggle(self, section_id: str) -> bool:
        self.section(section_id)
        if section_id in self.collapsed:
            self.collapsed.discard(section_id)
            return False
        self.collapsed.add(section_id)
        return True

    def to_page(self, notice: Optional[str] = None, paywall=None) -> NotesPage:
        number = self.session_number
        nav = SessionNav(
            session_number=number,
            total_sessions=self.total_sessions,
            has_prev=number > 1,
            has_next=number < self.total_sessions,
            prev_session=number - 1 if number > 1 else None,
            next_session=number + 1 if number < self.total_sessions else None,
        )
        toc = []
        if len(self.sections) >= TOC_MIN_SECTIONS:
            toc = [
                TocEntry(id=s.id, title=s.title, icon=s.presentation.icon, color=s.presentation.color)
                for s in self.sections
            ]
        section_views = [
            SectionView(
                id=s.id,
                title=s.title,
                presentation=s.presentation,
                collapsed=s.id in self.collapsed,
                locked=not self.can_view,
                widget=self.widgets[s.id].to_dict(),
            )
            for s in self.visible_sections()
        ]
        header = InsightHeader(
            id=str(self.insight["id"]),
            title=self.session.get("title") or self.insight.get("title"),
            summary=self.insight.get("summary"),
            created_at=self.insight.get("created_at"),
            session_title=self.session.get("title"),
            session_date=self.session.get("session_date"),
            course_name=self.course["name"],
            course_slug=self.course["slug"],
            teacher_name=self.teacher_name,
        )
        return NotesPage(
            course_session_id=str(self.session["id"]),
            insight=header,
            nav=nav,
            can_view_notes=self.can_view,
            access=self.access,
            table_of_contents=toc,
            sections=section_views,
            paywall=paywall,
            recording=build_recording_info(self.session) if self.can_view else None,
            notice=notice,
        )


class NotesService:

    def __init__(self, access_service: Optional[NotesAccessService] = None, max_views: int = MAX_VIEWS):
        self.access_service = access_service or NotesAccessService()
        self.max_views = max_views
        # least recently used first
        self._views: "OrderedDict[Tuple[str, str], NotesView]" = OrderedDict()
        self._background: Set[asyncio.Task] = set()

    # =========================================================================
    # Page load
    # =========================================================================

    async def load_session_notes(
        self,
        slug: str,
        session_number: int,
        access_token: Optional[str],
        notes_unlocked: bool = False,
        cancel_token: Optional[CancelToken] = None,
    ) -> NotesPage:
        """
        Load the notes page. Any failure is terminal for this page view and
        carries a `redirect_to` for the front-end; there is no retry.
        """
        try:
            return await self._load(slug, session_number, access_token, notes_unlocked, cancel_token)
        except NotesError:
            raise
        except Exception as e:
            logger.error(f"Error loading insights for {slug} session {session_number}: {e}")
            raise NotesLoadError(
                "Could not load study notes",
                redirect_to=f"/course/{slug}",
                context={"slug": slug, "session_number": session_number},
            )

    async def _load(
        self,
        slug: str,
        session_number: int,
        access_token: Optional[str],
        notes_unlocked: bool,
        token: Optional[CancelToken],
    ) -> NotesPage:
        course_path = f"/course/{slug}"

        user = await run_step(token, db.get_user_from_token, access_token)
        if not user:
            raise AuthenticationError(
                "Please sign up and enrol to view study notes",
                redirect_to=f"/signup?redirect={course_path}/session/{session_number}",
            )
        viewer_id = user["id"]

        course = await run_step(token, db.get_group_session_by_slug, slug)
        if not course:
            raise NotFoundError("Course not found", error_code="COURSE_NOT_FOUND", redirect_to="/",
                                context={"slug": slug})

        await self._authorize(course, viewer_id, course_path, token)

        session = await run_step(token, db.get_course_session, course["id"], session_number)
        if not session:
            raise NotFoundError("Session not found", error_code="SESSION_NOT_FOUND", redirect_to=course_path,
                                context={"slug": slug, "session_number": session_number})

        insight = await run_step(token, db.get_course_insight, session["id"])
        if not insight:
            raise NotFoundError("Study notes not yet available", error_code="NOTES_NOT_FOUND",
                                redirect_to=course_path, context={"course_session_id": session["id"]})

        await self._mark_viewed(session["id"], viewer_id, token)

        total_sessions = await run_step(token, db.count_course_sessions, course["id"])
        teacher = None
        if course.get("teacher_id"):
            teacher = await run_step(token, db.get_profile, course["teacher_id"])
        access = await run_step(token, self.access_service.check_access, course, viewer_id, total_sessions)

        view = NotesView(
            viewer_id=viewer_id,
            course=course,
            session=session,
            insight=insight,
            teacher_name=(teacher or {}).get("full_name"),
            total_sessions=total_sessions,
            access=access,
            can_view=can_view_session(session_number, access),
        )
        view.build_widgets(lambda percent: self._on_quiz_complete(view, percent))
        self._store_view(view)
        logger.info(
            f"Notes page loaded for viewer {viewer_id}: {slug} session {session_number} "
            f"({len(view.sections)} sections, can_view={view.can_view})"
        )
        return self._page(view, notice=NOTES_UNLOCKED_NOTICE if notes_unlocked else None)

    async def _authorize(self, course: Dict[str, Any], viewer_id: str, course_path: str,
                         token: Optional[CancelToken]) -> None:
        if is_course_owner(course, viewer_id):
            return
        if await run_step(token, db.is_enrolled, course["id"], viewer_id):
            return
        profile = await run_step(token, db.get_profile, viewer_id)
        if profile and profile.get("role") == "admin":
            return
        raise AccessDeniedError(
            "Please enrol in this course to view study notes",
            redirect_to=course_path,
            context={"course_id": course["id"]},
        )

    async def _mark_viewed(self, course_session_id: str, viewer_id: str, token: Optional[CancelToken]) -> None:
        try:
            await run_step(token, db.mark_session_viewed, course_session_id, viewer_id)
        except NotesError:
            raise
        except Exception as e:
            logger.error(f"Failed to record view progress for session {course_session_id}: {e}")

    def _page(self, view: NotesView, notice: Optional[str] = None) -> NotesPage:
        paywall = None if view.can_view else self.access_service.paywall_offer(view.access)
        return view.to_page(notice=notice, paywall=paywall)

    # =========================================================================
    # Page interactions
    # =========================================================================

    async def _get_view(self, course_session_id: str, access_token: Optional[str]) -> NotesView:
        user = await asyncio.to_thread(db.get_user_from_token, access_token)
        if not user:
            raise AuthenticationError("Please sign in to continue")
        view = self._views.get((user["id"], course_session_id))
        if view is None:
            raise NotFoundError(
                "Open the study notes page first",
                error_code="VIEW_NOT_LOADED",
                context={"course_session_id": course_session_id},
            )
        self._views.move_to_end(view.key)
        return view

    async def toggle_section(self, course_session_id: str, access_token: Optional[str], section_id: str) -> Dict[str, Any]:
        view = await self._get_view(course_session_id, access_token)
        collapsed = view.toggle(section_id)
        return {"section_id": section_id, "collapsed": collapsed}

    async def apply_widget_action(
        self,
        course_session_id: str,
        access_token: Optional[str],
        section_id: str,
        request: WidgetActionRequest,
    ) -> Dict[str, Any]:
        view = await self._get_view(course_session_id, access_token)
        widget = view.widget(section_id)
        widget.apply(request.action, index=request.index, letter=request.letter)
        return {"section_id": section_id, "widget": widget.to_dict()}

    def _store_view(self, view: NotesView) -> None:
        """Keep one page view per viewer and at most max_views overall."""
        for key in [k for k in self._views if k[0] == view.viewer_id and k != view.key]:
            del self._views[key]
        self._views[view.key] = view
        self._views.move_to_end(view.key)
        while len(self._views) > self.max_views:
            evicted, _ = self._views.popitem(last=False)
            logger.info(f"Evicted idle notes view {evicted}")

    def close_view(self, viewer_id: str, course_session_id: str) -> bool:
        return self._views.pop((viewer_id, course_session_id), None) is not None

    async def leave_page(self, course_session_id: str, access_token: Optional[str]) -> bool:
        """Drop the viewer's page state when they navigate away."""
        user = await asyncio.to_thread(db.get_user_from_token, access_token)
        if not user:
            raise AuthenticationError("Please sign in to continue")
        return self.close_view(user["id"], course_session_id)

    # =========================================================================
    # Quiz persistence (fire-and-forget)
    # =========================================================================

    def _on_quiz_complete(self, view: NotesView, percent: int) -> None:
        progress = QuizProgress(
            session_id=str(view.session["id"]),
            student_id=view.viewer_id,
            score_percent=percent,
        )
        task = asyncio.get_running_loop().create_task(self._save_quiz_progress(progress))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _save_quiz_progress(self, progress: QuizProgress) -> None:
        try:
            await asyncio.to_thread(db.upsert_course_progress, progress.to_row())
            logger.info(
                f"Saved quiz score {progress.score_percent}% for student {progress.student_id} "
                f"on session {progress.session_id}"
            )
        except Exception as e:
            logger.error(f"Failed to save quiz progress: {e}")

    async def wait_for_background(self) -> None:
        """Await pending quiz saves (used at shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # =========================================================================
    # Edge-function hand-offs
    # =========================================================================

    async def start_checkout(self, course_session_id: str, access_token: Optional[str],
                             origin: Optional[str] = None) -> Dict[str, Any]:
        view = await self._get_view(course_session_id, access_token)
        if view.access.has_access or view.access.is_privileged:
            return {"already_unlocked": True, "checkout_url": None}
        checkout_url = await self.access_service.create_checkout(
            access_token=access_token,
            course=view.course,
            session_number=view.session_number,
            origin=origin,
        )
        return {"already_unlocked": False, "checkout_url": checkout_url}

    async def refresh_recording(self, course_session_id: str, access_token: Optional[str]) -> RecordingInfo:
        view = await self._get_view(course_session_id, access_token)
        asset_id = view.session.get("recording_asset_id")
        if not view.can_view or not asset_id:
            raise NotFoundError("No recording to refresh", error_code="RECORDING_NOT_FOUND",
                                context={"course_session_id": course_session_id})
        try:
            data = await refresh_recording_url(access_token, asset_id, str(view.session["id"]))
        except EdgeFunctionError as e:
            raise NotesError("Could not refresh recording URL", error_code="RECORDING_REFRESH_FAILED",
                             status_code=502, context={"reason": e.message})
        if data.get("recording_url"):
            view.session["recording_url"] = data["recording_url"]
            view.session["recording_expires_at"] = data.get("expires_at")
            logger.info(f"Recording URL refreshed for session {course_session_id}")
        return build_recording_info(view.session)
