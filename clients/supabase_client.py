import os
from typing import Dict, Any, List, Optional
from dotenv import load_dotenv
from supabase import create_client, Client
from datetime import datetime, timezone
import logging

load_dotenv()

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None

PROGRESS_CONFLICT_KEYS = "course_session_id,student_id"


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
        _supabase_client = create_client(url, key)
    return _supabase_client


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(response) -> Optional[Dict[str, Any]]:
    if not response.data:
        return None
    return response.data[0]


# ─── Auth ─────────────────────────────────────────────────────────────────────

def get_user_from_token(access_token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Resolve a viewer's bearer token to {id, email}.
    Returns None for a missing, expired or otherwise invalid token.
    """
    if not access_token:
        return None
    try:
        response = get_supabase().auth.get_user(access_token)
    except Exception as e:
        logger.warning(f"Token rejected by Supabase auth: {e}")
        return None
    user = getattr(response, "user", None)
    if user is None:
        return None
    return {"id": str(user.id), "email": getattr(user, "email", None)}


def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    response = get_supabase().table("profiles")\
        .select("id, role, full_name, email")\
        .eq("id", user_id)\
        .limit(1)\
        .execute()
    return _first(response)


# ─── Courses and sessions ─────────────────────────────────────────────────────

def get_group_session_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    """Course row (group_sessions) for a URL slug."""
    response = get_supabase().table("group_sessions")\
        .select("id, name, slug, teacher_id, created_by, poster_url, description, custom_insight_prompt")\
        .eq("slug", slug)\
        .limit(1)\
        .execute()
    return _first(response)


def get_group_session_by_id(group_session_id: str) -> Optional[Dict[str, Any]]:
    response = get_supabase().table("group_sessions")\
        .select("id, name, slug, teacher_id, created_by, poster_url, description, custom_insight_prompt")\
        .eq("id", group_session_id)\
        .limit(1)\
        .execute()
    return _first(response)


def is_enrolled(group_session_id: str, student_id: str) -> bool:
    response = get_supabase().table("group_session_participants")\
        .select("id")\
        .eq("group_session_id", group_session_id)\
        .eq("student_id", student_id)\
        .limit(1)\
        .execute()
    return bool(response.data)


def get_course_session(group_session_id: str, session_number: int) -> Optional[Dict[str, Any]]:
    response = get_supabase().table("course_sessions")\
        .select("id, group_session_id, session_number, title, session_date, status, "
                "recording_url, recording_expires_at, recording_asset_id")\
        .eq("group_session_id", group_session_id)\
        .eq("session_number", session_number)\
        .limit(1)\
        .execute()
    return _first(response)


def get_course_session_by_id(course_session_id: str) -> Optional[Dict[str, Any]]:
    response = get_supabase().table("course_sessions")\
        .select("id, group_session_id, session_number, title, session_date, status, transcript, "
                "recording_url, recording_expires_at, recording_asset_id")\
        .eq("id", course_session_id)\
        .limit(1)\
        .execute()
    return _first(response)


def count_course_sessions(group_session_id: str) -> int:
    response = get_supabase().table("course_sessions")\
        .select("id", count="exact", head=True)\
        .eq("group_session_id", group_session_id)\
        .execute()
    return response.count or 0


def update_course_session(course_session_id: str, fields: Dict[str, Any]) -> None:
    get_supabase().table("course_sessions").update(fields).eq("id", course_session_id).execute()


def list_earlier_sessions(group_session_id: str, session_number: int) -> List[Dict[str, Any]]:
    response = get_supabase().table("course_sessions")\
        .select("id, session_number, title, session_date")\
        .eq("group_session_id", group_session_id)\
        .lt("session_number", session_number)\
        .order("session_number")\
        .execute()
    return response.data or []


# ─── Insights (the notes document) ────────────────────────────────────────────

def get_course_insight(course_session_id: str) -> Optional[Dict[str, Any]]:
    response = get_supabase().table("course_insights")\
        .select("id, title, summary, insights_content, processing_time_ms, created_at")\
        .eq("course_session_id", course_session_id)\
        .limit(1)\
        .execute()
    return _first(response)


def get_insights_for_sessions(course_session_ids: List[str]) -> List[Dict[str, Any]]:
    if not course_session_ids:
        return []
    response = get_supabase().table("course_insights")\
        .select("course_session_id, title, summary")\
        .in_("course_session_id", course_session_ids)\
        .execute()
    return response.data or []


def save_course_insight(course_session_id: str, group_session_id: str, fields: Dict[str, Any]) -> str:
    """
    Insert or update the insight for a course session.
    If a row for this course_session_id exists it is updated in place.

    Returns:
        The id of the inserted/updated row as a string.
    Raises:
        Exception if the write fails or no id is returned.
    """
    existing = _first(
        get_supabase().table("course_insights")
        .select("id")
        .eq("course_session_id", course_session_id)
        .limit(1)
        .execute()
    )

    if existing:
        logger.info(f"Updating existing insight {existing['id']} (course_session_id: {course_session_id})")
        response = get_supabase().table("course_insights").update(fields).eq("id", existing["id"]).execute()
        if not response.data:
            raise Exception(f"Insight update failed: {response}")
        return str(existing["id"])

    logger.info(f"Creating new insight (course_session_id: {course_session_id})")
    insert_data = {
        "course_session_id": course_session_id,
        "group_session_id": group_session_id,
        **fields,
    }
    response = get_supabase().table("course_insights").insert(insert_data).execute()
    if not response.data or "id" not in response.data[0]:
        raise Exception(f"Insight insertion failed or id not returned: {response}")
    return str(response.data[0]["id"])


# ─── Progress ────────────────────────────────────────────────────────────────

def upsert_course_progress(row: Dict[str, Any]) -> None:
    """
    Upsert a course_student_progress row keyed by (course_session_id, student_id).
    Last write wins; only the columns present in `row` are touched.
    """
    get_supabase().table("course_student_progress")\
        .upsert(row, on_conflict=PROGRESS_CONFLICT_KEYS, ignore_duplicates=False)\
        .execute()


def mark_session_viewed(course_session_id: str, student_id: str) -> None:
    upsert_course_progress({
        "course_session_id": course_session_id,
        "student_id": student_id,
        "viewed_at": utc_now_iso(),
    })


# ─── Paid notes access ────────────────────────────────────────────────────────

def get_notes_access_record(group_session_id: str, student_id: str) -> Optional[Dict[str, Any]]:
    response = get_supabase().table("course_notes_access")\
        .select("id, status, amount")\
        .eq("group_session_id", group_session_id)\
        .eq("student_id", student_id)\
        .limit(1)\
        .execute()
    return _first(response)
