"""
Paid access to course study notes.

Session 1 notes are always free. Every other session needs either a
completed purchase for the course or a privileged viewer (the course
teacher, its creator, or an admin).
"""

import logging
import os
from typing import Any, Dict, List, Optional

from clients.edge_functions import EdgeFunctionError, create_notes_checkout
from clients.supabase_client import get_notes_access_record, get_profile
from models.notes_models import NotesAccess, PaywallOffer
from utils.exceptions import CheckoutError, ValidationError

logger = logging.getLogger(__name__)

FREE_SESSION_NUMBER = 1
PRICE_PER_SESSION_PENCE = 200
PRICE_CAP_PENCE = 1000

COURSE_NOTES_FEATURES: List[str] = [
    "AI study notes for every session in the course",
    "Qur'anic verses with Arabic and translation",
    "Vocabulary flashcards and hadith references",
    "Interactive quiz after each session",
    "Lifetime access, printable",
]


def notes_price_pounds(session_count: int) -> float:
    """£2 per session, capped at £10."""
    pence = min(max(session_count, 0) * PRICE_PER_SESSION_PENCE, PRICE_CAP_PENCE)
    return pence / 100


def checkout_base_url(origin: Optional[str] = None) -> str:
    """
    Base URL the payment page returns to. APP_ORIGIN unless the request's
    Origin is APP_ORIGIN or listed in CHECKOUT_ORIGINS (comma separated).
    """
    app_origin = os.getenv("APP_ORIGIN", "http://localhost:5173").rstrip("/")
    if not origin:
        return app_origin
    allowed = {app_origin}
    allowed.update(o.strip().rstrip("/") for o in os.getenv("CHECKOUT_ORIGINS", "").split(",") if o.strip())
    candidate = origin.rstrip("/")
    if candidate in allowed:
        return candidate
    logger.warning(f"Ignoring untrusted checkout origin {origin}")
    return app_origin


def is_course_owner(course: Dict[str, Any], user_id: str) -> bool:
    return user_id in (course.get("teacher_id"), course.get("created_by"))


def is_admin(user_id: str) -> bool:
    profile = get_profile(user_id)
    return bool(profile and profile.get("role") == "admin")


def can_view_session(session_number: int, access: NotesAccess) -> bool:
    return session_number == FREE_SESSION_NUMBER or access.has_access or access.is_privileged


class NotesAccessService:

    def check_access(self, course: Dict[str, Any], user_id: str, session_count: int) -> NotesAccess:
        """Blocking: reads profiles and course_notes_access."""
        privileged = is_course_owner(course, user_id) or is_admin(user_id)
        record = get_notes_access_record(course["id"], user_id)
        has_access = bool(record and record.get("status") == "completed")
        return NotesAccess(
            has_access=has_access,
            price_pounds=notes_price_pounds(session_count),
            is_privileged=privileged,
        )

    def paywall_offer(self, access: NotesAccess) -> PaywallOffer:
        return PaywallOffer(
            price_pounds=access.price_pounds,
            features=list(COURSE_NOTES_FEATURES),
            message="Session 1 notes were free. Get notes for every session in this course.",
        )

    async def create_checkout(
        self,
        access_token: str,
        course: Dict[str, Any],
        session_number: int,
        origin: Optional[str] = None,
    ) -> str:
        """
        Start a checkout for the course notes and return the payment page URL.
        The payment itself is handled entirely by the checkout edge function.
        """
        if not access_token:
            raise ValidationError("Please sign in to purchase study notes", error_code="NOT_AUTHENTICATED")

        base = checkout_base_url(origin)
        session_path = f"/course/{course['slug']}/session/{session_number}"
        try:
            data = await create_notes_checkout(
                access_token=access_token,
                group_session_id=course["id"],
                success_url=f"{base}{session_path}?notes_unlocked=true",
                cancel_url=f"{base}{session_path}",
            )
        except EdgeFunctionError as e:
            raise CheckoutError(e.message or "Failed to start checkout", context={"course_id": course["id"]})
        except Exception as e:
            logger.error(f"Error purchasing notes for course {course['id']}: {e}")
            raise CheckoutError("Failed to start checkout", context={"course_id": course["id"]})

        checkout_url = data.get("checkout_url")
        if not checkout_url:
            raise CheckoutError(data.get("error") or "Failed to create checkout", context={"course_id": course["id"]})
        logger.info(f"Checkout session created for course {course['id']}")
        return checkout_url
