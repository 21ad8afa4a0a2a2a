import unittest
from unittest.mock import AsyncMock, patch

from models.notes_models import NotesAccess
from services.notes_access import (
    NotesAccessService,
    can_view_session,
    checkout_base_url,
    is_course_owner,
    notes_price_pounds,
)
from tests import fake_supabase
from tests.fake_supabase import ADMIN, STUDENT, TEACHER, seeded
from tests.sample_notes import SAMPLE_NOTES
from utils.exceptions import CheckoutError, ValidationError

COURSE = {"id": "course-1", "slug": "tafsir-juz-amma", "teacher_id": TEACHER["id"], "created_by": "creator-1"}


class TestPricing(unittest.TestCase):

    def test_two_pounds_per_session(self):
        self.assertEqual(notes_price_pounds(1), 2.0)
        self.assertEqual(notes_price_pounds(3), 6.0)

    def test_capped_at_ten_pounds(self):
        self.assertEqual(notes_price_pounds(5), 10.0)
        self.assertEqual(notes_price_pounds(12), 10.0)

    def test_no_sessions(self):
        self.assertEqual(notes_price_pounds(0), 0.0)


class TestGate(unittest.TestCase):

    def test_first_session_is_free(self):
        locked = NotesAccess(has_access=False, price_pounds=6.0)
        self.assertTrue(can_view_session(1, locked))
        self.assertFalse(can_view_session(2, locked))

    def test_purchase_or_privilege_unlocks(self):
        self.assertTrue(can_view_session(4, NotesAccess(has_access=True, price_pounds=6.0)))
        self.assertTrue(can_view_session(4, NotesAccess(has_access=False, price_pounds=6.0, is_privileged=True)))

    def test_owner(self):
        self.assertTrue(is_course_owner(COURSE, TEACHER["id"]))
        self.assertTrue(is_course_owner(COURSE, "creator-1"))
        self.assertFalse(is_course_owner(COURSE, STUDENT["id"]))


class TestCheckAccess(unittest.TestCase):

    def setUp(self):
        self.fake = seeded(SAMPLE_NOTES)
        fake_supabase.install(self.fake)
        self.service = NotesAccessService()

    def tearDown(self):
        fake_supabase.uninstall()

    def test_student_without_purchase(self):
        access = self.service.check_access(COURSE, STUDENT["id"], 3)
        self.assertEqual(access, NotesAccess(has_access=False, price_pounds=6.0, is_privileged=False))

    def test_completed_purchase(self):
        self.fake.tables["course_notes_access"].append(
            {"id": "a-1", "group_session_id": "course-1", "student_id": STUDENT["id"], "status": "completed"})
        self.assertTrue(self.service.check_access(COURSE, STUDENT["id"], 3).has_access)

    def test_admin_is_privileged(self):
        access = self.service.check_access(COURSE, ADMIN["id"], 3)
        self.assertTrue(access.is_privileged)
        self.assertFalse(access.has_access)

    def test_paywall_offer(self):
        offer = self.service.paywall_offer(NotesAccess(has_access=False, price_pounds=10.0))
        self.assertEqual(offer.price_pounds, 10.0)
        self.assertTrue(offer.features)


class TestCheckoutBaseUrl(unittest.TestCase):

    def setUp(self):
        env = {"APP_ORIGIN": "https://app.example.com/",
               "CHECKOUT_ORIGINS": "https://staging.example.com, http://localhost:5173"}
        patcher = patch.dict("os.environ", env)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_defaults_to_app_origin(self):
        self.assertEqual(checkout_base_url(None), "https://app.example.com")

    def test_allowed_origins(self):
        self.assertEqual(checkout_base_url("https://app.example.com"), "https://app.example.com")
        self.assertEqual(checkout_base_url("http://localhost:5173/"), "http://localhost:5173")
        self.assertEqual(checkout_base_url("https://staging.example.com"), "https://staging.example.com")

    def test_untrusted_origin_is_ignored(self):
        with self.assertLogs("services.notes_access", level="WARNING"):
            self.assertEqual(checkout_base_url("https://evil.example.net"), "https://app.example.com")


class TestCreateCheckout(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.service = NotesAccessService()

    async def test_uses_app_origin(self):
        mock = AsyncMock(return_value={"checkout_url": "https://pay.example.com/c/9"})
        with patch.dict("os.environ", {"APP_ORIGIN": "https://app.example.com/"}):
            with patch("services.notes_access.create_notes_checkout", mock):
                url = await self.service.create_checkout("student-token", COURSE, 3)
        self.assertEqual(url, "https://pay.example.com/c/9")
        self.assertEqual(mock.await_args.kwargs["success_url"],
                         "https://app.example.com/course/tafsir-juz-amma/session/3?notes_unlocked=true")

    async def test_missing_url(self):
        mock = AsyncMock(return_value={"error": "Course not found"})
        with patch("services.notes_access.create_notes_checkout", mock):
            with self.assertRaises(CheckoutError) as ctx:
                await self.service.create_checkout("student-token", COURSE, 3)
        self.assertEqual(ctx.exception.message, "Course not found")
        self.assertEqual(ctx.exception.status_code, 502)

    async def test_transport_error(self):
        mock = AsyncMock(side_effect=ConnectionError("network down"))
        with patch("services.notes_access.create_notes_checkout", mock):
            with self.assertLogs("services.notes_access", level="ERROR"):
                with self.assertRaises(CheckoutError):
                    await self.service.create_checkout("student-token", COURSE, 3)

    async def test_requires_token(self):
        with self.assertRaises(ValidationError):
            await self.service.create_checkout("", COURSE, 3)


if __name__ == "__main__":
    unittest.main()
