import unittest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from main import app
from routes.notes_routes import bearer_token
from services.audio_channel import AudioService
from tests import fake_supabase
from tests.fake_supabase import COURSE_SLUG, STUDENT, seeded
from tests.sample_notes import SAMPLE_NOTES, SECTION_TITLES

STUDENT_AUTH = {"Authorization": "Bearer student-token"}
NOTES_URL = f"/api/v1/courses/{COURSE_SLUG}/sessions/{{number}}/notes"
QUIZ_URL = "/api/v1/course-sessions/cs-1/notes/widgets/mini-quiz/actions"


class TestBearerToken(unittest.TestCase):

    def test_parsing(self):
        self.assertEqual(bearer_token("Bearer abc"), "abc")
        self.assertEqual(bearer_token("bearer  abc "), "abc")
        self.assertIsNone(bearer_token(None))
        self.assertIsNone(bearer_token("Basic abc"))
        self.assertIsNone(bearer_token("Bearer "))


class RoutesTestCase(unittest.TestCase):

    def setUp(self):
        self.fake = seeded(SAMPLE_NOTES)
        fake_supabase.install(self.fake)

    def tearDown(self):
        fake_supabase.uninstall()


class TestNotesRoutes(RoutesTestCase):

    def test_load_page(self):
        with TestClient(app) as client:
            response = client.get(NOTES_URL.format(number=1), headers=STUDENT_AUTH)
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["can_view_notes"])
        self.assertEqual([s["title"] for s in data["sections"]], SECTION_TITLES)
        self.assertEqual(data["sections"][8]["widget"]["kind"], "quiz")

    def test_unlocked_notice(self):
        with TestClient(app) as client:
            response = client.get(NOTES_URL.format(number=1) + "?notes_unlocked=true", headers=STUDENT_AUTH)
        self.assertIn("unlocked", response.json()["notice"])

    def test_signed_out_viewer_is_redirected(self):
        with TestClient(app) as client:
            response = client.get(NOTES_URL.format(number=2))
        self.assertEqual(response.status_code, 401)
        detail = response.json()["detail"]
        self.assertEqual(detail["error"], "NOT_AUTHENTICATED")
        self.assertEqual(detail["redirect_to"], f"/signup?redirect=/course/{COURSE_SLUG}/session/2")

    def test_outsider_is_redirected_to_course(self):
        with TestClient(app) as client:
            response = client.get(NOTES_URL.format(number=1), headers={"Authorization": "Bearer outsider-token"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"]["redirect_to"], f"/course/{COURSE_SLUG}")

    def test_locked_session_shows_paywall(self):
        with TestClient(app) as client:
            response = client.get(NOTES_URL.format(number=2), headers=STUDENT_AUTH)
        data = response.json()
        self.assertFalse(data["can_view_notes"])
        self.assertEqual(len(data["sections"]), 1)
        self.assertEqual(data["paywall"]["price_pounds"], 6.0)

    def test_quiz_completion_is_saved(self):
        with TestClient(app) as client:
            client.get(NOTES_URL.format(number=1), headers=STUDENT_AUTH)
            for index, letter in enumerate(["B", "A"]):
                client.post(QUIZ_URL, json={"action": "select", "index": index, "letter": letter},
                            headers=STUDENT_AUTH)
                response = client.post(QUIZ_URL, json={"action": "reveal", "index": index}, headers=STUDENT_AUTH)
        widget = response.json()["widget"]
        self.assertEqual(widget["percent"], 100)
        self.assertEqual(widget["verdict"], "Perfect score!")
        rows = [r for r in self.fake.rows("course_student_progress")
                if r["course_session_id"] == "cs-1" and r["student_id"] == STUDENT["id"]]
        self.assertEqual(rows[0]["quiz_score"], 100)

    def test_invalid_widget_action(self):
        with TestClient(app) as client:
            client.get(NOTES_URL.format(number=1), headers=STUDENT_AUTH)
            response = client.post(QUIZ_URL, json={"action": "reveal", "index": 0}, headers=STUDENT_AUTH)
            bad_body = client.post(QUIZ_URL, json={"action": "shuffle"}, headers=STUDENT_AUTH)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["error"], "INVALID_WIDGET_ACTION")
        self.assertEqual(bad_body.status_code, 422)

    def test_toggle_and_leave(self):
        with TestClient(app) as client:
            client.get(NOTES_URL.format(number=1), headers=STUDENT_AUTH)
            toggled = client.post("/api/v1/course-sessions/cs-1/notes/sections/key-takeaways/toggle",
                                  headers=STUDENT_AUTH)
            left = client.delete("/api/v1/course-sessions/cs-1/notes", headers=STUDENT_AUTH)
            after = client.post("/api/v1/course-sessions/cs-1/notes/sections/key-takeaways/toggle",
                                headers=STUDENT_AUTH)
        self.assertTrue(toggled.json()["collapsed"])
        self.assertTrue(left.json()["closed"])
        self.assertEqual(after.status_code, 404)
        self.assertEqual(after.json()["detail"]["error"], "VIEW_NOT_LOADED")

    def test_checkout(self):
        mock = AsyncMock(return_value={"checkout_url": "https://pay.example.com/c/1"})
        env = {"APP_ORIGIN": "https://app.example.com", "CHECKOUT_ORIGINS": "https://staging.example.com"}
        with patch.dict("os.environ", env), patch("services.notes_access.create_notes_checkout", mock):
            with TestClient(app) as client:
                client.get(NOTES_URL.format(number=2), headers=STUDENT_AUTH)
                response = client.post("/api/v1/course-sessions/cs-2/notes/checkout",
                                       headers={**STUDENT_AUTH, "Origin": "https://staging.example.com"})
                trusted = mock.await_args.kwargs["cancel_url"]
                client.post("/api/v1/course-sessions/cs-2/notes/checkout",
                            headers={**STUDENT_AUTH, "Origin": "https://evil.example.net"})
                untrusted = mock.await_args.kwargs["cancel_url"]
        self.assertEqual(response.json()["checkout_url"], "https://pay.example.com/c/1")
        self.assertTrue(trusted.startswith("https://staging.example.com/course/"))
        self.assertTrue(untrusted.startswith("https://app.example.com/course/"))

    def test_generate_requires_teacher(self):
        with TestClient(app) as client:
            response = client.post("/api/v1/course-sessions/cs-3/insights", headers=STUDENT_AUTH)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"]["error"], "NOT_COURSE_OWNER")


class TestAudioRoutes(RoutesTestCase):

    def test_speak_fetch_and_control(self):
        with TestClient(app) as client:
            client.app.state.audio_service = AudioService(synthesize=AsyncMock(return_value=b"ID3audio"))
            spoken = client.post("/api/v1/audio/speak",
                                 json={"text": "Bismillah", "language": "arabic", "owner": "verse-1"},
                                 headers=STUDENT_AUTH)
            clip_id = spoken.json()["clip_id"]
            audio = client.get(f"/api/v1/audio/clips/{clip_id}", headers=STUDENT_AUTH)
            paused = client.post("/api/v1/audio/control", json={"owner": "verse-1", "action": "pause"},
                                 headers=STUDENT_AUTH)
            not_owner = client.post("/api/v1/audio/control", json={"owner": "hadith-1", "action": "play"},
                                    headers=STUDENT_AUTH)
        self.assertEqual(spoken.json()["state"], "playing")
        self.assertEqual(audio.content, b"ID3audio")
        self.assertEqual(audio.headers["content-type"], "audio/mpeg")
        self.assertEqual(paused.json()["state"], "paused")
        self.assertEqual(not_owner.status_code, 409)

    def test_requires_sign_in(self):
        with TestClient(app) as client:
            response = client.post("/api/v1/audio/speak", json={"text": "hi", "owner": "verse-1"})
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
