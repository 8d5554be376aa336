"""Tests for the HTTP and WebSocket API."""
import numpy as np
import pytest

from llm.service import IMAGE_ERROR, INVALID_IMAGE_FILE, MISSING_EDIT_INPUT, NO_ACTIVITIES_SELECTED
from fakes import (
    FAKE_IMAGE_B64,
    SAMPLE_ACTIVITIES,
    SAMPLE_PLAN,
    FakeLiveConnection,
    live_event,
    pcm_payload,
)


class TestHealth:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["step"] == "profile"
        assert body["api_key_configured"] is False
        assert body["live_session_active"] is False

    def test_options(self, client):
        body = client.get("/api/options").json()
        assert len(body["skills"]) == 9
        assert body["skills"][1] == {
            "value": "motor-skills",
            "label": "Fine & Gross Motor Skills",
            "group": "Foundational Skills",
        }
        assert [r["value"] for r in body["aspect_ratios"]] == ["1:1", "16:9", "9:16", "4:3", "3:4"]


class TestPlannerRoutes:
    def test_initial_view(self, client):
        body = client.get("/api/planner").json()
        assert body["step"] == "profile"
        assert body["profile"]["age_months"] == 9
        assert body["create_plan_label"] is None

    def test_profile_update(self, client):
        body = client.put("/api/planner/profile", json={"age_years": "4", "skill": "art-creativity"}).json()
        assert body["profile"]["age_years"] == 4
        assert body["profile"]["skill"] == "art-creativity"

    def test_profile_fractional_age(self, client):
        body = client.put("/api/planner/profile", json={"age_years": 3.5, "age_months": "2.0"}).json()
        assert (body["profile"]["age_years"], body["profile"]["age_months"]) == (3, 2)

    def test_profile_rejects_unknown_skill(self, client):
        response = client.put("/api/planner/profile", json={"skill": "juggling"})
        assert response.status_code == 422

    def test_skill_from_speech(self, client):
        body = client.post("/api/planner/skill-from-speech", json={"transcript": "Math."}).json()
        assert body == {"matched": True, "skill": "mathematics-logic"}

    def test_activities_and_plan(self, client, provider):
        provider.json_responses.extend([SAMPLE_ACTIVITIES, SAMPLE_PLAN])

        body = client.post("/api/planner/activities").json()
        assert body["step"] == "activities"
        assert [a["name"] for a in body["activities"]] == ["Texture Treasure Box", "Pillow Mountain Climb"]

        body = client.post("/api/planner/selection", json={"name": "Pillow Mountain Climb"}).json()
        assert body["create_plan_label"] == "Create Plan with 1 Activity"
        assert body["activities"][1]["selected"]

        body = client.post("/api/planner/plan").json()
        assert body["step"] == "planner"
        assert body["selected"] == ["Pillow Mountain Climb"]
        assert body["plan"]["title"] == "A Day of Fun and Growth!"
        assert body["plan"]["entries"][1]["activity_name"] == "Lunch Time"

        body = client.post("/api/planner/reset").json()
        assert body["step"] == "profile"
        assert "activities" not in body

    def test_no_activities_found(self, client, provider):
        provider.json_responses.append([])
        body = client.post("/api/planner/activities").json()
        assert body["error"] is None
        assert body["message"] == "No activities found. Try a different age or skill focus."

    def test_plan_without_selection(self, client, provider):
        provider.json_responses.append(SAMPLE_ACTIVITIES)
        client.post("/api/planner/activities")
        response = client.post("/api/planner/plan")
        assert response.status_code == 400
        assert response.json()["detail"] == NO_ACTIVITIES_SELECTED

    def test_unknown_selection(self, client):
        response = client.post("/api/planner/selection", json={"name": "Nope"})
        assert response.status_code == 400


class TestImageRoutes:
    def test_generate(self, client, provider):
        response = client.post("/api/images/generate", json={"prompt": "a happy sun", "aspect_ratio": "16:9"})
        assert response.status_code == 200
        body = response.json()
        assert provider.image_calls == [("simple, child-friendly, cartoon style: a happy sun", "16:9")]
        assert body["data_url"] == f"data:image/jpeg;base64,{FAKE_IMAGE_B64}"
        assert body["filename"] == "a_happy_sun.jpeg"

    def test_generate_default_ratio(self, client, provider):
        client.post("/api/images/generate", json={"prompt": "a cat"})
        assert provider.image_calls[0][1] == "1:1"

    def test_generate_failure(self, client, provider):
        provider.fail = True
        response = client.post("/api/images/generate", json={"prompt": "a cat"})
        assert response.status_code == 502
        assert response.json()["detail"] == IMAGE_ERROR

    def test_edit(self, client, provider):
        response = client.post(
            "/api/images/edit",
            json={"image_b64": "aGVsbG8=", "mime_type": "image/png", "prompt": "add a retro filter"},
        )
        body = response.json()
        assert body["mime_type"] == "image/png"
        assert body["filename"] == "edited_add_a_retro_filter.png"

    @pytest.mark.parametrize("payload, detail", [
        ({"image_b64": "aGVsbG8=", "mime_type": "application/pdf", "prompt": "x"}, INVALID_IMAGE_FILE),
        ({"image_b64": "aGVsbG8=", "mime_type": "image/png", "prompt": ""}, MISSING_EDIT_INPUT),
        ({"prompt": "add a hat"}, MISSING_EDIT_INPUT),
    ])
    def test_edit_validation(self, client, provider, payload, detail):
        response = client.post("/api/images/edit", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"] == detail
        assert provider.edit_calls == []


class TestSettingsRoutes:
    def test_key_is_masked(self, client):
        client.put("/api/settings/api-keys", json={"gemini": "AIzaSyExampleKey1234"})
        body = client.get("/api/settings/").json()
        assert body["api_keys"]["gemini"] == "AIza****1234"
        assert body["api_key_configured"] is True
        assert client.get("/api/health").json()["api_key_configured"] is True

    def test_update_models(self, client):
        body = client.put("/api/settings/models", json={"text": "gemini-2.5-pro"}).json()
        assert body["models"]["text"] == "gemini-2.5-pro"

    def test_update_audio(self, client):
        body = client.put("/api/settings/audio", json={"send_queue_size": 8}).json()
        assert body["audio"]["send_queue_size"] == 8
        assert body["audio"]["block_size"] == 4096

    @pytest.mark.parametrize("payload", [
        {"send_queue_size": 0},
        {"send_queue_size": -4},
        {"block_size": 0},
    ])
    def test_audio_sizes_must_be_positive(self, client, app, payload):
        response = client.put("/api/settings/audio", json=payload)
        assert response.status_code == 422
        audio = app.state.config_manager.config.audio
        assert audio.send_queue_size == 32
        assert audio.block_size == 4096

    def test_reset(self, client, tmp_path):
        client.put("/api/settings/api-keys", json={"gemini": "AIzaSyExampleKey1234"})
        client.put("/api/settings/models", json={"text": "gemini-2.5-pro"})

        body = client.post("/api/settings/reset").json()
        assert body == {"status": "reset", "api_key_configured": False}
        settings = client.get("/api/settings/").json()
        assert settings["models"]["text"] == "gemini-2.5-flash"
        assert settings["api_keys"]["gemini"] == ""
        assert not (tmp_path / "config.json").exists()


class TestLiveSocket:
    def _receive_until_status(self, ws, status):
        messages = []
        while True:
            message = ws.receive_json()
            messages.append(message)
            if message["type"] == "status" and message["status"] == status:
                return messages

    def test_microphone_denied(self, client, provider):
        with client.websocket_connect("/api/live") as ws:
            ws.send_json({"type": "mic_error", "detail": "NotAllowedError"})
            messages = self._receive_until_status(ws, "Error: Could not access microphone.")
        assert messages[0] == {"type": "status", "status": "Connecting..."}
        assert provider.system_instruction is None  # never connected

    @pytest.mark.parametrize("send_first", [
        lambda ws: ws.send_bytes(np.zeros(16, dtype="<f4").tobytes()),
        lambda ws: ws.send_text("[1, 2, 3]"),
        lambda ws: ws.send_text("not json"),
        lambda ws: ws.send_json({"type": "close"}),
    ])
    def test_anything_but_start_is_a_microphone_error(self, client, app, provider, send_first):
        with client.websocket_connect("/api/live") as ws:
            send_first(ws)
            messages = self._receive_until_status(ws, "Error: Could not access microphone.")
        assert messages[0] == {"type": "status", "status": "Connecting..."}
        assert provider.system_instruction is None
        assert app.state.shared_state.live_session is None

    def test_second_session_is_rejected(self, client, app):
        app.state.shared_state.live_session = object()
        with client.websocket_connect("/api/live") as ws:
            message = ws.receive_json()
        assert message == {"type": "status", "status": "A voice chat session is already active."}

    def test_conversation(self, client, app, provider):
        provider.live = FakeLiveConnection(events=[
            live_event(input_transcription="Any tips for bedtime?"),
            live_event(output_transcription="Try a calm routine."),
            live_event(audio_data=pcm_payload(2400)),
            live_event(turn_complete=True),
        ])
        with client.websocket_connect("/api/live") as ws:
            ws.send_json({"type": "start"})
            ws.send_bytes(np.zeros(4096, dtype="<f4").tobytes())
            messages = self._receive_until_status(ws, "Session closed.")

        statuses = [m["status"] for m in messages if m["type"] == "status"]
        assert statuses[:3] == ["Connecting...", "Initializing...", "Listening... Speak now!"]

        audio = [m for m in messages if m["type"] == "audio"]
        assert len(audio) == 1
        assert audio[0]["sample_rate"] == 24000

        transcripts = [m for m in messages if m["type"] == "transcripts"][-1]["entries"]
        assert [(e["source"], e["text"], e["is_final"]) for e in transcripts] == [
            ("user", "Any tips for bedtime?", True),
            ("model", "Try a calm routine.", True),
        ]
        assert app.state.shared_state.live_session is None
