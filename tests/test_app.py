import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from mathmentor.app import create_app
from mathmentor.config import Settings
from tutoring_toolkit.llms.base import GeneratedImage, LLMMessage
from tutoring_toolkit.orchestration.data_models import Attachment
from tutoring_toolkit.orchestration.localization import MODE_PROMPT

USER = {"X-User-Id": "student-1"}
OTHER_USER = {"X-User-Id": "student-2"}


@pytest.fixture
def client(fake_llm):
    return TestClient(create_app(Settings(api_key="test-key"), llm=fake_llm))


def read_ndjson(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def test_chat_returns_final_result(client, fake_llm):
    fake_llm.streams = [[LLMMessage(content="$$x = 5$$")]]

    response = client.post("/chat", json={"prompt": "Solve 2x+5=15", "mode": "fast"})

    assert response.status_code == 200
    assert response.json()["text"] == "$$x = 5$$"
    assert response.json()["is_error"] is False


def test_chat_requires_prompt_or_attachment(client):
    response = client.post("/chat", json={"prompt": "   "})

    assert response.status_code == 422


def test_chat_rejects_unsupported_attachment(client, fake_llm):
    attachment = Attachment.from_bytes(b"PK", "application/zip", "homework.zip")

    response = client.post("/chat", json={"prompt": "check", "attachment": attachment.model_dump()})

    assert response.status_code == 415
    assert fake_llm.stream_calls == []


def test_chat_stream_emits_cumulative_events(client, fake_llm):
    fake_llm.streams = [[LLMMessage(content="2x = 10"), LLMMessage(content=", x = 5")]]

    response = client.post("/chat/stream", json={"prompt": "Solve 2x+5=15"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    events = read_ndjson(response)
    assert [event["type"] for event in events] == ["partial", "partial", "result"]
    assert [event["text"] for event in events] == ["2x = 10", "2x = 10, x = 5", "2x = 10, x = 5"]


def test_quiz_malformed_output_maps_to_bad_gateway(client, fake_llm):
    fake_llm.responses = [LLMMessage(content="no quiz today")]

    response = client.post("/quiz", json={"topic": "Indices"})

    assert response.status_code == 502
    assert response.json()["kind"] == "malformed_output"
    assert response.json()["detail"] == "I encountered a technical issue. Please try again later."


def test_notes_from_text(client, fake_llm):
    fake_llm.responses = [LLMMessage(content="# Notes")]

    response = client.post("/notes", json={"text": "Area of a circle is pi r^2", "language": "BM"})

    assert response.status_code == 200
    assert response.json()["text"] == "# Notes"


def test_notes_without_input_is_rejected(client):
    assert client.post("/notes", json={}).status_code == 422


def test_illustration(client, fake_llm):
    fake_llm.images = [GeneratedImage(mime_type="image/png", data="AAAA")]

    response = client.post("/illustrations", json={"description": "a unit circle"})

    assert response.status_code == 200
    assert response.json()["image"] == {"mime_type": "image/png", "data": "AAAA"}


def test_focus_areas(client):
    response = client.get("/focus-areas", params={"level": "Beginner (Primary)", "language": "BM"})

    assert response.status_code == 200
    assert "Wang" in response.json()


def test_profile_requires_authentication(client):
    assert client.get("/profile").status_code == 401


def test_profile_defaults_and_update(client):
    assert client.get("/profile", headers=USER).json()["display_name"] == "Guest Scholar"

    response = client.put("/profile", headers=USER, json={"display_name": "Mei Ling", "language": "BM"})

    assert response.json()["display_name"] == "Mei Ling"
    assert client.get("/profile", headers=USER).json()["language"] == "BM"


def test_feedback_round(client):
    response = client.post("/feedback", headers=USER, json={"rating": 5, "message": "Very helpful"})

    assert response.status_code == 200
    mailto = response.json()["mailto"]
    assert mailto.startswith("mailto:ogmathmentor@gmail.com?subject=MathMentor%20Feedback%3A%205%20Stars")
    listed = client.get("/feedback", headers=USER).json()
    assert [item["message"] for item in listed] == ["Very helpful"]


def test_feedback_validation(client):
    assert client.post("/feedback", headers=USER, json={"rating": 0, "message": "x"}).status_code == 422
    assert client.post("/feedback", headers=USER, json={"rating": 3, "message": "  "}).status_code == 422


def test_session_messages_run_the_mode_dialogue(client, fake_llm):
    fake_llm.streams = [[LLMMessage(content="$$x = 5$$")]]

    first = read_ndjson(client.post("/session/messages", headers=USER, json={"text": "Solve 2x+5=15"}))
    second = read_ndjson(client.post("/session/messages", headers=USER, json={"text": "fast"}))

    assert first[-1]["text"] == MODE_PROMPT["EN"]
    assert second[-1]["type"] == "turn"
    assert second[-1]["text"] == "$$x = 5$$"
    history = client.get("/session/history", headers=USER).json()
    assert len(history) == 4


def test_session_messages_require_text(client):
    assert client.post("/session/messages", headers=USER, json={"text": ""}).status_code == 422


def test_feedback_list_only_shows_own_feedback(client):
    client.post("/feedback", headers=USER, json={"rating": 5, "message": "Very helpful"})
    client.post("/feedback", headers=OTHER_USER, json={"rating": 2, "message": "Too slow"})

    assert [item["message"] for item in client.get("/feedback", headers=USER).json()] == ["Very helpful"]
    assert [item["message"] for item in client.get("/feedback", headers=OTHER_USER).json()] == ["Too slow"]


def test_session_starts_from_profile(client):
    client.put("/profile", headers=USER, json={"level": "Beginner (Primary)", "language": "BM", "chat_mode": "fast"})

    settings = client.get("/session", headers=USER).json()

    assert settings["level"] == "Beginner (Primary)"
    assert settings["language"] == "BM"
    assert settings["chat_mode"] == "fast"
    assert "Wang" in settings["focus_options"]


def test_profile_update_reaches_open_session(client):
    assert client.get("/session", headers=USER).json()["language"] == "EN"

    client.put("/profile", headers=USER, json={"language": "BM"})

    assert client.get("/session", headers=USER).json()["language"] == "BM"


def test_session_settings_flow_into_requests(client, fake_llm):
    level = client.put("/session/level", headers=USER, json={"level": "Intermediate (Secondary)", "sub_level": "Form 3"})
    label = level.json()["focus_options"][0]
    focus = client.post("/session/focus-areas", headers=USER, json={"label": label})
    preferences = client.put(
        "/session/preferences", headers=USER, json={"guided_questions": False, "reasoning_depth": "fast"}
    )
    client.post("/session/messages", headers=USER, json={"text": "learning"})
    fake_llm.streams = [[LLMMessage(content="x = 3")]]

    client.post("/session/messages", headers=USER, json={"text": "Solve 3x = 9"})

    assert level.status_code == 200
    assert focus.json()["focus_areas"] == [label]
    assert preferences.json()["preferences"] == {"guided_questions": False, "reasoning_depth": "fast"}
    conversation, settings = fake_llm.stream_calls[0]
    assert f"Focus Areas: {label}" in conversation[-1].content
    assert settings.thinking_budget == 2048
    assert "Socratic Guidance is INACTIVE" in settings.system_instruction


def test_session_level_rejects_foreign_sub_level(client):
    response = client.put("/session/level", headers=USER, json={"level": "Beginner (Primary)", "sub_level": "Form 3"})

    assert response.status_code == 422
    assert client.get("/session", headers=USER).json()["level"] == "Intermediate (Secondary)"


def test_clear_session(client, fake_llm):
    client.post("/session/messages", headers=USER, json={"text": "fast"})

    response = client.delete("/session", headers=USER)

    assert response.status_code == 200
    assert client.get("/session/history", headers=USER).json() == []


def test_least_recently_used_session_is_closed(fake_llm):
    client = TestClient(create_app(Settings(api_key="test-key"), llm=fake_llm, max_sessions=2))
    for user in ("a", "b"):
        client.post("/session/messages", headers={"X-User-Id": user}, json={"text": "fast"})
    client.get("/session/history", headers={"X-User-Id": "a"})

    client.post("/session/messages", headers={"X-User-Id": "c"}, json={"text": "fast"})

    assert len(client.get("/session/history", headers={"X-User-Id": "a"}).json()) == 2
    assert client.get("/session/history", headers={"X-User-Id": "b"}).json() == []


@pytest.mark.asyncio
async def test_overlapping_session_messages_are_rejected(gated_llm):
    gated_llm.streams = [[LLMMessage(content="$$x = 5$$")]]
    app = create_app(Settings(api_key="test-key"), llm=gated_llm)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        await client.put("/profile", headers=USER, json={"chat_mode": "fast"})
        first = asyncio.create_task(
            client.post("/session/messages", headers=USER, json={"text": "Solve 2x+5=15"})
        )
        await asyncio.wait_for(gated_llm.started.wait(), timeout=5)

        second = await client.post("/session/messages", headers=USER, json={"text": "Solve 3x = 9"})
        blocked_update = await client.put("/session/preferences", headers=USER, json={"language": "BM"})
        gated_llm.release.set()
        first_response = await asyncio.wait_for(first, timeout=5)

    assert second.status_code == 409
    assert blocked_update.status_code == 409
    assert first_response.status_code == 200
    assert read_ndjson(first_response)[-1]["text"] == "$$x = 5$$"
    assert len(gated_llm.stream_calls) == 1
