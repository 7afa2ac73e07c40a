"""End-to-end tests for the HTTP surface with a scripted model."""
import pytest
from fastapi.testclient import TestClient

from turnstream.app import TurnstreamApp, create_api
from turnstream.config import AgentConfig, AppConfig, AuthConfig, StorageConfig

from conftest import FakeAIClient, action_blob

AUTH = {"Authorization": "Bearer secret-1"}


def make_client(tmp_path, responses, tools=("calculator",)):
    config = AppConfig(
        storage=StorageConfig(db_path=str(tmp_path / "api.db"), retry_backoff=0),
        auth=AuthConfig(api_keys={"secret-1": "alice", "secret-2": "bob"}),
        agent=AgentConfig(tools=list(tools)),
    )
    services = TurnstreamApp(config, ai_client=FakeAIClient(responses))
    return TestClient(create_api(services))


def test_chat_requires_authentication(tmp_path):
    with make_client(tmp_path, []) as client:
        assert client.post("/api/chat", json={"messages": []}).status_code == 401
        bad = client.post("/api/chat", json={"messages": []}, headers={"Authorization": "Bearer nope"})
        assert bad.status_code == 401
        assert bad.json() == {"detail": "Unauthorized"}
        # body is not looked at before authentication
        assert client.post("/api/chat", content=b"{not json").status_code == 401
        assert client.get("/api/chats").status_code == 401


def test_chat_validates_body(tmp_path):
    with make_client(tmp_path, []) as client:
        assert client.post("/api/chat", json={"messages": []}, headers=AUTH).status_code == 422
        assert client.post("/api/chat", content=b"{not json", headers=AUTH).status_code == 422
        missing_role = {"messages": [{"content": "hi"}]}
        assert client.post("/api/chat", json=missing_role, headers=AUTH).status_code == 422


def test_chat_streams_answer_and_persists(tmp_path):
    responses = [
        action_blob("calculator", "2+2"),
        action_blob("Final Answer", "2+2 is 4."),
    ]
    with make_client(tmp_path, responses) as client:
        body = {"id": "abc", "messages": [{"role": "user", "content": "What's 2+2?"}]}
        response = client.post("/api/chat", json=body, headers=AUTH)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["x-chat-id"] == "abc"
        assert response.text == "2+2 is 4."

        chats = client.get("/api/chats", headers=AUTH).json()
        assert [c["id"] for c in chats] == ["abc"]
        assert chats[0]["title"] == "What's 2+2?"
        assert chats[0]["path"] == "/chat/abc"

        detail = client.get("/api/chats/abc", headers=AUTH).json()
        assert detail["userId"] == "alice"
        assert detail["messages"] == [
            {"role": "user", "content": "What's 2+2?"},
            {"role": "assistant", "content": "2+2 is 4."},
        ]

        other_user = {"Authorization": "Bearer secret-2"}
        assert client.get("/api/chats/abc", headers=other_user).status_code == 404
        assert client.get("/api/chats", headers=other_user).json() == []


def test_chat_generates_id_when_absent(tmp_path):
    with make_client(tmp_path, [action_blob("Final Answer", "hello")]) as client:
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]}, headers=AUTH)
        chat_id = response.headers["x-chat-id"]
        assert len(chat_id) == 7
        assert client.get(f"/api/chats/{chat_id}", headers=AUTH).status_code == 200


def test_turn_failing_before_output_is_502_and_writes_nothing(tmp_path):
    with make_client(tmp_path, ["no directive"]) as client:
        body = {"id": "fail", "messages": [{"role": "user", "content": "hi"}]}
        response = client.post("/api/chat", json=body, headers=AUTH)

        assert response.status_code == 502
        assert "Agent failed" in response.json()["detail"]
        assert "x-chat-id" not in response.headers
        assert client.get("/api/chats/fail", headers=AUTH).status_code == 404
        assert client.get("/api/chats", headers=AUTH).json() == []


def test_unknown_configured_tool_fails_before_streaming(tmp_path):
    with make_client(tmp_path, [], tools=("teleport",)) as client:
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]}, headers=AUTH)
        assert response.status_code == 500
        assert "teleport" in response.json()["detail"]


def test_chats_404_for_unknown_id(tmp_path):
    with make_client(tmp_path, []) as client:
        assert client.get("/api/chats/missing", headers=AUTH).status_code == 404


def test_non_ascii_bearer_token_is_unauthorized(tmp_path):
    with make_client(tmp_path, []) as client:
        # headers travel as latin-1; the server sees "Bearer café"
        headers = {"Authorization": "Bearer café".encode("latin-1")}
        response = client.post("/api/chat", json={"messages": []}, headers=headers)
        assert response.status_code == 401


def test_truncated_answer_aborts_response_and_writes_nothing(tmp_path):
    truncated = '{"action": "Final Answer", "action_input": "The answer is 4."'
    with make_client(tmp_path, [truncated]) as client:
        body = {"id": "cut", "messages": [{"role": "user", "content": "What's 2+2?"}]}
        with pytest.raises(Exception):
            client.post("/api/chat", json=body, headers=AUTH)

        assert client.get("/api/chats/cut", headers=AUTH).status_code == 404


def test_reused_chat_id_is_listed_only_for_its_owner(tmp_path):
    responses = [
        action_blob("Final Answer", "alice answer"),
        action_blob("Final Answer", "bob answer"),
    ]
    bob = {"Authorization": "Bearer secret-2"}
    with make_client(tmp_path, responses) as client:
        alice_body = {"id": "abc", "messages": [{"role": "user", "content": "alice title"}]}
        bob_body = {"id": "abc", "messages": [{"role": "user", "content": "bob secret title"}]}
        assert client.post("/api/chat", json=alice_body, headers=AUTH).status_code == 200
        assert client.post("/api/chat", json=bob_body, headers=bob).status_code == 200

        assert client.get("/api/chats", headers=AUTH).json() == []
        assert client.get("/api/chats/abc", headers=AUTH).status_code == 404
        assert [c["title"] for c in client.get("/api/chats", headers=bob).json()] == ["bob secret title"]
