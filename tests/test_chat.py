"""Tests for the chat, history and vote routes."""
import json

from conftest import auth, text_step, tool_step

from app.models.document import DocumentKind
from app.services import document_service
from app.services.chat_service import ChatService

HAIKU_REQUEST = {
    "id": "chat-1",
    "modelId": "gpt-4o-mini",
    "messages": [{"role": "user", "content": "Écris un haïku sur la pluie"}],
}


def _events(response) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in response.text.split("\n\n")
        if line.startswith("data: ")
    ]


class TestSubmitTurn:
    def test_requires_authentication(self, client) -> None:
        assert client.post("/api/chat", json=HAIKU_REQUEST).status_code == 401

    def test_unknown_model(self, client) -> None:
        response = client.post("/api/chat", json={**HAIKU_REQUEST, "modelId": "gpt-0"}, headers=auth())
        assert response.status_code == 404

    def test_no_user_message(self, client) -> None:
        response = client.post(
            "/api/chat",
            json={**HAIKU_REQUEST, "messages": [{"role": "assistant", "content": "Bonjour"}]},
            headers=auth(),
        )
        assert response.status_code == 400

    def test_foreign_chat_is_unauthorized(self, client, session) -> None:
        ChatService().save_chat(session, "chat-1", "user-2", "Privé")
        assert client.post("/api/chat", json=HAIKU_REQUEST, headers=auth()).status_code == 401

    def test_haiku_turn_streams_text_and_persists(self, client, provider, session) -> None:
        provider.steps = [text_step("Gouttes sur le toit\n", "la ville se tait\n", "un parapluie rit")]

        response = client.post("/api/chat", json=HAIKU_REQUEST, headers=auth())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _events(response)
        assert events[0]["type"] == "user-message-id"
        text = "".join(e["content"] for e in events if e["type"] == "text-delta")
        assert text.strip()
        assert events[-1] == {"type": "finish", "content": {"finishReason": "stop"}}

        stored = ChatService().get_messages_by_chat_id(session, "chat-1")
        assert [m.role for m in stored] == ["user", "assistant"]
        assert stored[0].id == events[0]["content"]

    def test_update_of_foreign_document_reports_error_and_continues(self, client, provider, session) -> None:
        document_service.save_document(
            session, id="doc-x", title="Secret", kind=DocumentKind.TEXT, content="x", user_id="user-2"
        )
        provider.steps = [
            tool_step("updateDocument", {"id": "doc-x", "description": "Tout effacer"}),
            text_step("Je ne trouve pas ce document."),
        ]

        response = client.post("/api/chat", json=HAIKU_REQUEST, headers=auth())

        events = _events(response)
        [tool_result] = [e for e in events if e["type"] == "tool-result"]
        assert tool_result["content"]["result"] == {"error": "Document non trouvé"}
        assert events[-1]["type"] == "finish"
        assert "Je ne trouve pas ce document." in [e["content"] for e in events if e["type"] == "text-delta"]
        assert [v.content for v in document_service.get_documents_by_id(session, "doc-x")] == ["x"]

    def test_upstream_failure_ends_with_error_then_finish(self, client, provider) -> None:
        provider.fail_loop = True

        events = _events(client.post("/api/chat", json=HAIKU_REQUEST, headers=auth()))

        assert [e["type"] for e in events][-2:] == ["error", "finish"]


class TestDeleteChat:
    def test_missing_id_or_chat_is_not_found(self, client) -> None:
        assert client.delete("/api/chat", headers=auth()).status_code == 404
        assert client.delete("/api/chat", params={"id": "nope"}, headers=auth()).status_code == 404

    def test_requires_owner(self, client, session) -> None:
        ChatService().save_chat(session, "chat-1", "user-2", "Privé")

        assert client.delete("/api/chat", params={"id": "chat-1"}).status_code == 401
        assert client.delete("/api/chat", params={"id": "chat-1"}, headers=auth()).status_code == 401

    def test_deletes_chat_and_messages(self, client, session) -> None:
        service = ChatService()
        service.save_chat(session, "chat-1", "user-1", "Pluie")
        service.store_message(session, "chat-1", role="user", content="Bonjour", message_id="m1")
        service.vote_message(session, "chat-1", "m1", "up")

        response = client.delete("/api/chat", params={"id": "chat-1"}, headers=auth())

        assert response.status_code == 200
        assert response.text == "Chat deleted"
        session.expire_all()
        assert service.get_chat_by_id(session, "chat-1") is None
        assert service.get_messages_by_chat_id(session, "chat-1") == []
        assert service.get_votes_by_chat_id(session, "chat-1") == []


class TestHistory:
    def test_lists_only_own_chats(self, client, session) -> None:
        service = ChatService()
        service.save_chat(session, "chat-1", "user-1", "Pluie")
        service.save_chat(session, "chat-2", "user-2", "Soleil")

        assert client.get("/api/history").status_code == 401
        response = client.get("/api/history", headers=auth())
        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == ["chat-1"]


class TestVotes:
    def test_validation(self, client) -> None:
        assert client.get("/api/vote", headers=auth()).status_code == 400
        assert client.patch("/api/vote", json={"chatId": "chat-1"}, headers=auth()).status_code == 400
        assert client.get("/api/vote", params={"chatId": "chat-1"}).status_code == 401

    def test_unknown_chat(self, client) -> None:
        response = client.patch(
            "/api/vote", json={"chatId": "nope", "messageId": "m1", "type": "up"}, headers=auth()
        )
        assert response.status_code == 404

    def test_vote_then_revote(self, client, session) -> None:
        ChatService().save_chat(session, "chat-1", "user-1", "Pluie")
        body = {"chatId": "chat-1", "messageId": "m1", "type": "up"}

        response = client.patch("/api/vote", json=body, headers=auth())
        assert response.status_code == 200
        assert response.text == "Message voté"
        client.patch("/api/vote", json={**body, "type": "down"}, headers=auth())

        [vote] = client.get("/api/vote", params={"chatId": "chat-1"}, headers=auth()).json()
        assert vote["message_id"] == "m1"
        assert vote["is_upvoted"] is False

    def test_foreign_chat_votes_are_unauthorized(self, client, session) -> None:
        ChatService().save_chat(session, "chat-1", "user-2", "Privé")
        assert client.get("/api/vote", params={"chatId": "chat-1"}, headers=auth()).status_code == 401


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}
