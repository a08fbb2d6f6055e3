"""Tests for the document draft state machine and the document tools."""
import pytest
from conftest import drain

from app.models.document import DocumentKind
from app.services import document_service, drafts
from app.services.drafts import DocumentDraft, DraftState


def _types(records):
    return [record["type"] for record in records]


class TestDocumentDraft:
    @pytest.mark.asyncio
    async def test_text_appends_fragments(self, stream, provider) -> None:
        provider.document_text = ["Pluie ", "sur ", "Paris"]
        draft = DocumentDraft("d1", "Pluie", DocumentKind.TEXT, stream, provider, "m")

        assert draft.state == DraftState.CREATED
        content = await draft.generate("Pluie")

        assert content == "Pluie sur Paris"
        assert draft.state == DraftState.FINISHED
        records = drain(stream)
        assert _types(records) == ["text-delta", "text-delta", "text-delta", "finish"]
        assert [r["content"] for r in records[:3]] == ["Pluie ", "sur ", "Paris"]

    @pytest.mark.asyncio
    async def test_code_replaces_with_latest_snapshot(self, stream, provider) -> None:
        provider.code_snapshots = [{}, {"code": "print("}, {"code": "print(1)"}]
        draft = DocumentDraft("d1", "Afficher 1", DocumentKind.CODE, stream, provider, "m")

        content = await draft.generate("Afficher 1")

        assert content == "print(1)"
        records = drain(stream)
        assert _types(records) == ["code-delta", "code-delta", "finish"]
        assert [r["content"] for r in records[:2]] == ["print(", "print(1)"]

    @pytest.mark.asyncio
    async def test_search_researches_before_writing(self, stream, provider, search_client) -> None:
        provider.objects = {
            "QueryPlan": [{"queries": ["pluie paris", "climat paris"]}],
            "OrganizedResults": [
                {"organizedResults": [{"Titre": "Pluie", "Source": "https://a", "Content": "Il pleut"}]},
                {"organizedResults": []},
            ],
        }
        draft = DocumentDraft(
            "d1", "Pluie à Paris", DocumentKind.SEARCH, stream, provider, "m", search_client=search_client
        )

        await draft.generate("Pluie à Paris")

        assert search_client.queries == ["pluie paris", "climat paris"]
        prompt = provider.document_calls[-1]["prompt"]
        assert 'Search results for the topic: "Pluie à Paris"' in prompt
        assert "Titre: Pluie" in prompt
        assert "No organized results found for query: climat paris" in prompt
        assert draft.content == "# Titre\nCorps"

    @pytest.mark.asyncio
    async def test_draft_generates_once(self, stream, provider) -> None:
        draft = DocumentDraft("d1", "x", DocumentKind.TEXT, stream, provider, "m")
        await draft.generate("x")
        with pytest.raises(RuntimeError):
            await draft.generate("x")


class TestDocumentTools:
    @pytest.mark.asyncio
    async def test_create_document_streams_and_persists(self, tool_context, session) -> None:
        result = await drafts.create_document(tool_context, "Haïku", DocumentKind.TEXT)

        records = drain(tool_context.stream)
        assert _types(records)[:4] == ["id", "title", "kind", "clear"]
        assert records[0]["content"] == result["id"]
        assert records[3]["content"] == "Haïku"
        assert _types(records)[-1] == "finish"

        stored = document_service.get_document_by_id(session, result["id"], user_id="user-1")
        assert stored.content == "# Titre\nCorps"
        assert result["content"] == "Un document a été créé et est maintenant visible à l'utilisateur."

    @pytest.mark.asyncio
    async def test_anonymous_draft_is_not_persisted(self, tool_context, session) -> None:
        tool_context.user_id = None
        result = await drafts.create_document(tool_context, "Haïku", DocumentKind.TEXT)
        assert document_service.get_documents_by_id(session, result["id"]) == []

    @pytest.mark.asyncio
    async def test_update_revises_against_current_content(self, tool_context, provider, session) -> None:
        document_service.save_document(
            session, id="doc-1", title="Essai", kind=DocumentKind.TEXT, content="Ancien texte", user_id="user-1"
        )
        provider.document_text = ["Nouveau ", "texte"]

        result = await drafts.update_document(tool_context, "doc-1", "Rendre plus poétique")

        call = provider.document_calls[-1]
        assert "Ancien texte" in call["system"]
        assert call["prediction"] == "Ancien texte"
        assert call["prompt"] == "Rendre plus poétique"
        records = drain(tool_context.stream)
        assert records[0] == {"type": "clear", "content": "Essai"}
        assert result["content"] == "Le document a été mis à jour avec succès."
        assert [v.content for v in document_service.get_documents_by_id(session, "doc-1")] == [
            "Ancien texte",
            "Nouveau texte",
        ]

    @pytest.mark.asyncio
    async def test_update_code_document_replaces(self, tool_context, provider, session) -> None:
        document_service.save_document(
            session, id="doc-1", title="Script", kind=DocumentKind.CODE, content="print(0)", user_id="user-1"
        )
        provider.code_snapshots = [{"code": "print(1"}, {"code": "print(1)"}]

        await drafts.update_document(tool_context, "doc-1", "Afficher 1")

        assert document_service.get_document_by_id(session, "doc-1").content == "print(1)"

    @pytest.mark.asyncio
    async def test_update_foreign_document_is_not_found(self, tool_context, provider, session) -> None:
        document_service.save_document(
            session, id="doc-1", title="Secret", kind=DocumentKind.TEXT, content="x", user_id="user-2"
        )

        result = await drafts.update_document(tool_context, "doc-1", "Effacer")

        assert result == {"error": "Document non trouvé"}
        assert provider.document_calls == []
        assert drain(tool_context.stream) == []
        assert len(document_service.get_documents_by_id(session, "doc-1")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_updates_last_save_wins(self, tool_context, provider, session) -> None:
        document_service.save_document(
            session, id="doc-1", title="Essai", kind=DocumentKind.TEXT, content="v0", user_id="user-1"
        )

        provider.document_text = ["version A"]
        await drafts.update_document(tool_context, "doc-1", "A")
        provider.document_text = ["version B"]
        await drafts.update_document(tool_context, "doc-1", "B")

        versions = document_service.get_documents_by_id(session, "doc-1")
        assert versions[-1].content == "version B"
        assert document_service.get_document_by_id(session, "doc-1").content == "version B"
