"""Tests for the generation service and content pieces."""
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conftest import TEAM, ScriptedGenerator, fake_groq_client
from contentforge.errors import GenerationFailure, NotFoundError
from contentforge.schemas.generation import GenerationRequest
from contentforge.services.content_service import ContentService
from contentforge.services.generation_service import GenerationService, build_prompt, strip_outer_quotes
from contentforge.services.variant_aggregator import VariantAggregator


class TestGenerationService:
    @pytest.mark.asyncio
    async def test_generate_strips_quotes(self, settings):
        client = fake_groq_client('"Launch day is here #launch"')
        service = GenerationService(settings, client=client, prompt_hints={"twitter": "max 250 characters"})

        text = await service.generate(GenerationRequest(topic="Q3 launch", platform="twitter"))

        assert text == "Launch day is here #launch"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == settings.generation_model
        assert "max 250 characters" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_empty_completion_is_a_failure(self, settings):
        service = GenerationService(settings, client=fake_groq_client("   "))

        with pytest.raises(GenerationFailure):
            await service.generate(GenerationRequest(topic="Q3 launch", platform="twitter"))

    @pytest.mark.asyncio
    async def test_upstream_error_is_a_failure(self, settings):
        client = fake_groq_client()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("rate limited"))
        service = GenerationService(settings, client=client)

        with pytest.raises(GenerationFailure) as exc_info:
            await service.generate(GenerationRequest(topic="Q3 launch", platform="linkedin"))
        assert "rate limited" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_without_api_key_is_unavailable(self, settings):
        service = GenerationService(settings)

        assert not service.is_available()
        with pytest.raises(GenerationFailure):
            await service.generate_long_form("Q3 launch")

    @pytest.mark.asyncio
    async def test_no_choices_is_a_failure(self, settings):
        client = fake_groq_client()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))

        with pytest.raises(GenerationFailure):
            await GenerationService(settings, client=client).generate(
                GenerationRequest(topic="Q3 launch", platform="facebook")
            )

    def test_prompt_includes_reference_body(self):
        request = GenerationRequest(topic="Q3 launch", platform="linkedin", reference_body="Full article")
        prompt = build_prompt(request, "Be professional.")

        assert "Full article" in prompt
        assert prompt.endswith("Be professional.")

    def test_strip_outer_quotes(self):
        assert strip_outer_quotes("'Hello'\n") == "Hello"
        assert strip_outer_quotes('He said "hi" today') == 'He said "hi" today'


@pytest.fixture
def content_service(session_factory, registry):
    def _make(generator):
        aggregator = VariantAggregator(generator, registry, max_concurrency=4, timeout_seconds=1.0)
        return ContentService(session_factory, generator, aggregator, registry)
    return _make


class TestContentService:
    @pytest.mark.asyncio
    async def test_generate_content_piece_persists_variants(self, content_service):
        generator = ScriptedGenerator({"twitter": ["short one", "x" * 300, GenerationFailure("nope")]})
        service = content_service(generator)

        piece, batch = await service.generate_content_piece(TEAM, "Q3 launch", ["twitter", "linkedin"],
                                                            redundancy=3, title="Launch")

        assert piece.body == "A long-form article body."
        assert piece.title == "Launch"
        assert all(call.reference_body == "A long-form article body." for call in generator.calls)
        twitter = [v for v in piece.variants if v.platform == "twitter"]
        assert [v.text for v in twitter] == ["short one", "x" * 300]
        assert [v.over_limit for v in twitter] == [False, True]
        assert len([v for v in piece.variants if v.platform == "linkedin"]) == 3
        assert not batch.is_degraded("twitter")

    @pytest.mark.asyncio
    async def test_long_form_failure_falls_back_to_topic(self, content_service):
        generator = ScriptedGenerator(long_form=GenerationFailure("upstream down"))
        service = content_service(generator)

        piece, _ = await service.generate_content_piece(TEAM, "Q3 launch", ["linkedin"], redundancy=1)

        assert piece.body is None
        assert generator.calls[0].reference_body is None
        assert len(piece.variants) == 1

    @pytest.mark.asyncio
    async def test_get_and_list_are_team_scoped(self, content_service):
        service = content_service(ScriptedGenerator())
        piece, _ = await service.generate_content_piece(TEAM, "Q3 launch", ["twitter"], redundancy=1)

        assert service.get_content_piece(piece.id, TEAM).id == piece.id
        assert [p.id for p in service.list_content_pieces(TEAM)] == [piece.id]
        assert service.list_content_pieces("other-team") == []
        with pytest.raises(NotFoundError):
            service.get_content_piece(piece.id, "other-team")

    @pytest.mark.asyncio
    async def test_update_variant_recomputes_over_limit(self, content_service):
        service = content_service(ScriptedGenerator())
        piece, _ = await service.generate_content_piece(TEAM, "Q3 launch", ["twitter"], redundancy=1)
        variant = piece.variants[0]

        updated = service.update_variant(variant.id, text="y" * 260, team_id=TEAM)
        assert updated.over_limit is True

        updated = service.update_variant(variant.id, text="short again", image_url="https://cdn.example.com/a.png")
        assert updated.over_limit is False
        assert updated.image_url == "https://cdn.example.com/a.png"

    def test_update_unknown_variant(self, content_service):
        with pytest.raises(NotFoundError):
            content_service(ScriptedGenerator()).update_variant(404, text="hello")
