"""Tests for MentionExtractor with mocked LLM."""

import json
from unittest.mock import MagicMock, patch

import pytest

from llm import LLMError
from memory.extractor import MentionExtractor
from memory.models import EntityType


@pytest.fixture
def extractor(provider):
    return MentionExtractor(provider=provider, max_attempts=1)


class TestExtract:
    def test_valid_json(self, extractor, provider):
        provider.generate.return_value = json.dumps(
            [
                {"name": "Adam Watson", "type": "person", "facts": ["Works at Acme"]},
                {"name": "Acme", "type": "company", "facts": ["Makes widgets", " "]},
            ]
        )
        mentions = extractor.extract("Adam from Acme called.", source_id="note-1")

        assert [m.name for m in mentions] == ["Adam Watson", "Acme"]
        assert mentions[1].type == EntityType.COMPANY
        assert mentions[1].facts == ["Makes widgets"]

    def test_array_inside_prose(self, extractor, provider):
        provider.generate.return_value = (
            'Here you go:\n[{"name": "Atlas", "type": "project", "facts": []}]\nDone.'
        )
        mentions = extractor.extract("Atlas kicked off")
        assert mentions[0].type == EntityType.PROJECT

    def test_trailing_commas_and_single_quotes(self, extractor, provider):
        provider.generate.return_value = "[{'name': 'Acme', 'type': 'company', 'facts': ['Makes widgets',],},]"
        mentions = extractor.extract("text")
        assert [(m.name, m.facts) for m in mentions] == [("Acme", ["Makes widgets"])]

    def test_salvages_good_objects(self, extractor, provider):
        provider.generate.return_value = (
            '[{"name": "Acme", "type": "company", "facts": ["Makes widgets"]}, '
            '{"name": broken, "type": }]'
        )
        mentions = extractor.extract("text")
        assert [(m.name, m.facts) for m in mentions] == [("Acme", ["Makes widgets"])]

    def test_unknown_type_defaults_to_person(self, extractor, provider):
        provider.generate.return_value = '[{"name": "Sam", "type": "human", "facts": []}]'
        assert extractor.extract("text")[0].type == EntityType.PERSON

    def test_incomplete_items_dropped(self, extractor, provider):
        provider.generate.return_value = json.dumps(
            [
                {"name": "", "type": "person", "facts": []},
                {"name": "Acme", "facts": []},
                {"name": "Bea", "type": "person", "facts": "not a list"},
                "junk",
                {"name": "Cy", "type": "person", "facts": []},
            ]
        )
        assert [m.name for m in extractor.extract("text")] == ["Cy"]

    def test_no_array(self, extractor, provider):
        provider.generate.return_value = "I could not find any entities."
        assert extractor.extract("text") == []

    def test_provider_error(self, extractor, provider):
        provider.generate.side_effect = LLMError("down")
        assert extractor.extract("text") == []

    def test_empty_text_skips_provider(self, extractor, provider):
        assert extractor.extract("   ") == []
        provider.generate.assert_not_called()

    def test_text_truncated(self, provider):
        provider.generate.return_value = "[]"
        MentionExtractor(provider=provider, max_chars=10, max_attempts=1).extract("a" * 50)
        prompt = provider.generate.call_args.kwargs["messages"][0]["content"]
        assert "a" * 10 in prompt
        assert "a" * 11 not in prompt

    def test_retries_transient_failure(self, provider):
        provider.generate.side_effect = [
            LLMError("rate limited"),
            '[{"name": "Acme", "type": "company", "facts": []}]',
        ]
        mentions = MentionExtractor(provider=provider, max_attempts=2).extract("text")
        assert [m.name for m in mentions] == ["Acme"]
        assert provider.generate.call_count == 2

    def test_default_provider_built_once(self):
        built = MagicMock()
        built.generate.return_value = "[]"
        with patch("llm.factory.create_cheap_provider", return_value=built) as factory:
            extractor = MentionExtractor(max_attempts=1)
            extractor.extract("first note")
            extractor.extract("second note")
        factory.assert_called_once_with()
        assert built.generate.call_count == 2
