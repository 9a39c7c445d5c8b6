"""Tests for entity summary generation."""

import pytest

from llm import LLMError
from memory.summarizer import ConcatSummarizer, LLMSummarizer, archived_placeholder


class TestConcatSummarizer:
    def test_first_three_facts(self):
        summary = ConcatSummarizer().summarize(
            "Adam", "person", ["Works at Acme.", "Lives in Austin", "Likes tea", "Has a dog"]
        )
        assert summary == "Works at Acme. Lives in Austin. Likes tea."

    def test_no_facts_placeholder(self):
        assert ConcatSummarizer().summarize("Adam", "person", []) == (
            "Adam is a person with archived knowledge."
        )

    def test_placeholder_helper(self):
        assert archived_placeholder("Acme", "company") == "Acme is a company with archived knowledge."


class TestLLMSummarizer:
    def test_uses_provider(self, provider):
        provider.generate.return_value = "  Adam is an engineer at Acme.  "
        summarizer = LLMSummarizer(provider, max_tokens=120)

        summary = summarizer.summarize("Adam", "person", ["Works at Acme"])

        assert summary == "Adam is an engineer at Acme."
        kwargs = provider.generate.call_args.kwargs
        assert kwargs["max_tokens"] == 120
        assert kwargs["temperature"] == pytest.approx(0.3)
        assert "- Works at Acme" in kwargs["messages"][0]["content"]

    def test_falls_back_on_llm_error(self, provider):
        provider.generate.side_effect = LLMError("timeout")
        summary = LLMSummarizer(provider).summarize("Adam", "person", ["Works at Acme", "Likes tea"])
        assert summary == "Works at Acme. Likes tea."

    def test_falls_back_on_empty_response(self, provider):
        provider.generate.return_value = "   "
        summary = LLMSummarizer(provider).summarize("Adam", "person", ["Works at Acme"])
        assert summary == "Works at Acme."

    def test_no_facts_skips_provider(self, provider):
        summary = LLMSummarizer(provider).summarize("Adam", "person", [])
        assert summary == "Adam is a person with archived knowledge."
        provider.generate.assert_not_called()
