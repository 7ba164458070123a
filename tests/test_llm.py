"""Tests for tag/proposal prompting and parsing."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import make_paper
from paperscout.config import Settings
from paperscout.errors import LLMError
from paperscout.llm import (
    AnthropicCompleter,
    build_proposal_prompt,
    build_tag_prompt,
    completer_from_settings,
    parse_proposal,
    parse_tags,
)


class TestParseTags:
    def test_ascii_commas(self):
        assert parse_tags("nlp, transformers ,attention") == ["nlp", "transformers", "attention"]

    def test_ideographic_commas(self):
        assert parse_tags("自然言語処理、機械学習、 深層学習") == ["自然言語処理", "機械学習", "深層学習"]

    def test_drops_empties_hashes_and_duplicates(self):
        assert parse_tags("#nlp, , nlp, #vision") == ["nlp", "vision"]

    def test_at_most_five(self):
        assert parse_tags("a,b,c,d,e,f,g") == ["a", "b", "c", "d", "e"]

    def test_empty(self):
        assert parse_tags("") == []


class TestParseProposal:
    def test_plain_json(self):
        parsed = parse_proposal('{"title": "T", "description": "D", "open_problems": ["Q"]}')
        assert parsed == {"title": "T", "description": "D", "open_problems": ["Q"]}

    def test_fenced_json(self):
        parsed = parse_proposal('```json\n{"title": "T", "description": "D"}\n```')
        assert parsed["open_problems"] == []

    def test_single_open_problem_string(self):
        parsed = parse_proposal('{"title": "T", "description": "D", "open_problems": "Q"}')
        assert parsed["open_problems"] == ["Q"]

    @pytest.mark.parametrize(
        "reply", ["not json", '{"title": "T"}', '["T", "D"]', '{"description": "D"}']
    )
    def test_invalid(self, reply):
        with pytest.raises(LLMError):
            parse_proposal(reply)


class TestPrompts:
    def test_tag_prompt_includes_title_and_abstract(self):
        prompt = build_tag_prompt(make_paper("p1", title="Graph Nets", abstract="Edges matter."))
        assert "Graph Nets" in prompt
        assert "Edges matter." in prompt

    def test_proposal_prompt_numbers_papers(self):
        prompt = build_proposal_prompt(
            [make_paper("p1", title="First", authors=["A"]), make_paper("p2", title="Second")]
        )
        assert "[1] First" in prompt
        assert "[2] Second" in prompt
        assert "Authors: Unknown" in prompt


class TestAnthropicCompleter:
    def test_complete(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text="  nlp, vision \n")]
        )
        completer = AnthropicCompleter(model="test-model", client=client)

        assert completer.complete("system", "user") == "nlp, vision"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]

    def test_api_failure_becomes_llm_error(self):
        client = MagicMock()
        client.messages.create.side_effect = RuntimeError("overloaded")
        with pytest.raises(LLMError, match="overloaded"):
            AnthropicCompleter(client=client).complete("s", "u")

    def test_empty_content(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(content=[])
        with pytest.raises(LLMError):
            AnthropicCompleter(client=client).complete("s", "u")


def test_completer_from_settings_without_key():
    assert completer_from_settings(Settings(anthropic_api_key=None)) is None
