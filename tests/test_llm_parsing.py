"""Tests for proposal_engine.core.llm: JSON cleanup for model output."""

import json

import pytest
from pydantic import ValidationError

from proposal_engine.core.llm import parse_llm_json, parse_llm_json_dict
from proposal_engine.core.schemas_context import ProposalContent


class TestParseLlmJsonDict:
    def test_plain_json(self):
        assert parse_llm_json_dict('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert parse_llm_json_dict('```json\n{"a": 1}\n```') == {"a": 1}

    def test_bare_fence(self):
        assert parse_llm_json_dict('```\n{"a": 1}\n```') == {"a": 1}

    def test_json_wrapped_in_prose(self):
        raw = 'Here is what I found:\n{"services": ["oil change"]}\nLet me know if you need more.'
        assert parse_llm_json_dict(raw) == {"services": ["oil change"]}

    def test_no_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_llm_json_dict("nothing to see here")

    def test_array_rejected(self):
        with pytest.raises(ValueError):
            parse_llm_json_dict("[1, 2]")


class TestParseLlmJson:
    def test_validates_model(self):
        content = parse_llm_json('{"headline": "Hi", "next_steps": ["Call"]}', ProposalContent)
        assert content.headline == "Hi"
        assert content.value_propositions == []

    def test_schema_mismatch(self):
        with pytest.raises(ValidationError):
            parse_llm_json('{"next_steps": "not a list"}', ProposalContent)
