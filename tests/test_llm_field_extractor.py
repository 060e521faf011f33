"""Tests for LLM response parsing and the language-model extractor.

No network calls: the LLM client is replaced by a stub with ``generate``.
"""

from dataclasses import dataclass

import pytest

from tank_intake.constants import LLM_CONFIDENCE
from tank_intake.exceptions import CollaboratorUnavailable
from tank_intake.llm.field_extractor import (
    LanguageModelFieldExtractor,
    extract_json_text,
    parse_field_response,
    repair_json,
)
from tank_intake.llm.prompt_loader import load_prompt
from tank_intake.models.extracted_field import FieldSource, FieldStatus
from tank_intake.schemas.field_catalog import known_field_keys

KEYS = known_field_keys()


@dataclass
class StubResponse:
    text: str


class StubClient:
    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate(self, prompt, **kwargs):
        self.prompts.append((prompt, kwargs))
        if self.error:
            raise self.error
        return StubResponse(self.text)


class TestJsonHelpers:
    def test_fenced_json(self):
        reply = 'はい。\n```json\n{"fields": {"siteAddress": "東京都"}}\n```'
        assert extract_json_text(reply) == '{"fields": {"siteAddress": "東京都"}}'

    def test_prose_before_object(self):
        assert extract_json_text('結果: {"a": 1}') == '{"a": 1}'

    def test_repair_trailing_comma(self):
        assert repair_json('{"a": "b",}') == '{"a": "b"}'

    def test_repair_truncated(self):
        assert repair_json('{"fields": {"a": "b"') == '{"fields": {"a": "b"}}'


class TestParseFieldResponse:
    def test_wrapped_fields(self):
        reply = '{"fields": {"siteAddress": "東京都港区", "buildingUse": "事務所"}}'
        assert parse_field_response(reply, KEYS) == {"siteAddress": "東京都港区", "buildingUse": "事務所"}

    def test_flat_object(self):
        assert parse_field_response('{"tankCapacity": 500}', KEYS) == {"tankCapacity": "500"}

    def test_drops_unknown_and_empty(self):
        reply = '{"fields": {"siteAddress": null, "buildingUse": "不明", "color": "red", "soilType": "第2種地盤"}}'
        assert parse_field_response(reply, KEYS) == {"soilType": "第2種地盤"}

    def test_list_values_joined(self):
        reply = '{"fields": {"loadCases": ["常時", "地震時"]}}'
        assert parse_field_response(reply, KEYS) == {"loadCases": "常時, 地震時"}

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_field_response("[1, 2]", KEYS)


class TestLanguageModelFieldExtractor:
    def test_fields_normalized_with_fixed_confidence(self):
        client = StubClient('{"fields": {"totalFloorArea": "5,000平米", "numberOfFloors": "10階建"}}')
        extractor = LanguageModelFieldExtractor(client=client)

        fields = {f.key: f for f in extractor("延床5000平米、10階建", KEYS)}

        assert fields["totalFloorArea"].value == "5000㎡"
        assert fields["numberOfFloors"].value == "地上10階"
        for item in fields.values():
            assert item.confidence == LLM_CONFIDENCE
            assert item.source == FieldSource.LLM
            assert item.status == FieldStatus.EXTRACTED

    def test_prompt_rendered_with_text_and_fields(self):
        client = StubClient('{"fields": {}}')
        LanguageModelFieldExtractor(client=client)("所在地は横浜", KEYS)

        prompt, kwargs = client.prompts[0]
        assert "所在地は横浜" in prompt
        assert "siteAddress" in prompt
        assert "{{" not in prompt
        assert kwargs["json_mode"] is True
        assert kwargs["prompt_version"].startswith("field_extraction@")

    def test_client_error_becomes_unavailable(self):
        extractor = LanguageModelFieldExtractor(client=StubClient(error=TimeoutError("slow")))
        with pytest.raises(CollaboratorUnavailable):
            extractor("所在地：東京都", KEYS)

    def test_garbage_reply_becomes_unavailable(self):
        extractor = LanguageModelFieldExtractor(client=StubClient("申し訳ありません"))
        with pytest.raises(CollaboratorUnavailable):
            extractor("所在地：東京都", KEYS)

    def test_empty_text_skips_call(self):
        client = StubClient()
        assert LanguageModelFieldExtractor(client=client)("  ", KEYS) == []
        assert client.prompts == []

    def test_unnormalizable_value_dropped(self):
        client = StubClient('{"fields": {"seismicLevel": "高い", "tankContent": "重油"}}')
        fields = LanguageModelFieldExtractor(client=client)("text", KEYS)
        assert [f.key for f in fields] == ["tankContent"]


class TestPromptLoader:
    def test_bundled_prompt_has_metadata(self):
        prompt = load_prompt("field_extraction")
        assert prompt.version != "0.0.0"
        assert len(prompt.content_hash) == 16
        assert "{{text}}" in prompt.content

    def test_missing_prompt(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_prompt("absent", prompts_dir=tmp_path)


class TestLLMClientFallback:
    """Model fallback in LLMClient, with LiteLLM's completion patched out."""

    @staticmethod
    def _response(text):
        from types import SimpleNamespace

        return SimpleNamespace(
            id="resp-1",
            choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")],
            usage=SimpleNamespace(prompt_tokens=100, completion_tokens=20),
        )

    def test_transient_error_falls_back(self, monkeypatch):
        from tank_intake.llm import llm_client

        calls = []

        def fake_completion(**kwargs):
            calls.append(kwargs["model"])
            if len(calls) == 1:
                raise RuntimeError("429 rate limit")
            return self._response('{"fields": {}}')

        monkeypatch.setattr(llm_client, "completion", fake_completion)
        client = llm_client.LLMClient(task=llm_client.LLMTask.FIELD_EXTRACTION)

        response = client.generate("prompt", json_mode=True, prompt_version="field_extraction@1.0.0")

        assert calls == ["gemini/gemini-3-flash-preview", "gemini/gemini-2.5-flash"]
        assert response.model == llm_client.MODEL_GEMINI_25_FLASH
        assert response.prompt_version == "field_extraction@1.0.0"
        assert len(response.prompt_hash) == 16
        assert response.input_tokens == 100

    def test_permanent_error_not_retried(self, monkeypatch):
        from tank_intake.llm import llm_client

        calls = []

        def fake_completion(**kwargs):
            calls.append(kwargs["model"])
            raise RuntimeError("401 Unauthorized: invalid api key")

        monkeypatch.setattr(llm_client, "completion", fake_completion)
        client = llm_client.LLMClient(task=llm_client.LLMTask.FIELD_EXTRACTION)

        with pytest.raises(RuntimeError, match="401"):
            client.generate("prompt")
        assert len(calls) == 1

    def test_unknown_model(self):
        from tank_intake.llm import llm_client

        with pytest.raises(ValueError, match="Unknown model"):
            llm_client.LLMClient(model="not-a-model")
