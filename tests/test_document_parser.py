"""Tests for the plain-text document parser."""

import json

import pytest

from tank_intake.exceptions import CollaboratorUnavailable
from tank_intake.services.document_parser import PlainTextDocumentParser, decode_text


@pytest.fixture
def parser():
    return PlainTextDocumentParser()


class TestDecodeText:
    def test_utf8_bom(self):
        assert decode_text("﻿所在地".encode("utf-8")) == "所在地"

    def test_cp932_fallback(self):
        assert decode_text("延床面積".encode("cp932")) == "延床面積"


class TestParser:
    def test_plain_text(self, parser):
        assert parser("所在地：東京都".encode("utf-8"), "text/plain; charset=utf-8") == "所在地：東京都"

    def test_json_flattened(self, parser):
        doc = {"所在地": "東京都港区", "荷重ケース": ["常時", "地震時"], "meta": {"容量": "500kL"}}
        text = parser(json.dumps(doc, ensure_ascii=False).encode("utf-8"), "application/json")
        assert text.splitlines() == ["所在地：東京都港区", "荷重ケース：常時、地震時", "容量：500kL"]

    def test_invalid_json(self, parser):
        with pytest.raises(CollaboratorUnavailable):
            parser(b"{oops", "application/json")

    def test_tsv_two_columns(self, parser):
        assert parser("延床面積\t5000㎡\n".encode("utf-8"), "text/tab-separated-values") == "延床面積：5000㎡"

    def test_csv_wide_rows_joined(self, parser):
        assert parser("a,b,c\n".encode("utf-8"), "text/csv") == "a b c"

    def test_unsupported_type(self, parser):
        with pytest.raises(CollaboratorUnavailable, match="Unsupported"):
            parser(b"\x89PNG", "image/png")
