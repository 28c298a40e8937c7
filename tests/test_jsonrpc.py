"""Tests for JSON-RPC body construction and its upstream quirks."""

import json

import pytest

from relay.app.exceptions import ValidationError
from relay.app.providers.jsonrpc import (
    MAX_SAFE_INTEGER,
    RequestBodyBuilder,
    TranslationRequest,
    apply_method_spacing,
    count_letter_i,
    derive_request_id,
    perturb_timestamp,
    uses_spaced_method,
)
from relay.app.providers.languages import normalize_language_code

BASE_TIME_MS = 1_700_000_000_000


@pytest.fixture
def make_builder(clock, fixed_random):
    def _make(random_value: int = 1, **kwargs) -> RequestBodyBuilder:
        return RequestBodyBuilder(clock=clock, rng=fixed_random(random_value), **kwargs)

    return _make


class TestRequestBodyBuilder:
    def test_exact_body(self, make_builder):
        """No "i" in the text, id=1 -> compact spacing and the raw timestamp."""
        body = make_builder(1).build(
            TranslationRequest(text="Hallo", source_lang="auto", target_lang="de")
        )

        assert body == (
            '{"jsonrpc":"2.0","method": "LMT_handle_texts","id":1,'
            '"params":{"texts":[{"text":"Hallo","requestAlternatives":3}],'
            '"timestamp":1700000000000,"splitting":"newlines",'
            '"lang":{"source_lang_user_selected":"auto","target_lang":"DE"}}}'
        )

    def test_spaced_method_for_id_24(self, make_builder):
        body = make_builder(24).build(TranslationRequest(text="Hallo"))

        assert body.startswith('{"jsonrpc":"2.0","method" : "LMT_handle_texts","id":24,')

    def test_compact_method_for_id_1(self, make_builder):
        body = make_builder(1).build(TranslationRequest(text="Hallo"))

        assert '"method": "LMT_handle_texts"' in body
        assert '"method" : "' not in body
        assert '"method":"' not in body

    def test_body_is_valid_json(self, make_builder):
        body = make_builder(24).build(TranslationRequest(text="Grüße\n\"quoted\""))
        data = json.loads(body)

        assert data["method"] == "LMT_handle_texts"
        assert data["params"]["texts"][0]["text"] == "Grüße\n\"quoted\""
        assert "Grüße" in body

    def test_defaults_languages(self, make_builder):
        data = json.loads(make_builder().build(TranslationRequest(text="Hello", source_lang=None, target_lang=None)))

        assert data["params"]["lang"] == {
            "source_lang_user_selected": "auto",
            "target_lang": "EN",
        }

    def test_request_id_magnitude(self, clock, fixed_random):
        clock.now = BASE_TIME_MS + 123
        builder = RequestBodyBuilder(clock=clock, rng=fixed_random(456))

        data = json.loads(builder.build(TranslationRequest(text="Hallo")))

        assert data["id"] == 579

    def test_timestamp_unmodified_without_letter_i(self, make_builder, clock):
        clock.now = BASE_TIME_MS + 7
        data = json.loads(make_builder().build(TranslationRequest(text="Hello World")))

        assert data["params"]["timestamp"] == BASE_TIME_MS + 7

    def test_timestamp_aligned_to_letter_i_count(self, make_builder, clock):
        """"this is it" has three "i", so the timestamp becomes a multiple of 4."""
        clock.now = BASE_TIME_MS + 1
        data = json.loads(make_builder().build(TranslationRequest(text="this is it")))

        timestamp = data["params"]["timestamp"]
        assert timestamp == BASE_TIME_MS + 4
        assert timestamp % 4 == 0

    @pytest.mark.parametrize("text", [None, "", 123, ["Hallo"]])
    def test_rejects_missing_or_non_string_text(self, make_builder, text):
        with pytest.raises(ValidationError) as exc_info:
            make_builder().build(TranslationRequest(text=text))

        assert exc_info.value.status_code == 400

    def test_rejects_text_over_length_limit(self, make_builder):
        builder = make_builder(max_text_length=10)

        builder.build(TranslationRequest(text="a" * 10))
        with pytest.raises(ValidationError, match="Text too long"):
            builder.build(TranslationRequest(text="a" * 11))

    def test_rejects_payload_over_byte_limit(self, make_builder):
        """The size guard counts UTF-8 bytes, not characters."""
        ascii_body = make_builder().build(TranslationRequest(text="a" * 40))
        builder = make_builder(max_request_size=len(ascii_body.encode("utf-8")))

        builder.build(TranslationRequest(text="a" * 40))
        with pytest.raises(ValidationError, match="payload too large"):
            builder.build(TranslationRequest(text="é" * 40))


class TestTimestampPerturbation:
    def test_zero_count_returns_raw(self):
        assert perturb_timestamp(BASE_TIME_MS + 3, 0) == BASE_TIME_MS + 3

    @pytest.mark.parametrize("count", [1, 2, 5, 17, 999])
    def test_residue_is_zero(self, count):
        timestamp = BASE_TIME_MS + 12_345
        shifted = perturb_timestamp(timestamp, count)

        assert shifted % (count + 1) == 0
        assert 0 < shifted - timestamp <= count + 1

    def test_falls_back_when_shift_exceeds_one_second(self):
        timestamp = 1501 * 1_000_000_000  # already a multiple, so the shift is 1501ms
        assert perturb_timestamp(timestamp, 1500) == timestamp

    def test_large_letter_count_keeps_raw_timestamp(self):
        """More than 999 letters never align, even when the shift would be small."""
        timestamp = 1501 * 1_000_000_000 + 1000  # aligning to 1501 would only add 501ms
        assert perturb_timestamp(timestamp, 1500) == timestamp
        assert perturb_timestamp(timestamp, 1000) == timestamp

    def test_falls_back_above_safe_integer_range(self):
        assert perturb_timestamp(MAX_SAFE_INTEGER, 1) == MAX_SAFE_INTEGER

    def test_counts_only_lowercase_i(self):
        assert count_letter_i("I like it") == 2
        assert count_letter_i("") == 0


class TestMethodSpacing:
    @pytest.mark.parametrize("request_id", [24, 10, 53, 23])
    def test_spaced_ids(self, request_id):
        assert uses_spaced_method(request_id) is True

    @pytest.mark.parametrize("request_id", [1, 2, 100])
    def test_compact_ids(self, request_id):
        assert uses_spaced_method(request_id) is False

    def test_only_first_occurrence_rewritten(self):
        body = '{"method":"a","x":{"method":"b"}}'

        assert apply_method_spacing(body, 24) == '{"method" : "a","x":{"method":"b"}}'

    def test_derive_request_id(self):
        assert derive_request_id(BASE_TIME_MS + 99_999_999, 999_999) == 99_999_999 + 999_999


class TestNormalizeLanguageCode:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("auto", "auto"),
            ("AUTO", "auto"),
            ("", "auto"),
            (None, "auto"),
            ("german", "DE"),
            ("German", "DE"),
            ("norwegian", "NB"),
            ("indonesian", "ID"),
            ("de", "DE"),
            ("pt-br", "PT-BR"),
            ("klingon", "KLINGON"),
        ],
    )
    def test_normalization(self, raw, expected):
        assert normalize_language_code(raw) == expected
