"""Request body construction for the upstream JSON-RPC translation endpoint.

The upstream accepts a call only when it looks exactly like one produced by
its own web client:

- the request id has the magnitude of ``now_ms % 1e8`` plus a random offset,
- the timestamp is shifted so that it is divisible by (number of "i" + 1),
- the serialized JSON spaces the "method" key in one of two ways depending
  on the id.

None of this is documented; the arithmetic below must not be altered.
"""

import json
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from relay.app.core.config import settings
from relay.app.exceptions import ValidationError
from relay.app.providers.languages import normalize_language_code

JSONRPC_METHOD = "LMT_handle_texts"
REQUEST_ALTERNATIVES = 3
DEFAULT_SOURCE_LANG = "auto"
DEFAULT_TARGET_LANG = "en"

MAX_SAFE_INTEGER = 2 ** 53 - 1
ID_MODULUS = 100_000_000
RANDOM_ID_RANGE = 1_000_000
MAX_TIMESTAMP_SHIFT_MS = 1000

COMPACT_METHOD = '"method":"'
SPACED_METHOD = '"method" : "'
SINGLE_SPACE_METHOD = '"method": "'


@dataclass(frozen=True)
class TranslationRequest:
    """A translation request as received from the caller."""

    text: Any
    source_lang: Optional[str] = DEFAULT_SOURCE_LANG
    target_lang: Optional[str] = DEFAULT_TARGET_LANG


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def count_letter_i(text: str) -> int:
    """Count lowercase "i" characters; uppercase "I" does not count."""
    return (text or "").count("i")


def derive_request_id(timestamp_ms: int, random_component: int) -> int:
    return (timestamp_ms % ID_MODULUS) + (random_component % ID_MODULUS)


def perturb_timestamp(timestamp_ms: int, letter_count: int) -> int:
    """Align the timestamp to a multiple of ``letter_count + 1``.

    The shifted value is only used if it is a positive safe integer within
    MAX_TIMESTAMP_SHIFT_MS of the original; otherwise the raw timestamp is
    returned.
    """
    count = max(0, letter_count or 0)
    if count == 0:
        return timestamp_ms

    mod_value = count + 1
    if mod_value > MAX_TIMESTAMP_SHIFT_MS:
        return timestamp_ms

    shifted = timestamp_ms - (timestamp_ms % mod_value) + mod_value
    if 0 < shifted <= MAX_SAFE_INTEGER and abs(shifted - timestamp_ms) <= MAX_TIMESTAMP_SHIFT_MS:
        return shifted
    return timestamp_ms


def uses_spaced_method(request_id: int) -> bool:
    return (request_id + 5) % 29 == 0 or (request_id + 3) % 13 == 0


def apply_method_spacing(body: str, request_id: int) -> str:
    """Rewrite the first ``"method":"`` occurrence to the id's spacing variant."""
    replacement = SPACED_METHOD if uses_spaced_method(request_id) else SINGLE_SPACE_METHOD
    return body.replace(COMPACT_METHOD, replacement, 1)


class RequestBodyBuilder:
    """Builds the exact JSON-RPC body the upstream expects.

    Deterministic except for the clock and the random source, both of which
    can be injected.

    Usage:
        builder = RequestBodyBuilder()
        body = builder.build(TranslationRequest(text="Hi", target_lang="de"))
    """

    def __init__(
        self,
        max_text_length: Optional[int] = None,
        max_request_size: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the builder.

        Args:
            max_text_length: Maximum characters of text (default from settings)
            max_request_size: Maximum UTF-8 bytes of the body (default from settings)
            clock: Returns the current time in epoch milliseconds
            rng: Random source for the request id
        """
        self.max_text_length = max_text_length or settings.max_text_length
        self.max_request_size = max_request_size or settings.max_request_size
        self._clock = clock or _now_ms
        self._rng = rng or random.Random()

    def build_envelope(self, text: str, source_lang: str, target_lang: str) -> Dict[str, Any]:
        """Build the JSON-RPC document with a fresh id and a zero timestamp."""
        random_component = self._rng.randrange(RANDOM_ID_RANGE)
        return {
            "jsonrpc": "2.0",
            "method": JSONRPC_METHOD,
            "id": derive_request_id(self._clock(), random_component),
            "params": {
                "texts": [{"text": text, "requestAlternatives": REQUEST_ALTERNATIVES}],
                "timestamp": 0,
                "splitting": "newlines",
                "lang": {
                    "source_lang_user_selected": normalize_language_code(source_lang),
                    "target_lang": normalize_language_code(target_lang),
                },
            },
        }

    def build(self, request: TranslationRequest) -> str:
        """Validate the request and serialize the JSON-RPC body.

        Raises:
            ValidationError: If the text is missing, empty or too long, or the
                serialized body exceeds the size limit
        """
        text = request.text
        if not isinstance(text, str) or not text:
            raise ValidationError(
                "Invalid request parameters: text is required and must be a non-empty string"
            )

        if len(text) > self.max_text_length:
            raise ValidationError(
                f"Text too long. Maximum length is {self.max_text_length} characters "
                f"to prevent payload size errors."
            )

        envelope = self.build_envelope(
            text,
            request.source_lang or DEFAULT_SOURCE_LANG,
            request.target_lang or DEFAULT_TARGET_LANG,
        )
        envelope["params"]["timestamp"] = perturb_timestamp(self._clock(), count_letter_i(text))

        body = json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))
        body = apply_method_spacing(body, envelope["id"])

        payload_size = len(body.encode("utf-8"))
        if payload_size > self.max_request_size:
            raise ValidationError(
                f"Request payload too large ({payload_size} bytes). "
                f"Maximum allowed is {self.max_request_size} bytes."
            )

        return body
