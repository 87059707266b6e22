"""Wire-format layer: request formatting, response normalization, errors, transport."""

from llm_adapter.wire.aliasing import REASONING_ALIASES, alias_choices, apply_aliases
from llm_adapter.wire.errors import classify_error_response, classify_stream_error
from llm_adapter.wire.formatter import EncodedBody, merge_config, sanitize_image_url
from llm_adapter.wire.transport import HTTPTransport

__all__ = [
    "REASONING_ALIASES",
    "EncodedBody",
    "HTTPTransport",
    "alias_choices",
    "apply_aliases",
    "classify_error_response",
    "classify_stream_error",
    "merge_config",
    "sanitize_image_url",
]
