"""Tests for OpenAIProvider against a mocked HTTP transport."""

from __future__ import annotations

import base64
import json

import httpx
import pytest
from support import RecordingTransport, sse_body

from llm_adapter.config import AdapterConfig, CustomProviderConfig
from llm_adapter.exceptions import (
    ProviderAPIError,
    ProviderRequestError,
    RequestFormatError,
    ResponseDecodeError,
    UnsupportedOperationError,
)
from llm_adapter.providers.base import Provider
from llm_adapter.providers.openai import OpenAIProvider
from llm_adapter.types import (
    ErrorKind,
    FunctionCall,
    Message,
    ModelParameters,
    Operation,
    SpeechInput,
    ToolCall,
    TranscriptionInput,
    Usage,
)

CHAT_OK = {
    "id": "chatcmpl-9",
    "object": "chat.completion",
    "model": "gpt-4o-mini",
    "choices": [
        {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": "hi"}}
    ],
    "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
}


def _provider(
    transport: httpx.MockTransport,
    **kwargs: object,
) -> OpenAIProvider:
    client = httpx.AsyncClient(transport=transport)
    return OpenAIProvider(api_key="sk-test", client=client, **kwargs)  # type: ignore[arg-type]


def _json(payload: object, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload)


@pytest.mark.unit
class TestOpenAIProviderBasics:
    def test_satisfies_protocol(self) -> None:
        provider = OpenAIProvider(api_key="sk-test")
        assert isinstance(provider, Provider)
        assert provider.provider_name == "openai"

    def test_custom_name(self) -> None:
        provider = OpenAIProvider(api_key="k", custom_provider=CustomProviderConfig(name="groq"))
        assert provider.provider_name == "groq"

    def test_from_config(self, test_config: AdapterConfig) -> None:
        provider = OpenAIProvider.from_config(test_config)
        assert provider.provider_name == "openai"

    async def test_text_completion_unsupported(self) -> None:
        provider = OpenAIProvider(api_key="k")
        with pytest.raises(UnsupportedOperationError) as exc_info:
            await provider.text_completion("m", "hello")
        assert exc_info.value.error.kind is ErrorKind.UNSUPPORTED_OPERATION
        await provider.close()

    async def test_gated_operation_never_hits_network(self) -> None:
        transport = RecordingTransport(lambda r: _json(CHAT_OK))
        custom = CustomProviderConfig(
            name="local", allowed_operations=frozenset({Operation.EMBEDDING})
        )
        provider = _provider(transport, custom_provider=custom)
        with pytest.raises(UnsupportedOperationError, match="chat_completion is not supported"):
            await provider.chat_completion("m", [{"role": "user", "content": "hi"}])
        with pytest.raises(UnsupportedOperationError):
            await provider.chat_completion_stream("m", [{"role": "user", "content": "hi"}])
        assert transport.requests == []


@pytest.mark.unit
class TestChatCompletion:
    async def test_request_shape_and_headers(self) -> None:
        transport = RecordingTransport(lambda r: _json(CHAT_OK))
        provider = _provider(
            transport,
            base_url="http://localhost:8000/",
            extra_headers={"X-Team": "search", "Authorization": "ignored"},
        )
        resp = await provider.chat_completion(
            "gpt-4o-mini",
            [{"role": "user", "content": "hello"}],
            ModelParameters(temperature=0.3),
        )

        request = transport.requests[0]
        assert str(request.url) == "http://localhost:8000/v1/chat/completions"
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Team"] == "search"
        body = json.loads(request.content)
        assert body == {
            "model": "gpt-4o-mini",
            "messages": [{"role": "user", "content": "hello"}],
            "temperature": 0.3,
        }

        assert resp.choices[0].message.content == "hi"  # type: ignore[union-attr]
        assert resp.extra_fields.provider == "openai"
        assert resp.extra_fields.params == ModelParameters(temperature=0.3)
        assert resp.extra_fields.latency_ms >= 0

    async def test_vendor_error(self) -> None:
        error = {"error": {"type": "invalid_request_error", "message": "bad", "code": None}}
        provider = _provider(RecordingTransport(lambda r: _json(error, status=400)))
        with pytest.raises(ProviderAPIError) as exc_info:
            await provider.chat_completion("m", [{"role": "user", "content": "hi"}])
        assert exc_info.value.status_code == 400
        assert exc_info.value.error.error.type == "invalid_request_error"
        assert exc_info.value.error.is_adapter_error is False

    async def test_non_json_error_body(self) -> None:
        provider = _provider(
            RecordingTransport(lambda r: httpx.Response(503, text="<html>down</html>"))
        )
        with pytest.raises(ResponseDecodeError) as exc_info:
            await provider.chat_completion("m", [{"role": "user", "content": "hi"}])
        assert exc_info.value.status_code == 503

    async def test_any_2xx_is_success(self) -> None:
        provider = _provider(RecordingTransport(lambda r: _json(CHAT_OK, status=201)))
        resp = await provider.chat_completion("m", [{"role": "user", "content": "hi"}])
        assert resp.id == "chatcmpl-9"

    async def test_connection_failure(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = _provider(httpx.MockTransport(fail))
        with pytest.raises(ProviderRequestError) as exc_info:
            await provider.chat_completion("m", [{"role": "user", "content": "hi"}])
        assert isinstance(exc_info.value.original, httpx.ConnectError)

    async def test_invalid_message_is_rejected_before_sending(self) -> None:
        transport = RecordingTransport(lambda r: _json(CHAT_OK))
        provider = _provider(transport)
        with pytest.raises(RequestFormatError):
            await provider.chat_completion("m", [{"role": "wizard", "content": "hi"}])
        assert transport.requests == []

    async def test_tool_calls_round_trip(self) -> None:
        calls = [
            ToolCall(id="call_a", function=FunctionCall(name="search", arguments='{"q":"a"}')),
            ToolCall(id="call_b", function=FunctionCall(name="fetch", arguments='{"u":"b"}')),
        ]

        def echo(request: httpx.Request) -> httpx.Response:
            sent = json.loads(request.content)["messages"][1]
            return _json(
                {"choices": [{"finish_reason": "tool_calls", "message": sent}]}
            )

        provider = _provider(RecordingTransport(echo))
        resp = await provider.chat_completion(
            "m",
            [
                Message(role="user", content="look things up"),
                Message(role="assistant", tool_calls=calls),
            ],
        )
        returned = resp.choices[0].message.tool_calls  # type: ignore[union-attr]
        assert returned is not None
        assert [(c.id, c.function.name, c.function.arguments) for c in returned] == [
            ("call_a", "search", '{"q":"a"}'),
            ("call_b", "fetch", '{"u":"b"}'),
        ]


@pytest.mark.unit
class TestChatCompletionStream:
    async def test_example_stream(self) -> None:
        body = sse_body(
            {"choices": [{"delta": {"content": "Hi"}}]},
            {
                "choices": [{"delta": {}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
            },
        )
        transport = RecordingTransport(
            lambda r: httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})
        )
        provider = _provider(transport)

        stream = await provider.chat_completion_stream(
            "gpt-4o-mini", [{"role": "user", "content": "hi"}]
        )
        events = await stream.collect()

        request = transport.requests[0]
        assert request.headers["Accept"] == "text/event-stream"
        assert request.headers["Cache-Control"] == "no-cache"
        sent = json.loads(request.content)
        assert sent["stream"] is True
        assert sent["stream_options"] == {"include_usage": True}

        assert len(events) == 2
        assert events[0].response.choices[0].delta.content == "Hi"  # type: ignore[union-attr]
        assert events[0].response.extra_fields.chunk_index == 0  # type: ignore[union-attr]
        terminal = events[1]
        assert terminal.stream_end
        assert terminal.response.choices[0].finish_reason == "stop"  # type: ignore[union-attr]
        assert terminal.response.usage == Usage(  # type: ignore[union-attr]
            prompt_tokens=5, completion_tokens=2, total_tokens=7
        )
        assert terminal.response.model == "gpt-4o-mini"  # type: ignore[union-attr]

    async def test_error_on_second_line(self) -> None:
        body = sse_body(
            {"choices": [{"delta": {"content": "a"}}]},
            {"error": {"message": "rate limited", "type": "rate_limit"}},
            {"choices": [{"delta": {"content": "b"}}]},
        )
        provider = _provider(RecordingTransport(lambda r: httpx.Response(200, content=body)))
        stream = await provider.chat_completion_stream("m", [{"role": "user", "content": "x"}])
        events = await stream.collect()
        assert len(events) == 2
        assert events[1].error is not None
        assert events[1].error.error.type == "rate_limit"
        assert events[1].stream_end

    async def test_non_2xx_raises_before_stream(self) -> None:
        error = {"error": {"message": "no key", "type": "auth"}}
        provider = _provider(RecordingTransport(lambda r: _json(error, status=401)))
        with pytest.raises(ProviderAPIError) as exc_info:
            await provider.chat_completion_stream("m", [{"role": "user", "content": "x"}])
        assert exc_info.value.status_code == 401

    async def test_cancel_mid_stream(self) -> None:
        body = sse_body(*({"choices": [{"delta": {"content": str(n)}}]} for n in range(50)))
        provider = _provider(
            RecordingTransport(lambda r: httpx.Response(200, content=body)),
            stream_buffer_size=1,
        )
        async with await provider.chat_completion_stream(
            "m", [{"role": "user", "content": "x"}]
        ) as stream:
            first = await stream.__anext__()
            assert first.response is not None
        assert stream.done


@pytest.mark.unit
class TestEmbedding:
    async def test_embedding(self) -> None:
        reply = {
            "object": "list",
            "data": [{"index": 0, "embedding": [0.5, 0.25]}],
            "model": "text-embedding-3-small",
            "usage": {"prompt_tokens": 1, "total_tokens": 1},
        }
        transport = RecordingTransport(lambda r: _json(reply))
        provider = _provider(transport, send_back_raw_response=True)
        resp = await provider.embedding(
            "text-embedding-3-small",
            ["hello"],
            ModelParameters(dimensions=2, extra_params={"model": "ignored"}),
        )
        request = transport.requests[0]
        assert request.url.path == "/v1/embeddings"
        sent = json.loads(request.content)
        assert sent["model"] == "text-embedding-3-small"
        assert sent["dimensions"] == 2
        assert resp.data[0].embedding == [0.5, 0.25]  # type: ignore[index]
        assert resp.extra_fields.raw_response == reply


@pytest.mark.unit
class TestSpeech:
    async def test_speech_returns_audio(self) -> None:
        transport = RecordingTransport(
            lambda r: httpx.Response(200, content=b"ID3...", headers={"Content-Type": "audio/mpeg"})
        )
        provider = _provider(transport)
        resp = await provider.speech("tts-1", SpeechInput(input="hello", voice="alloy"))
        sent = json.loads(transport.requests[0].content)
        assert sent["response_format"] == "mp3"
        assert transport.requests[0].url.path == "/v1/audio/speech"
        assert resp.speech is not None and resp.speech.audio == b"ID3..."
        assert resp.object == "audio.speech"

    async def test_speech_stream_ends_at_usage(self) -> None:
        audio = base64.b64encode(b"chunk").decode()
        body = sse_body(
            {"type": "speech.audio.delta", "audio": audio},
            {"type": "speech.audio.done", "usage": {"input_tokens": 2, "output_tokens": 8}},
            {"type": "speech.audio.delta", "audio": audio},
            done=False,
        )
        transport = RecordingTransport(lambda r: httpx.Response(200, content=body))
        provider = _provider(transport)
        stream = await provider.speech_stream("tts-1", SpeechInput(input="hi", voice="alloy"))
        events = await stream.collect()
        assert json.loads(transport.requests[0].content)["stream_format"] == "sse"
        assert len(events) == 2
        assert events[0].response.speech.audio == b"chunk"  # type: ignore[union-attr]
        assert events[1].stream_end


@pytest.mark.unit
class TestTranscription:
    async def test_transcription_multipart(self) -> None:
        transport = RecordingTransport(lambda r: _json({"text": "hello there"}))
        provider = _provider(transport)
        resp = await provider.transcription(
            "whisper-1", TranscriptionInput(file=b"RIFF....", language="en")
        )
        request = transport.requests[0]
        assert request.url.path == "/v1/audio/transcriptions"
        assert request.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        assert b'name="model"' in request.content
        assert b"whisper-1" in request.content
        assert resp.transcription is not None and resp.transcription.text == "hello there"
        assert resp.model == "whisper-1"

    async def test_transcription_stream(self) -> None:
        body = sse_body(
            {"type": "transcript.text.delta", "delta": "hel"},
            {"type": "transcript.text.delta", "delta": "lo"},
            {"type": "transcript.text.done", "text": "hello", "usage": {"total_tokens": 3}},
            done=False,
        )
        transport = RecordingTransport(lambda r: httpx.Response(200, content=body))
        provider = _provider(transport)
        stream = await provider.transcription_stream("whisper-1", TranscriptionInput(file=b"x"))
        events = await stream.collect()
        assert b'name="stream"' in transport.requests[0].content
        assert [e.response.transcription.delta for e in events[:2]] == ["hel", "lo"]  # type: ignore[union-attr]
        assert events[-1].stream_end
        assert events[-1].response.transcription.text == "hello"  # type: ignore[union-attr]
