"""Basic usage of llm-adapter."""

import asyncio

from llm_adapter import LLMClient, ModelParameters


async def main() -> None:
    """Demonstrate a buffered call and a streamed call."""
    # LLMClient reads LLM_* env vars automatically
    async with LLMClient() as llm:
        resp = await llm.chat(
            [{"role": "user", "content": "What is the capital of France?"}],
            params=ModelParameters(max_tokens=50),
        )
        message = resp.choices[0].message
        print(f"Answer: {message.content if message else None}")
        if resp.usage:
            print(f"Tokens: {resp.usage.total_tokens}")
        print(f"Latency: {resp.extra_fields.latency_ms:.0f}ms")

        stream = await llm.chat_stream([{"role": "user", "content": "Count to five."}])
        async with stream:
            async for event in stream:
                if event.error is not None:
                    print(f"\nerror: {event.error.error.message}")
                elif event.stream_end and event.response is not None:
                    print(f"\nfinish={event.response.choices[0].finish_reason}")
                elif event.response is not None:
                    delta = event.response.choices[0].delta
                    print(delta.content if delta else "", end="", flush=True)


if __name__ == "__main__":
    asyncio.run(main())
