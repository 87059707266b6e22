"""Point the OpenAI adapter at an OpenAI-compatible server under its own name.

Equivalent environment:
    LLM_BASE_URL=http://localhost:8000
    LLM_CUSTOM_PROVIDER_NAME=vllm
    LLM_ALLOWED_OPERATIONS='["chat_completion", "chat_completion_stream"]'
"""

import asyncio

from llm_adapter import AdapterConfig, LLMClient, Operation, UnsupportedOperationError


async def main() -> None:
    config = AdapterConfig(
        api_key="unused",  # type: ignore[arg-type]
        base_url="http://localhost:8000",
        model="meta-llama/Llama-3.1-8B-Instruct",
        custom_provider_name="vllm",
        allowed_operations=[Operation.CHAT_COMPLETION, Operation.CHAT_COMPLETION_STREAM],
    )
    async with LLMClient(config=config) as llm:
        resp = await llm.chat([{"role": "user", "content": "Hello!"}])
        print(f"Provider: {resp.extra_fields.provider}")

        try:
            await llm.embed("not served here")
        except UnsupportedOperationError as exc:
            print(f"Rejected locally: {exc}")


if __name__ == "__main__":
    asyncio.run(main())
