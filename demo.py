"""
Stream one reply from the provider configured in the environment or .env.

    LLMWIRE_PROVIDER=deepseek DEEPSEEK_API_KEY=... python demo.py
"""
import asyncio
import logging
import sys
from typing import List

from llmwire import ApiConfiguration, ApiError, RichStreamPrinter, build_api_handler, calculate_api_cost
from llmwire.types import CanonicalMessage


async def main() -> int:
    logging.basicConfig(level=logging.WARNING)
    handler = build_api_handler(ApiConfiguration.from_env())
    model = handler.get_model()

    messages: List[CanonicalMessage] = [
        {"role": "user", "content": "Introduce yourself in one sentence using markdown syntax."},
    ]

    printer = RichStreamPrinter(title=f"{handler.provider_name} / {model.id}")
    try:
        await printer.print_stream(handler.create_message("You are a concise assistant.", messages))
    except ApiError as exc:
        printer.console.print(f"[red]{exc.kind}[/red]: {exc.message}")
        return 1
    finally:
        await handler.aclose()

    usage = printer.get_usage()
    if usage:
        cost = calculate_api_cost(model.info, usage, input_includes_cache=handler.provider_name != "anthropic")
        printer.console.print(f"[dim]cost: ${cost:.6f}[/dim]")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
