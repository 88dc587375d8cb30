from __future__ import annotations

import json
from typing import Any, AsyncGenerator, AsyncIterable


def format_sse(event: str, data: dict[str, Any]) -> str:
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n"


async def iter_sse_events(
    lines: AsyncIterable[str],
) -> AsyncGenerator[tuple[str, dict[str, Any]], None]:
    """Turn the lines of an SSE response into ``(event, data)`` pairs."""
    event = None
    async for line in lines:
        if not line:
            event = None
            continue
        if line.startswith("event:"):
            event = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data = json.loads(line[len("data:") :].strip())
            yield event or "message", data
