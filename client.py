from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

import httpx

from buildagent.session import STEP_KEYS
from buildagent.sse import iter_sse_events


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Linux build agent terminal client")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument(
        "--steps",
        nargs="+",
        choices=list(STEP_KEYS),
        default=list(STEP_KEYS),
        help="Steps to run, in order. Stops at the first step that does not succeed.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Reset the session before running any step.",
    )
    parser.add_argument(
        "--show-files",
        action="store_true",
        help="Print generated and fixed file contents as they arrive.",
    )
    return parser.parse_args()


def _handle_event(event: str, data: dict[str, Any], show_files: bool) -> None:
    if event == "log":
        text = data.get("text", "")
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
        sys.stdout.flush()
    elif event == "step":
        print(f"[step] {data.get('name')}: {data.get('status')}")
    elif event == "state":
        print(f"[state] {data.get('state')}")
    elif event == "file":
        print(f"[file] {data.get('name')} ({data.get('language')})")
        if show_files:
            print(data.get("content", ""))
    elif event == "error":
        print(f"[error] {data}")


async def _run_step(
    client: httpx.AsyncClient, step: str, show_files: bool
) -> str | None:
    print(f"\n=== {STEP_KEYS[step]} ===")
    status = None
    async with client.stream("POST", f"/v1/steps/{step}") as resp:
        if resp.status_code >= 400:
            await resp.aread()
            print(f"[error] {resp.status_code} {resp.text}")
            return None
        async for event, data in iter_sse_events(resp.aiter_lines()):
            if event == "step.done":
                status = data.get("status")
            else:
                _handle_event(event, data, show_files)
    return status


async def _main(args: argparse.Namespace) -> int:
    async with httpx.AsyncClient(base_url=args.url, timeout=None) as client:
        if args.reset:
            resp = await client.post("/v1/session/reset")
            if resp.status_code >= 400:
                print(resp.text)
                return 1
        for step in args.steps:
            status = await _run_step(client, step, args.show_files)
            if status != "success":
                print(f"\n[done] {step} ended with status {status}")
                return 1
    print("\n[done]")
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_main(_parse_args())))


if __name__ == "__main__":
    main()
