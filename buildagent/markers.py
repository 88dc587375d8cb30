from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator, AsyncIterable, Callable, Union

logger = logging.getLogger(__name__)


FIX_OPEN = re.compile(r"\[FIX:([^\]]+)\]")
FIX_CLOSE = "[/FIX]"
TAG_OPEN = re.compile(r"\[(LOG|ERROR|ANALYSIS)\]")
SUCCESS = "[SUCCESS]"


class BuildState(str, Enum):
    ERROR = "error"
    ANALYSIS = "analysis"
    SUCCESS = "success"


class BlockTag(str, Enum):
    LOG = "LOG"
    ERROR = "ERROR"
    ANALYSIS = "ANALYSIS"

    @property
    def close_marker(self) -> str:
        return f"[/{self.value}]"


_OPEN_STATES = {
    BlockTag.ERROR: BuildState.ERROR,
    BlockTag.ANALYSIS: BuildState.ANALYSIS,
}


@dataclass(frozen=True)
class LogEvent:
    text: str
    tag: BlockTag | None = None


@dataclass(frozen=True)
class FixEvent:
    path: str
    content: str


@dataclass(frozen=True)
class StateEvent:
    state: BuildState


MarkerEvent = Union[LogEvent, FixEvent, StateEvent]


class MarkerParser:
    """Incremental parser for the control markers of a simulated build stream.

    Blocks are ``[LOG]``, ``[ERROR]`` and ``[ANALYSIS]`` (closed by the
    matching ``[/TAG]``), ``[FIX:<path>]`` (closed by ``[/FIX]``), plus the
    bare ``[SUCCESS]`` marker. A marker is only consumed once it is complete
    in the buffer, so markers may be split across any number of chunks.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._tag: BlockTag | None = None
        self._fix_path: str | None = None

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def active_tag(self) -> BlockTag | None:
        return self._tag

    @property
    def active_fix(self) -> str | None:
        return self._fix_path

    def feed(self, text: str) -> list[MarkerEvent]:
        """Consume streamed text and return the events completed by it."""
        self._buffer += text
        events: list[MarkerEvent] = []
        while self._consume_one(events):
            pass
        return events

    def finalize(self) -> list[MarkerEvent]:
        """Flush whatever is still buffered at the end of the stream."""
        remaining = self._buffer
        self._buffer = ""
        self._tag = None
        self._fix_path = None
        if remaining:
            return [LogEvent(remaining)]
        return []

    def _consume_one(self, events: list[MarkerEvent]) -> bool:
        if self._fix_path is not None:
            idx = self._buffer.find(FIX_CLOSE)
            if idx == -1:
                return False
            events.append(FixEvent(self._fix_path, self._buffer[:idx].strip()))
            self._buffer = self._buffer[idx + len(FIX_CLOSE) :]
            self._fix_path = None
            return True

        if self._tag is not None:
            close = self._tag.close_marker
            idx = self._buffer.find(close)
            if idx == -1:
                return False
            events.append(LogEvent(self._buffer[:idx], self._tag))
            self._buffer = self._buffer[idx + len(close) :]
            self._tag = None
            return True

        return self._open_next(events)

    def _open_next(self, events: list[MarkerEvent]) -> bool:
        # Candidates in priority order; the earliest start wins.
        candidates: list[tuple[int, int, str, int, str]] = []
        fix = FIX_OPEN.search(self._buffer)
        if fix:
            candidates.append((fix.start(), 0, "fix", fix.end(), fix.group(1)))
        tag = TAG_OPEN.search(self._buffer)
        if tag:
            candidates.append((tag.start(), 1, "tag", tag.end(), tag.group(1)))
        idx = self._buffer.find(SUCCESS)
        if idx != -1:
            candidates.append((idx, 2, "success", idx + len(SUCCESS), ""))
        if not candidates:
            return False

        start, _, kind, end, value = min(candidates)
        skipped = self._buffer[:start]
        if skipped.strip():
            logger.debug("discarding text outside marker blocks: %r", skipped)
        self._buffer = self._buffer[end:]

        if kind == "fix":
            self._fix_path = value
        elif kind == "tag":
            self._tag = BlockTag(value)
            state = _OPEN_STATES.get(self._tag)
            if state is not None:
                events.append(StateEvent(state))
        else:
            events.append(StateEvent(BuildState.SUCCESS))
        return True


async def iter_marker_events(
    chunks: AsyncIterable[str],
) -> AsyncGenerator[MarkerEvent, None]:
    """Yield marker events lazily as chunks arrive, then the end-of-stream flush."""
    parser = MarkerParser()
    async for chunk in chunks:
        if not chunk:
            continue
        for event in parser.feed(chunk):
            yield event
    for event in parser.finalize():
        yield event


async def stream_and_parse(
    chunks: AsyncIterable[str],
    on_log: Callable[[str], None],
    on_fix: Callable[[str, str], None],
    on_state_change: Callable[[BuildState], None],
) -> None:
    """Drive a parser over ``chunks`` and dispatch each event to its callback.

    Callbacks run synchronously inside the parsing loop. An exception raised
    by the chunk source propagates to the caller.
    """
    async for event in iter_marker_events(chunks):
        if isinstance(event, LogEvent):
            on_log(event.text)
        elif isinstance(event, FixEvent):
            on_fix(event.path, event.content)
        else:
            on_state_change(event.state)
