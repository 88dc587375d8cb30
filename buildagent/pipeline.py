from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Callable

from .markers import BuildState, stream_and_parse
from .models import ProjectFile, StepStatus
from .prompts import (
    FILE_GENERATION_PROMPTS,
    FilePrompt,
    build_script_prompt,
    execute_script_prompt,
    file_generation_prompt,
)
from .session import (
    BUILD_STEP,
    GENERATE_STEP,
    SETUP_STEP,
    TEST_STEP,
    BuildSession,
)
from .upstream import UpstreamClient, UpstreamError

logger = logging.getLogger(__name__)

Event = tuple[str, dict[str, Any]]

SETUP_SCRIPT = "scripts/setup.sh"
BUILD_SCRIPT = "scripts/build.sh"
TEST_SCRIPT = "scripts/test.sh"
DEFCONFIG = "configs/tiny_linux_defconfig"
KERNEL_FRAGMENT = "configs/kernel_fragment.config"


class BuildPipeline:
    """Runs the generate -> setup -> build -> test steps against the upstream model.

    Every step is an async generator of ``(event, data)`` pairs. The session is
    updated as a side effect, so its snapshot always matches what was emitted.
    """

    def __init__(self, session: BuildSession, upstream: UpstreamClient) -> None:
        self._session = session
        self._upstream = upstream

    def _log(self, text: str) -> Event:
        self._session.add_log(text)
        return "log", {"text": text}

    def _status(self, name: str, status: StepStatus) -> Event:
        step = self._session.set_status(name, status)
        return "step", step.model_dump()

    @staticmethod
    def _file(project_file: ProjectFile) -> Event:
        return "file", project_file.model_dump()

    def _runner(self, name: str) -> Callable[[], AsyncGenerator[Event, None]]:
        runners: dict[str, Callable[[], AsyncGenerator[Event, None]]] = {
            GENERATE_STEP: self.generate_files,
            SETUP_STEP: lambda: self.run_script(SETUP_STEP, SETUP_SCRIPT),
            BUILD_STEP: self.run_build,
            TEST_STEP: lambda: self.run_script(TEST_STEP, TEST_SCRIPT),
        }
        return runners[name]

    async def run(self, name: str) -> AsyncGenerator[Event, None]:
        """Run one step and release the session when it ends, however it ends.

        The caller is expected to have claimed the session with ``begin``.
        """
        try:
            async for event in self._runner(name)():
                yield event
        except Exception as exc:
            logger.exception("step %r crashed", name)
            yield "error", {"message": str(exc), "stage": name}
            yield self._status(name, "failed")
        finally:
            self._session.finish()

    async def _generate_file(self, file_prompt: FilePrompt) -> ProjectFile:
        content = await self._upstream.complete(file_generation_prompt(file_prompt))
        return ProjectFile(
            name=file_prompt.name,
            language=file_prompt.language,
            content=content.strip(),
        )

    async def generate_files(self) -> AsyncGenerator[Event, None]:
        first = "[AGENT] Generating project skeleton..."
        self._session.clear_logs(first)
        yield "log", {"text": first}
        yield self._status(GENERATE_STEP, "running")

        try:
            files = await asyncio.gather(
                *(self._generate_file(p) for p in FILE_GENERATION_PROMPTS)
            )
        except UpstreamError as exc:
            logger.error("file generation failed: %s", exc)
            yield self._log(f"[ERROR] Failed to generate files: {exc}")
            yield self._status(GENERATE_STEP, "failed")
            return

        self._session.set_files(files)
        for project_file in files:
            yield self._file(project_file)
        yield self._status(GENERATE_STEP, "success")
        yield self._log("[SUCCESS] Project files generated. Please review them.")

    async def run_script(
        self, step_name: str, script_name: str
    ) -> AsyncGenerator[Event, None]:
        script = self._session.get_file(script_name)
        if script is None:
            yield self._log(f"[ERROR] Script not found: {script_name}")
            yield self._status(step_name, "failed")
            return

        yield self._log("---")
        yield self._status(step_name, "running")
        try:
            async for chunk in self._upstream.stream_text(execute_script_prompt(script)):
                yield self._log(chunk)
        except UpstreamError as exc:
            logger.error("%s failed: %s", step_name, exc)
            yield self._log(f"[ERROR] Failed to execute script: {exc}")
            yield self._status(step_name, "failed")
            return
        yield self._status(step_name, "success")

    async def run_build(self) -> AsyncGenerator[Event, None]:
        yield self._log("---")
        yield self._status(BUILD_STEP, "running")

        build_script = self._session.get_file(BUILD_SCRIPT)
        defconfig = self._session.get_file(DEFCONFIG)
        kernel_fragment = self._session.get_file(KERNEL_FRAGMENT)
        if build_script is None or defconfig is None or kernel_fragment is None:
            yield self._log("[ERROR] Build files not found.")
            yield self._status(BUILD_STEP, "failed")
            return

        prompt = build_script_prompt(build_script, defconfig, kernel_fragment)
        queue: asyncio.Queue[Event | None] = asyncio.Queue()

        def on_log(text: str) -> None:
            if text.strip():
                queue.put_nowait(self._log(text))

        def on_fix(path: str, content: str) -> None:
            queue.put_nowait(self._log(f"[AGENT] Applying fix to {path}..."))
            if self._session.apply_fix(path, content):
                queue.put_nowait(self._file(self._session.get_file(path)))
            else:
                queue.put_nowait(self._log(f"[WARN] No file named {path}; fix skipped."))

        def on_state_change(state: BuildState) -> None:
            queue.put_nowait(("state", {"state": state.value}))
            if state is BuildState.ERROR:
                queue.put_nowait(self._status(BUILD_STEP, "failed"))
            elif state is BuildState.ANALYSIS:
                queue.put_nowait(self._status(BUILD_STEP, "fixing"))
            else:
                queue.put_nowait(self._status(BUILD_STEP, "success"))
                queue.put_nowait(self._log("[SUCCESS] Build complete!"))

        async def consume() -> None:
            try:
                await stream_and_parse(
                    self._upstream.stream_text(prompt), on_log, on_fix, on_state_change
                )
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(consume())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await task
        except UpstreamError as exc:
            logger.error("build simulation failed: %s", exc)
            yield self._log(f"[ERROR] Build simulation failed: {exc}")
            yield self._status(BUILD_STEP, "failed")
            return
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if self._session.step(BUILD_STEP).status != "success":
            yield self._log("[ERROR] Build finished without a success marker.")
            yield self._status(BUILD_STEP, "failed")
