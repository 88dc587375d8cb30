from __future__ import annotations

import logging

from .models import BuildStep, ProjectFile, SessionState, StepStatus

logger = logging.getLogger(__name__)


GENERATE_STEP = "Generate Project Files"
SETUP_STEP = "Execute setup.sh"
BUILD_STEP = "Execute build.sh"
TEST_STEP = "Execute test.sh"

STEP_ORDER = (GENERATE_STEP, SETUP_STEP, BUILD_STEP, TEST_STEP)
STEP_KEYS = {
    "generate": GENERATE_STEP,
    "setup": SETUP_STEP,
    "build": BUILD_STEP,
    "test": TEST_STEP,
}

WELCOME_MESSAGE = (
    'Welcome to the AI Linux Build Agent. Run the "generate" step to begin.'
)


class SessionError(RuntimeError):
    pass


class SessionBusyError(SessionError):
    pass


class StepNotReadyError(SessionError):
    pass


class BuildSession:
    """Mutable state of one simulated build: steps, files and terminal log."""

    def __init__(self) -> None:
        self.steps: list[BuildStep] = []
        self.files: list[ProjectFile] = []
        self.logs: list[str] = []
        self.busy = False
        self.reset()

    def reset(self) -> None:
        if self.busy:
            raise SessionBusyError("a step is currently running")
        self.steps = [BuildStep(name=name) for name in STEP_ORDER]
        self.files = []
        self.logs = [WELCOME_MESSAGE]

    def step(self, name: str) -> BuildStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def set_status(self, name: str, status: StepStatus) -> BuildStep:
        step = self.step(name)
        if step.status != status:
            logger.info("step %r: %s -> %s", name, step.status, status)
        step.status = status
        return step

    def ensure_ready(self, name: str) -> None:
        if self.busy:
            raise SessionBusyError("a step is currently running")
        index = STEP_ORDER.index(name)
        if self.steps[index].status != "pending":
            raise StepNotReadyError(f"{name} has already run")
        if index > 0 and self.steps[index - 1].status != "success":
            raise StepNotReadyError(
                f"{name} requires {STEP_ORDER[index - 1]} to succeed first"
            )

    def begin(self, name: str) -> None:
        self.ensure_ready(name)
        self.busy = True

    def finish(self) -> None:
        self.busy = False

    def add_log(self, text: str) -> str:
        self.logs.append(text)
        return text

    def clear_logs(self, first: str) -> None:
        self.logs = [first]

    def get_file(self, name: str) -> ProjectFile | None:
        for project_file in self.files:
            if project_file.name == name:
                return project_file
        return None

    def set_files(self, files: list[ProjectFile]) -> None:
        self.files = list(files)

    def apply_fix(self, name: str, content: str) -> bool:
        project_file = self.get_file(name)
        if project_file is None:
            logger.warning("fix targets unknown file %r", name)
            return False
        project_file.content = content
        return True

    def update_file(self, name: str, content: str) -> ProjectFile:
        if self.busy:
            raise SessionBusyError("a step is currently running")
        project_file = self.get_file(name)
        if project_file is None:
            raise KeyError(name)
        project_file.content = content
        return project_file

    def snapshot(self) -> SessionState:
        return SessionState(
            steps=[step.model_copy() for step in self.steps],
            files=[f.model_copy() for f in self.files],
            logs=list(self.logs),
            busy=self.busy,
        )
