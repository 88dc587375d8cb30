import pytest

from buildagent.models import ProjectFile
from buildagent.session import (
    BUILD_STEP,
    GENERATE_STEP,
    SETUP_STEP,
    STEP_ORDER,
    WELCOME_MESSAGE,
    BuildSession,
    SessionBusyError,
    StepNotReadyError,
)


def _files():
    return [
        ProjectFile(name="scripts/setup.sh", language="bash", content="echo setup"),
        ProjectFile(name="configs/kernel_fragment.config", language="makefile", content="CONFIG_TTY=y"),
    ]


def test_initial_state():
    session = BuildSession()
    state = session.snapshot()

    assert [s.name for s in state.steps] == list(STEP_ORDER)
    assert all(s.status == "pending" for s in state.steps)
    assert state.logs == [WELCOME_MESSAGE]
    assert state.files == []
    assert state.busy is False


def test_steps_run_in_order():
    session = BuildSession()

    with pytest.raises(StepNotReadyError):
        session.ensure_ready(SETUP_STEP)

    session.ensure_ready(GENERATE_STEP)
    session.set_status(GENERATE_STEP, "success")
    session.ensure_ready(SETUP_STEP)

    with pytest.raises(StepNotReadyError):
        session.ensure_ready(BUILD_STEP)


def test_step_cannot_run_twice():
    session = BuildSession()
    session.set_status(GENERATE_STEP, "failed")

    with pytest.raises(StepNotReadyError):
        session.ensure_ready(GENERATE_STEP)


def test_busy_blocks_everything():
    session = BuildSession()
    session.set_files(_files())
    session.begin(GENERATE_STEP)

    with pytest.raises(SessionBusyError):
        session.begin(GENERATE_STEP)
    with pytest.raises(SessionBusyError):
        session.update_file("scripts/setup.sh", "new")
    with pytest.raises(SessionBusyError):
        session.reset()

    session.finish()
    assert session.busy is False


def test_begin_only_claims_the_session():
    session = BuildSession()

    session.begin(GENERATE_STEP)

    assert session.busy is True
    assert session.step(GENERATE_STEP).status == "pending"


def test_apply_fix_replaces_existing_file_only():
    session = BuildSession()
    session.set_files(_files())

    assert session.apply_fix("configs/kernel_fragment.config", "CONFIG_VIRTIO_CONSOLE=y")
    assert session.get_file("configs/kernel_fragment.config").content == "CONFIG_VIRTIO_CONSOLE=y"
    assert session.apply_fix("configs/missing.config", "x") is False
    assert session.get_file("configs/missing.config") is None


def test_update_unknown_file():
    session = BuildSession()

    with pytest.raises(KeyError):
        session.update_file("nope", "x")


def test_snapshot_is_detached():
    session = BuildSession()
    session.set_files(_files())
    state = session.snapshot()

    session.apply_fix("scripts/setup.sh", "changed")
    session.add_log("later")

    assert state.files[0].content == "echo setup"
    assert state.logs == [WELCOME_MESSAGE]


def test_reset():
    session = BuildSession()
    session.set_files(_files())
    session.set_status(GENERATE_STEP, "success")
    session.add_log("line")

    session.reset()

    assert session.files == []
    assert session.step(GENERATE_STEP).status == "pending"
    assert session.logs == [WELCOME_MESSAGE]
