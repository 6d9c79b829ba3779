"""Tests for AnsibleRunner using small local child processes."""

import os
import sys
import time
from unittest.mock import patch

import pytest

from iapdeploy.ansible_runner import (
    COMMAND_NOT_FOUND_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    AnsibleRunner,
    build_playbook_command,
)
from iapdeploy.exceptions import PlaybookError


@pytest.fixture
def runner(logger):
    return AnsibleRunner(logger, tail_lines=3)


def python_cmd(code):
    return [sys.executable, "-c", code]


def test_build_command(tmp_path):
    cmd = build_playbook_command(
        tmp_path / "inventory.yml", tmp_path / "site.yml", {"b": "2", "a": "1"}
    )

    assert cmd == [
        "ansible-playbook",
        "-i",
        str(tmp_path / "inventory.yml"),
        str(tmp_path / "site.yml"),
        "-e",
        "a=1",
        "-e",
        "b=2",
    ]


def test_success_streams_to_log(runner, logger, tmp_path):
    run = runner.run(
        python_cmd("print('PLAY [targets]'); print('TASK [install java]'); print('PLAY RECAP')"),
        cwd=tmp_path,
    )

    assert run.is_success
    assert run.returncode == 0
    assert run.tail[-1] == "PLAY RECAP"
    assert "[ansible] TASK [install java]" in logger.log_path.read_text()


def test_failure_keeps_exit_code_and_tail(runner, tmp_path):
    run = runner.run(
        python_cmd("import sys\nfor i in range(5): print(f'line {i}')\nsys.exit(2)"),
        cwd=tmp_path,
    )

    assert not run.is_success
    assert run.returncode == 2
    assert run.tail == ("line 2", "line 3", "line 4")


def test_timeout_kills_process(runner, tmp_path):
    run = runner.run(python_cmd("import time; print('start', flush=True); time.sleep(30)"), cwd=tmp_path, timeout=0.5)

    assert run.timed_out
    assert run.returncode == TIMEOUT_EXIT_CODE
    assert not run.is_success


def test_ansible_environment(runner, logger, tmp_path):
    run = runner.run(
        python_cmd(
            "import os; print(os.environ['ANSIBLE_HOST_KEY_CHECKING']); "
            "print(os.environ['ANSIBLE_LOG_PATH'])"
        ),
        cwd=tmp_path,
    )

    assert run.tail[0] == "False"
    assert run.tail[1] == str(logger.ansible_log_path)


def test_timeout_with_unterminated_line(runner, tmp_path):
    started = time.monotonic()

    run = runner.run(
        python_cmd(
            "import sys, time; sys.stdout.write('Enter value: '); sys.stdout.flush(); time.sleep(30)"
        ),
        cwd=tmp_path,
        timeout=0.5,
    )

    assert run.timed_out
    assert time.monotonic() - started < 5
    assert run.tail[-1] == "Enter value:"


def test_missing_binary_is_playbook_error(runner, tmp_path):
    with pytest.raises(PlaybookError) as exc_info:
        runner.run([str(tmp_path / "ansible-playbook"), "site.yml"], cwd=tmp_path)

    assert exc_info.value.stage == "playbook"
    assert exc_info.value.exit_code == COMMAND_NOT_FOUND_EXIT_CODE
    assert "Could not start" in exc_info.value.tail[0]


def test_cancellation_kills_process(runner, tmp_path):
    pids = []

    def interrupt(line, tail):
        pids.append(int(line))
        raise KeyboardInterrupt

    with patch.object(runner, "_handle_line", side_effect=interrupt):
        with pytest.raises(KeyboardInterrupt):
            runner.run(
                python_cmd("import os, time; print(os.getpid(), flush=True); time.sleep(30)"),
                cwd=tmp_path,
            )

    # Killed and reaped: the pid no longer exists
    with pytest.raises(ProcessLookupError):
        os.kill(pids[0], 0)
