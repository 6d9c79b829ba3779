"""Tests for BaseCommand error mapping."""

import json

import pytest

from iapdeploy.base import BaseCommand
from iapdeploy.exceptions import PlaybookError, TunnelError


class FailingCommand(BaseCommand):
    """Opens a run log, then raises the given error."""

    def __init__(self, error, **kwargs):
        super().__init__(**kwargs)
        self.error = error

    def execute(self):
        self.init_logger("vm-a", "deploy")
        raise self.error


@pytest.mark.parametrize("json_output", [True, False])
def test_failed_run_marked_in_log(tmp_path, json_output):
    command = FailingCommand(
        TunnelError("IAP tunnel exited with code 1"),
        json_output=json_output,
        log_root=tmp_path,
    )

    with pytest.raises(SystemExit) as exc_info:
        command.run()

    assert exc_info.value.code == 1
    text = command.logger.log_path.read_text()
    assert "IAP tunnel exited with code 1" in text
    assert "Stage: tunnel" in text
    assert "Status: FAILED" in text


def test_unexpected_error_marked_in_log_in_json_mode(tmp_path, capsys):
    command = FailingCommand(RuntimeError("boom"), json_output=True, log_root=tmp_path)

    with pytest.raises(SystemExit) as exc_info:
        command.run()

    assert exc_info.value.code == 1
    assert json.loads(capsys.readouterr().out) == {"error": "RuntimeError: boom"}
    assert "Status: FAILED" in command.logger.log_path.read_text()


@pytest.mark.parametrize(
    "error, code",
    [
        (PlaybookError(2, []), 2),
        (PlaybookError(-9, ["Killed"]), 137),
        (PlaybookError(-15, []), 143),
        (TunnelError("not ready"), 1),
    ],
)
def test_exit_code_for(error, code):
    assert BaseCommand.exit_code_for(error) == code
