"""Tests for bootstrapper.utils module."""
import re

import pytest
import sh
from unittest.mock import patch, MagicMock
from bootstrapper import utils


TIMESTAMP = r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}"


@pytest.fixture(autouse=True)
def reset_verbosity():
    yield
    utils.setup_logging(False)


def test_command_exists_when_command_found():
    """Test command_exists returns True when command is found."""
    with patch('shutil.which', return_value='/usr/bin/git'):
        assert utils.command_exists('git') is True


def test_command_exists_when_command_not_found():
    """Test command_exists returns False when command not found."""
    with patch('shutil.which', return_value=None):
        assert utils.command_exists('nonexistent') is False


def test_is_root_when_root():
    """Test is_root returns True when running as root."""
    with patch('os.geteuid', return_value=0):
        assert utils.is_root() is True


def test_is_root_when_not_root():
    """Test is_root returns False when not running as root."""
    with patch('os.geteuid', return_value=1000):
        assert utils.is_root() is False


def test_get_host_label():
    with patch('socket.gethostname', return_value='devbox\n'):
        assert utils.get_host_label() == 'devbox'


def test_get_host_label_falls_back_to_unknown():
    """Test get_host_label when the hostname is empty or unavailable."""
    with patch('socket.gethostname', return_value=''):
        assert utils.get_host_label() == 'unknown'
    with patch('socket.gethostname', side_effect=OSError("no hostname")):
        assert utils.get_host_label() == 'unknown'


def test_log_info(capsys):
    """Test log_info outputs a timestamped message."""
    utils.log_info("Test message")
    captured = capsys.readouterr()
    assert re.fullmatch(TIMESTAMP + r" \[INFO\] Test message\n", captured.out)


def test_log_warn(capsys):
    utils.log_warn("Careful")
    assert re.fullmatch(TIMESTAMP + r" \[WARN\] Careful\n", capsys.readouterr().out)


def test_log_error_goes_to_stderr(capsys):
    """Test log_error writes to stderr, not stdout."""
    utils.log_error("Broken")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert re.fullmatch(TIMESTAMP + r" \[ERROR\] Broken\n", captured.err)


def test_log_dry_run(capsys):
    utils.log_dry_run("Would do a thing")
    assert "[DRY-RUN] Would do a thing" in capsys.readouterr().out


def test_log_action(capsys):
    """Test log_action outputs indented message."""
    utils.log_action("Installing package")
    captured = capsys.readouterr()
    assert "  -> Installing package\n" == captured.out


def test_log_debug_only_when_verbose(capsys):
    """Test debug lines are hidden unless setup_logging enabled verbose output."""
    utils.setup_logging(verbose=False)
    utils.log_debug("hidden")
    assert capsys.readouterr().out == ""

    utils.setup_logging(verbose=True)
    utils.log_debug("shown")
    assert "[DEBUG] shown" in capsys.readouterr().out


class TestRunCommand:
    """Tests for foreground command execution."""

    @patch('bootstrapper.utils.sh.Command')
    def test_run_command_success(self, mock_command):
        """Test a successful command returns 0 and runs in the given directory."""
        runner = MagicMock()
        mock_command.return_value = runner

        assert utils.run_command(["./bootstrap.sh", "--flag"], cwd="/tmp/checkout") == 0

        mock_command.assert_called_once_with("./bootstrap.sh")
        runner.assert_called_once_with("--flag", _cwd="/tmp/checkout", _fg=True)

    @patch('bootstrapper.utils.sh.Command')
    def test_run_command_returns_exit_code(self, mock_command):
        """Test a failing command's exit code is returned, not raised."""
        mock_command.return_value.side_effect = sh.ErrorReturnCode_1("sh", b"", b"")

        assert utils.run_command(["sh", "bootstrap.sh"]) == 1

    @patch('bootstrapper.utils.sh.Command', side_effect=sh.CommandNotFound("bootstrap.sh"))
    def test_missing_command_returns_127(self, mock_command, capsys):
        """Test a command that cannot be resolved behaves like the shell."""
        assert utils.run_command(["bootstrap.sh"]) == 127
        assert "bootstrap.sh: command not found" in capsys.readouterr().err


class TestRunPrivileged:
    """Tests for privilege escalation."""

    @patch('bootstrapper.utils.run_command', return_value=0)
    @patch('bootstrapper.utils.is_root', return_value=True)
    def test_runs_directly_as_root(self, mock_is_root, mock_run):
        utils.run_privileged(["apt-get", "update"])
        mock_run.assert_called_once_with(["apt-get", "update"], cwd=None)

    @patch('bootstrapper.utils.run_command', return_value=3)
    @patch('bootstrapper.utils.command_exists', return_value=True)
    @patch('bootstrapper.utils.is_root', return_value=False)
    def test_uses_sudo_when_not_root(self, mock_is_root, mock_exists, mock_run):
        """Test non-root runs go through sudo and keep the exit code."""
        assert utils.run_privileged(["apt-get", "update"], cwd="/tmp") == 3
        mock_run.assert_called_once_with(["sudo", "apt-get", "update"], cwd="/tmp")

    @patch('bootstrapper.utils.run_command', return_value=0)
    @patch('bootstrapper.utils.command_exists', return_value=False)
    @patch('bootstrapper.utils.is_root', return_value=False)
    def test_runs_directly_without_sudo(self, mock_is_root, mock_exists, mock_run):
        utils.run_privileged(["brew", "install", "git"])
        mock_run.assert_called_once_with(["brew", "install", "git"], cwd=None)
