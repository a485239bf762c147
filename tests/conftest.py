import pytest

from bootstrapper.config import RunConfiguration


@pytest.fixture
def home(tmp_path, monkeypatch):
    """A throwaway HOME so default key and checkout paths land in tmp_path."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir


@pytest.fixture
def make_config(home):
    def _make(**overrides):
        overrides.setdefault("repo_url", "git@github.com:example/setup-private.git")
        return RunConfiguration(**overrides)
    return _make
