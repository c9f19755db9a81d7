import pytest

from lograil.config import config_from_dict, reset_config
from lograil.context import ResourceMetrics, SecurityFileContext, ShellContext, SystemContext


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's real config file and base dir out of every test."""
    monkeypatch.setenv("LOGRAIL_CONFIG", str(tmp_path / "no-such-config.yaml"))
    monkeypatch.delenv("LOGRAIL_BASE_DIR", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    return config_from_dict({})


@pytest.fixture
def base_dir(tmp_path):
    path = tmp_path / "rail"
    path.mkdir()
    return str(path)


@pytest.fixture
def sample_context():
    return SystemContext(
        user="alice",
        host="host",
        pid=4821,
        shell=ShellContext("bash", False, True),
        cwd="/srv/app",
        env_state={"EDITOR": "vim"},
        security=SecurityFileContext(True, True, "0440"),
        resources=ResourceMetrics("0.10, 0.20, 0.30", "100MB / 200MB", "1.0G / 2.0G (50%)"),
    )
