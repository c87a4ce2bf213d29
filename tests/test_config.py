from typing import Any

import pytest

from app.core.config import Config


@pytest.fixture
def env(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    for name in ("UPLOAD_DIR", "MAX_FILE_SIZE_MB", "RATE_LIMIT_MAX_REQUESTS", "RESULT_POLL_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    def test_defaults(self, env: pytest.MonkeyPatch) -> None:
        config = Config()

        assert config.upload_dir == "uploads"
        assert config.max_file_size_bytes == 10 * 1024 * 1024
        assert config.rate_limit_window_seconds == 120
        assert config.rate_limit_max_requests == 10
        assert config.result_poll_attempts == 1

    def test_reads_environment(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("MAX_FILE_SIZE_MB", "2")
        env.setenv("RUNNINGHUB_API_KEY", "secret")
        env.setenv("RUNNINGHUB_NODE_ID", "12")

        config = Config()

        assert config.max_file_size_bytes == 2 * 1024 * 1024
        assert config.runninghub_api_key == "secret"
        assert config.runninghub_node_id == "12"

    def test_clamps_invalid_values(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("RESULT_POLL_ATTEMPTS", "0")
        env.setenv("RATE_LIMIT_MAX_REQUESTS", "-3")

        config = Config()

        assert config.result_poll_attempts == 1
        assert config.rate_limit_max_requests == 1
