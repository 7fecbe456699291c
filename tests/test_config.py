from lp_returns.config import CHUNK_SIZE, DEFAULT_RPC_URL, RetryPolicy, load_settings


def test_defaults(monkeypatch, tmp_path):
    for name in ("BASE_RPC_URL", "COINGECKO_API_URL", "LP_CHUNK_SIZE", "LP_BLOCK_BUFFER",
                 "LP_MAX_RETRIES", "LP_BACKOFF_BASE_DELAY"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings(tmp_path / "missing.env")

    assert settings.rpc_url == DEFAULT_RPC_URL
    assert settings.chunk_size == CHUNK_SIZE
    assert settings.retry == RetryPolicy()
    assert settings.pool.invert_price


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("BASE_RPC_URL", "http://node.test")
    monkeypatch.setenv("LP_CHUNK_SIZE", "500")
    monkeypatch.setenv("LP_MAX_RETRIES", "2")

    settings = load_settings(tmp_path / "missing.env")

    assert settings.rpc_url == "http://node.test"
    assert settings.chunk_size == 500
    assert settings.retry.max_attempts == 2


def test_env_file(monkeypatch, tmp_path):
    # registered so the value loaded from the file is removed on teardown
    monkeypatch.setenv("LP_BLOCK_BUFFER", "")
    monkeypatch.delenv("LP_BLOCK_BUFFER")
    env = tmp_path / ".env"
    env.write_text("LP_BLOCK_BUFFER=1234\n")

    settings = load_settings(env)

    assert settings.block_buffer == 1234


def test_backoff_delays():
    policy = RetryPolicy(max_attempts=4, base_delay=0.5, multiplier=3.0)
    assert [policy.delay(i) for i in range(4)] == [0.5, 1.5, 4.5, 13.5]
