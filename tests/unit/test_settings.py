import pytest

from code_reader.api.config import Settings, SettingsError


def test_defaults(monkeypatch):
    for name in (
        "CODE_READER_STORE",
        "CODE_READER_HEARTBEAT_INTERVAL_S",
        "CODE_READER_VECTOR_STORE",
        "CODE_READER_EMBEDDING_MODEL",
        "CODE_READER_MEMORY_MAX_TOKENS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.store == "file"
    assert settings.heartbeat_interval_s == 10.0
    assert settings.queue_max_retries == 3
    assert settings.vector_store == "numpy"
    assert settings.embedding_model is None
    assert settings.memory_max_tokens == 20000


def test_overrides(monkeypatch, tmp_data_dir):
    monkeypatch.setenv("CODE_READER_STORE", "memory")
    monkeypatch.setenv("CODE_READER_HEARTBEAT_INTERVAL_S", "2.5")
    monkeypatch.setenv("CODE_READER_VECTOR_STORE", "FAISS")

    settings = Settings.from_env()

    assert settings.store == "memory"
    assert settings.heartbeat_interval_s == 2.5
    assert settings.vector_store == "faiss"
    assert settings.flows_dir == tmp_data_dir / "flows"


@pytest.mark.parametrize(
    "name,value",
    [
        ("CODE_READER_HEARTBEAT_INTERVAL_S", "soon"),
        ("CODE_READER_HEARTBEAT_INTERVAL_S", "0"),
        ("CODE_READER_QUEUE_MAX_RETRIES", "1.5"),
        ("CODE_READER_STORE", "redis"),
        ("API_PORT", "http"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(SettingsError):
        Settings.from_env()
