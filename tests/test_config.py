from __future__ import annotations

import pytest

from sf._config import options_from_env


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for name in ("SF_BUDGET_NODES", "SF_BUDGET_SECONDS", "SF_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults_without_env():
    options = options_from_env()
    assert options.max_nodes is None
    assert options.max_seconds is None
    assert options.workers == 1


def test_values_from_env(monkeypatch):
    monkeypatch.setenv("SF_BUDGET_NODES", "100")
    monkeypatch.setenv("SF_BUDGET_SECONDS", "2.5")
    monkeypatch.setenv("SF_WORKERS", "4")
    options = options_from_env()
    assert (options.max_nodes, options.max_seconds, options.workers) == (100, 2.5, 4)


def test_dotenv_file_is_read(monkeypatch, tmp_path):
    # load_dotenv pisze do os.environ; monkeypatch usunie zmienną po teście
    monkeypatch.setenv("SF_BUDGET_NODES", "0")
    monkeypatch.delenv("SF_BUDGET_NODES")
    (tmp_path / ".env").write_text("SF_BUDGET_NODES=7\n", encoding="utf-8")
    assert options_from_env().max_nodes == 7


def test_invalid_value_exits(monkeypatch):
    monkeypatch.setenv("SF_BUDGET_NODES", "dużo")
    with pytest.raises(SystemExit):
        options_from_env()
