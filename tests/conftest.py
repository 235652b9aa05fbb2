"""Shared fixtures for query-gguf tests."""

import pytest

from paths import AppPaths


@pytest.fixture(autouse=True)
def fixed_cpu_count(monkeypatch):
    """Pretend the machine has 8 CPUs, so default threads are 7."""
    monkeypatch.setattr("modes.detect_cpu_count", lambda: 8)


@pytest.fixture
def paths(tmp_path):
    app_paths = AppPaths.from_base_dir(tmp_path / "query_gguf", home=tmp_path)
    app_paths.ensure_dirs()
    return app_paths


@pytest.fixture
def write_config(paths):
    def _write(text):
        paths.config_file.write_text(text, encoding="utf-8")
        return paths.config_file

    return _write
