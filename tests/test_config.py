import json

import pytest

from uicheck.core.config import Settings, load_settings


def test_defaults():
    s = Settings()
    assert s.DEFAULT_WAIT == 30
    assert s.RETRY_INTERVAL == 0.1
    assert s.PLAYWRIGHT_BROWSER == "chromium"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DEFAULT_WAIT", "7")
    monkeypatch.setenv("PLAYWRIGHT_HEADLESS", "true")
    s = Settings()
    assert s.DEFAULT_WAIT == 7
    assert s.PLAYWRIGHT_HEADLESS is True


def test_yaml_file_and_overrides(tmp_path):
    path = tmp_path / "suite.yaml"
    path.write_text("DEFAULT_WAIT: 5\nWAIT_SCALE: 2\nUNKNOWN_KEY: 1\n", encoding="utf-8")
    s = load_settings(str(path), DEFAULT_WAIT=None, RETRY_INTERVAL=0.5)
    assert s.DEFAULT_WAIT == 5
    assert s.WAIT_SCALE == 2
    assert s.RETRY_INTERVAL == 0.5


def test_json_file(tmp_path):
    path = tmp_path / "suite.json"
    path.write_text(json.dumps({"ARTIFACT_ROOT": "out"}), encoding="utf-8")
    assert load_settings(str(path)).ARTIFACT_ROOT == "out"


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must be a mapping"):
        load_settings(str(path))
