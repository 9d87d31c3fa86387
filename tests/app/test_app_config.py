import pytest

from cncvision.app.config import AppConfig, load_config
from cncvision.core.vision import config as vision_config


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.toml")
    assert cfg == AppConfig()
    assert cfg.executor.settle_delay == 0.05
    assert cfg.backend.ready_timeout == 10.0


def test_toml_overrides(tmp_path):
    path = tmp_path / "app.toml"
    path.write_text(
        "[executor]\nsettle_delay = 0.2\n"
        "[backend]\nready_timeout = 3\n"
        "[logging]\nenable = false\n"
        "[vision]\nconfig = \"custom.yaml\"\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.executor.settle_delay == 0.2
    assert cfg.backend.ready_timeout == 3.0
    assert cfg.backend.backoff == 1.5
    assert cfg.logging.enable is False
    assert cfg.vision_config == "custom.yaml"


def test_bundled_app_config_loads():
    cfg = load_config()
    assert cfg.logging.enable is True
    assert cfg.backend.poll_interval == pytest.approx(0.1)


def test_bundled_vision_yaml_matches_defaults():
    assert vision_config.load_config() == vision_config.VisionConfig()


def test_vision_yaml_partial_override(tmp_path):
    path = tmp_path / "vision.yaml"
    path.write_text("pipeline:\n  mode: gradient\n  retrieval: list\ntracker:\n  capacity: 8\n", encoding="utf-8")
    cfg = vision_config.load_config(str(path))
    assert cfg.pipeline.mode == "gradient"
    assert cfg.pipeline.retrieval == "list"
    assert cfg.pipeline.sensitivity == pytest.approx(0.33)
    assert cfg.tracker.capacity == 8
    assert cfg.smoothing.kernel == 5


@pytest.mark.parametrize(
    "text",
    [
        "pipeline:\n  colour: red\n",
        "histogram:\n  bins: 8\n",
        "pipeline:\n  retrieval: tree\n",
        "- just\n- a list\n",
    ],
)
def test_vision_yaml_rejects_bad_content(tmp_path, text):
    path = tmp_path / "bad.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ValueError):
        vision_config.load_config(str(path))
