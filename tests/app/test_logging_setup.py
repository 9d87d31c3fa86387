import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from cncvision.app.logging_utils.logging_config import setup_logging


@pytest.fixture()
def clean_root():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    root.handlers = [h for h in saved_handlers if not isinstance(h, RotatingFileHandler)]
    yield root
    for h in root.handlers:
        if h not in saved_handlers:
            h.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def _write_config(tmp_path, modules):
    cfg = {
        "root": {"level": "DEBUG", "file": str(tmp_path / "test.log")},
        "modules": modules,
    }
    path = tmp_path / "logging.json"
    path.write_text(json.dumps(cfg), encoding="utf-8")
    return path


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        setup_logging(tmp_path / "absent.json")


def test_setup_adds_single_file_handler(tmp_path, clean_root):
    path = _write_config(tmp_path, {"cncvision.test.quiet": "NONE", "cncvision.test.loud": "warning"})

    setup_logging(path)
    setup_logging(path)

    file_handlers = [h for h in clean_root.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert clean_root.level == logging.DEBUG
    assert logging.getLogger("cncvision.test.quiet").disabled
    assert logging.getLogger("cncvision.test.loud").level == logging.WARNING

    logging.getLogger("cncvision.test").info("hello file")
    file_handlers[0].flush()
    assert "hello file" in (tmp_path / "test.log").read_text(encoding="utf-8")

    logging.getLogger("cncvision.test.quiet").disabled = False
    logging.getLogger("cncvision.test.quiet").propagate = True


def test_invalid_level_falls_back_to_info(tmp_path, clean_root):
    path = _write_config(tmp_path, {"cncvision.test.odd": "chatty"})
    setup_logging(path)
    assert logging.getLogger("cncvision.test.odd").level == logging.INFO
