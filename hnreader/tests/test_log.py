"""
Tests for logging setup.
"""

import logging

from hnreader.log import init_logging


class TestInitLogging:

    def test_writes_to_file(self, tmp_path):
        log_path = tmp_path / "nested" / "hnreader.log"
        handler = init_logging(log_path, level="INFO")
        try:
            logging.getLogger("hnreader.tests").info("cache opened")
            logging.getLogger("hnreader.tests").debug("not written")
            handler.flush()
        finally:
            logging.getLogger("hnreader").removeHandler(handler)
            handler.close()

        contents = log_path.read_text()
        assert "INFO hnreader.tests: cache opened" in contents
        assert "not written" not in contents

    def test_verbose_enables_debug(self, tmp_path):
        handler = init_logging(tmp_path / "debug.log", verbose=True)
        try:
            assert logging.getLogger("hnreader").level == logging.DEBUG
        finally:
            logging.getLogger("hnreader").removeHandler(handler)
            handler.close()

    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        assert init_logging(blocker / "sub" / "hnreader.log") is None
