"""Tests for logging and locking utilities"""
import logging
import threading

from branchlore.utils.logging import get_logger, resolve_level, setup_logging
from branchlore.utils.threading import KeyedLock


class TestKeyedLock:
    """Test per-key locking."""

    def test_lock_is_held_inside_block(self):
        locks = KeyedLock()
        with locks.hold("a"):
            assert locks.is_held("a")
            assert not locks.is_held("b")
        assert not locks.is_held("a")

    def test_different_keys_do_not_block(self):
        """Test that holding one key leaves other keys free."""
        locks = KeyedLock()
        acquired = threading.Event()

        def other():
            with locks.hold("b"):
                acquired.set()

        with locks.hold("a"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=5)
            thread.join()

        assert len(locks) == 2


class TestLogging:
    """Test logging configuration."""

    def test_get_logger_strips_prefixes(self):
        assert get_logger("branchlore.services.git.merge").name == "git.merge"
        assert get_logger("branchlore.core.branch_repository").name == "core.branch_repository"

    def test_resolve_level(self):
        assert resolve_level(debug=True, log_level="error") == logging.DEBUG
        assert resolve_level(verbose=True) == logging.INFO
        assert resolve_level(log_level="error") == logging.ERROR
        assert resolve_level() == logging.WARNING

    def test_log_file(self, temp_dir):
        log_file = temp_dir / "logs" / "branchlore.log"
        setup_logging(log_level="error", log_file=log_file)

        get_logger("branchlore.test").debug("written to file only")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "written to file only" in log_file.read_text()
        for handler in logging.getLogger().handlers[:]:
            handler.close()
            logging.getLogger().removeHandler(handler)
