"""Tests for the logging facade."""

import io
import logging

import pytest

from typst_embed import logging as embed_logging


@pytest.fixture(autouse=True)
def restore_logger():
    root = logging.getLogger("typst_embed")
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogging:
    """Tests for setup_logging and get_logger."""

    def test_get_logger_is_child(self) -> None:
        """Should namespace submodule loggers under typst_embed."""
        assert embed_logging.get_logger("resolver").name == "typst_embed.resolver"
        assert embed_logging.get_logger("typst_embed.embed").name == "typst_embed.embed"

    def test_setup_logging_stream(self) -> None:
        """Should write prefixed messages to the given stream."""
        stream = io.StringIO()
        embed_logging.setup_logging("DEBUG", stream=stream)

        embed_logging.get_logger("pipeline").debug("hello %s", "world")

        assert stream.getvalue() == "typst-embed: hello world\n"

    def test_level_filters(self) -> None:
        """Messages below the level are dropped."""
        stream = io.StringIO()
        embed_logging.setup_logging("WARNING", stream=stream)

        embed_logging.get_logger("pipeline").info("quiet")

        assert stream.getvalue() == ""

    def test_file_handler(self, tmp_path) -> None:
        """Should also log to a file with timestamps."""
        log_file = tmp_path / "bake.log"
        embed_logging.setup_logging("INFO", stream=io.StringIO(), file=str(log_file))

        embed_logging.get_logger("pipeline").info("to file")
        for handler in logging.getLogger("typst_embed").handlers:
            handler.flush()

        content = log_file.read_text()
        assert "[INFO] typst_embed.pipeline: to file" in content
