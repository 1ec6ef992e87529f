from app.utils.logger import InkwellLogger


def test_plain_output_with_context_and_fields(capsys):
    logger = InkwellLogger("post", enable_colors=False)

    logger.info("Linked files", "link", post_id=7, file_ids=[1, 2])

    out = capsys.readouterr().out
    assert "[POST/LINK] [INFO] Linked files" in out
    assert "post_id=7, file_ids=[1,2]" in out
    assert "\033[" not in out


def test_min_level_filters_lower_levels(capsys):
    logger = InkwellLogger("post", enable_colors=False, min_level="warning")

    logger.debug("hidden")
    logger.success("also hidden")
    logger.error("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "[ERROR] shown" in out


def test_exception_includes_error_type(capsys):
    logger = InkwellLogger("file", enable_colors=False)

    logger.exception("Delete failed", ValueError("bad key"), "cleanup", key="uploads/a.png")

    out = capsys.readouterr().out
    assert "error_type=ValueError" in out
    assert "error=bad key" in out
    assert "key=uploads/a.png" in out
