import threading
from pathlib import Path

from campus_events.scraper import logging_utils, utils


def test_scraper_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._scraper_event("state", phase="pagination", kind="done")

    assert events
    line = events[-1]
    assert line.startswith("[SCRAPER][STATE]")
    assert "phase='pagination'" in line
    assert "kind='done'" in line


def test_scraper_event_never_raises(monkeypatch):
    def _boom(msg):
        raise OSError("log disk gone")

    monkeypatch.setattr(logging_utils, "log_line", _boom)

    logging_utils._scraper_event("error", step="x")


def test_setup_run_logger_rotates_into_log_dir(temp_data_dir: Path):
    log_path = utils.setup_run_logger()
    utils.log_line("hello from the scraper")

    assert log_path.parent == temp_data_dir / "logs"
    assert utils.get_current_log_path() == log_path
    assert "hello from the scraper" in log_path.read_text(encoding="utf-8")


def test_clean_text_and_short_error_message():
    assert utils.clean_text(None) == ""
    assert utils.clean_text("  a \n\t b ") == "a b"
    assert utils.short_error_message(ValueError("first\nsecond")) == "first"
    assert utils.short_error_message(ValueError("")) == "ValueError"
    assert len(utils.short_error_message(ValueError("x" * 500), max_length=50)) == 50


def test_run_context_stamps_events_and_unwinds(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    with logging_utils.run_context(run_id=7, trigger="cli"):
        logging_utils._scraper_event("page", step="extracted", trigger="override")
    logging_utils._scraper_event("page", step="after")

    assert "run_id=7" in events[0]
    assert "trigger='override'" in events[0]
    assert "run_id" not in events[1]


def test_run_context_is_private_to_each_thread(monkeypatch):

    events: list[tuple[str, str]] = []
    monkeypatch.setattr(
        logging_utils, "log_line", lambda msg: events.append((threading.current_thread().name, msg))
    )
    a_entered = threading.Event()
    b_entered = threading.Event()
    a_exited = threading.Event()

    def _run_a():
        with logging_utils.run_context(run_id=1):
            a_entered.set()
            b_entered.wait(timeout=5)
            logging_utils._scraper_event("x", step="a")
        a_exited.set()

    def _run_b():
        a_entered.wait(timeout=5)
        with logging_utils.run_context(run_id=2):
            b_entered.set()
            a_exited.wait(timeout=5)
            logging_utils._scraper_event("x", step="b")

    threads = [threading.Thread(target=_run_a, name="A"), threading.Thread(target=_run_b, name="B")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert sorted(events) == [
        ("A", "[SCRAPER][X] run_id=1, step='a'"),
        ("B", "[SCRAPER][X] run_id=2, step='b'"),
    ]
