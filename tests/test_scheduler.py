# tests/test_scheduler.py
import logging

import pytest

from app import scheduler


def test_price_drop_job_logs_failures(db, monkeypatch, caplog):
    def fail(session):
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler, "detect_price_drops", fail)
    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError):
            scheduler.run_price_drop_check()
    assert "Price drop check failed" in caplog.text


def test_saved_search_job_logs_failures(db, monkeypatch, caplog):
    def fail(session):
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler, "check_all_saved_searches", fail)
    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError):
            scheduler.run_saved_search_check()
    assert "Saved search check failed" in caplog.text
