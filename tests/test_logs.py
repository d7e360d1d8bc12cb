import logging

from reforger_tk_guard import logs


def test_bound_log_adds_context(caplog, monkeypatch):
    monkeypatch.setattr(logs, "_LOG_JSON", False)
    log = logs.bind(tracker="round")
    with caplog.at_level(logging.INFO, logger="reforger_tk_guard"):
        log.bind(guid="guid-rex").warning("kick_decided", count=4)
        logs.info("parser_stats", lines=2)
    assert caplog.messages == ["kick_decided tracker=round guid=guid-rex count=4", "parser_stats lines=2"]


def test_call_fields_override_bound_context(caplog, monkeypatch):
    monkeypatch.setattr(logs, "_LOG_JSON", False)
    log = logs.bind(tracker="round")
    with caplog.at_level(logging.INFO, logger="reforger_tk_guard"):
        log.info("tk_tracking_reset", tracker="window")
    assert caplog.messages == ["tk_tracking_reset tracker=window"]
