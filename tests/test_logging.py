"""Tests for request-scoped logging."""

from __future__ import annotations

import logging

from artlens.logging import _ContextFilter, _ExtrasFormatter, configure_logging, request_context, set_stage


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("artlens.test", logging.INFO, __file__, 1, "Evidence fetch end", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_context_is_injected_and_restored() -> None:
    """It should stamp records with the bound request id and stage."""

    formatter = _ExtrasFormatter(fmt="req=%(request_id)s stage=%(stage)s %(message)s")
    context_filter = _ContextFilter()

    with request_context(request_id="req_abc", stage="received"):
        set_stage("evidence_fetch")
        record = _record()
        context_filter.filter(record)
        assert formatter.format(record) == "req=req_abc stage=evidence_fetch Evidence fetch end"

    outside = _record()
    context_filter.filter(outside)
    assert formatter.format(outside) == "req=- stage=- Evidence fetch end"


def test_extras_are_rendered_as_pairs() -> None:
    """It should append structured extras after the message."""

    formatter = _ExtrasFormatter(fmt="%(message)s")

    assert formatter.format(_record(latency_ms=12, timed_out=False)) == "Evidence fetch end latency_ms=12 timed_out=False"


def test_configure_logging_is_idempotent() -> None:
    """It should keep a single application handler across repeated calls."""

    configure_logging("DEBUG")
    configure_logging("INFO", plain=True)

    ours = [h for h in logging.getLogger().handlers if getattr(h, "_artlens", False)]
    assert len(ours) == 1
    assert isinstance(ours[0], logging.StreamHandler)
    assert logging.getLogger("httpx").level == logging.WARNING
