import logging

from apps.portal.core.context import set_correlation_id
from apps.portal.core.logging import CorrelationIdFilter, _parse_headers


def test_filter_stamps_current_correlation_id():
    record = logging.LogRecord("portal", logging.INFO, __file__, 1, "hello", None, None)
    set_correlation_id("corr-9")
    try:
        assert CorrelationIdFilter().filter(record)
    finally:
        set_correlation_id(None)

    assert record.correlation_id == "corr-9"


def test_filter_uses_placeholder_outside_requests():
    record = logging.LogRecord("portal", logging.INFO, __file__, 1, "hello", None, None)

    CorrelationIdFilter().filter(record)

    assert record.correlation_id == "-"


def test_parse_otlp_headers():
    assert _parse_headers("api-key=abc, tenant = city ,broken") == {"api-key": "abc", "tenant": "city"}
    assert _parse_headers(None) == {}
