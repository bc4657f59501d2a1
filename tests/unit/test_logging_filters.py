import logging

from jobrelay.logging_filters import (
    RedactDeepLinkTokens,
    SuppressHealthCheckAccessLog,
    install_uvicorn_access_log_filters,
)


def _access_record(path: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg='%s - "%s %s HTTP/%s" %s',
        args=("127.0.0.1:12345", "GET", path, "1.1", 200),
        exc_info=None,
    )


def test_suppress_healthcheck_access_log_by_args() -> None:
    assert SuppressHealthCheckAccessLog().filter(_access_record("/health")) is False


def test_suppress_healthcheck_with_query_string() -> None:
    assert SuppressHealthCheckAccessLog().filter(_access_record("/health?probe=1")) is False


def test_non_health_access_log_not_suppressed() -> None:
    assert SuppressHealthCheckAccessLog().filter(_access_record("/api/publish/job-1")) is True


def test_deep_link_token_redacted_in_access_log() -> None:
    record = _access_record("/api/messenger-redirect?context=eyJwdWJsaXNoUmVjb3JkSWQi")

    assert RedactDeepLinkTokens().filter(record) is True

    message = record.getMessage()
    assert "eyJwdWJsaXNoUmVjb3JkSWQi" not in message
    assert "/api/messenger-redirect?context=[REDACTED]" in message


def test_verify_token_redacted_in_access_log() -> None:
    record = _access_record("/webhook/messenger?hub.mode=subscribe&hub.verify_token=s3cret")

    RedactDeepLinkTokens().filter(record)

    assert "s3cret" not in record.getMessage()


def test_install_does_not_duplicate_filters() -> None:
    logger = logging.getLogger("uvicorn.access")
    logger.filters.clear()

    install_uvicorn_access_log_filters()
    install_uvicorn_access_log_filters()

    assert len([f for f in logger.filters if isinstance(f, SuppressHealthCheckAccessLog)]) == 1
    assert len([f for f in logger.filters if isinstance(f, RedactDeepLinkTokens)]) == 1
    logger.filters.clear()
