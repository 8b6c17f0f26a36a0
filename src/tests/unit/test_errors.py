"""Tests for error handling classes."""

import pytest

from wpruntime.errors import (
    AppNotFoundError,
    BinaryMissingError,
    CommandFailedError,
    DatabaseCreationError,
    ErrorCode,
    InitializationError,
    InstanceNotRunningError,
    PortExhaustionError,
    StartupTimeoutError,
    SuperuserRefusedError,
    WPRuntimeError,
)


class TestBinaryMissingError:
    """Tests for BinaryMissingError."""

    def test_inherits_runtime_error(self) -> None:
        exc = BinaryMissingError(["php"])
        assert isinstance(exc, WPRuntimeError)
        assert isinstance(exc, Exception)

    def test_lists_missing_binaries(self) -> None:
        exc = BinaryMissingError(["php", "mysqld"])

        assert exc.missing == ["php", "mysqld"]
        assert "php, mysqld" in exc.message
        assert exc.status_code == 503

    def test_custom_message(self) -> None:
        exc = BinaryMissingError(["wp-cli"], "WP-CLI not found")

        assert exc.message == "WP-CLI not found"
        assert exc.missing == ["wp-cli"]

    def test_to_response(self) -> None:
        resp = BinaryMissingError(["php"]).to_response()

        assert resp.error.code == "BINARY_MISSING"
        assert "php" in resp.error.message


class TestStatusCodes:
    @pytest.mark.parametrize(
        ("exc", "code", "status"),
        [
            (PortExhaustionError(), ErrorCode.PORT_EXHAUSTION, 503),
            (InitializationError(), ErrorCode.INITIALIZATION_FAILURE, 500),
            (SuperuserRefusedError(), ErrorCode.SUPERUSER_REFUSED, 500),
            (StartupTimeoutError(), ErrorCode.STARTUP_TIMEOUT, 504),
            (DatabaseCreationError(), ErrorCode.DATABASE_CREATION_FAILURE, 500),
            (AppNotFoundError(), ErrorCode.APP_NOT_FOUND, 404),
            (InstanceNotRunningError(), ErrorCode.INSTANCE_NOT_RUNNING, 409),
            (CommandFailedError(), ErrorCode.COMMAND_FAILED, 500),
        ],
    )
    def test_code_and_status(
        self, exc: WPRuntimeError, code: ErrorCode, status: int
    ) -> None:
        assert exc.code == code
        assert exc.status_code == status

    def test_message_is_str(self) -> None:
        exc = StartupTimeoutError("MySQL failed to start within 60 seconds on port 3306")

        assert str(exc) == "MySQL failed to start within 60 seconds on port 3306"


class TestErrorCodeEnum:
    def test_values_match_names(self) -> None:
        for code in ErrorCode:
            assert code.value == code.name
