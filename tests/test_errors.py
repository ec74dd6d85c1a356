"""Tests for error codes and ChatError."""

from chatlayer.errors import ChatError, ErrorCode


class TestChatError:
    """Test ChatError."""

    def test_wraps_cause(self):
        """Test a wrapped transport error is kept as the cause."""
        cause = RuntimeError("socket closed")
        error = ChatError.feature_attach_failed(ErrorCode.TYPING_ATTACHMENT_FAILED, cause)

        assert error.code == 102005
        assert error.is_code(ErrorCode.TYPING_ATTACHMENT_FAILED)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_guard_errors(self):
        """Test room state guard errors carry their codes."""
        assert ChatError.room_is_released("attach").code == ErrorCode.ROOM_IS_RELEASED
        assert ChatError.room_is_releasing("detach").code == ErrorCode.ROOM_IS_RELEASING
        assert ChatError.room_in_failed_state("detach").code == ErrorCode.ROOM_IN_FAILED_STATE
        assert "attach" in str(ChatError.room_is_released("attach"))

    def test_to_dict(self):
        """Test serialization for logging."""
        error = ChatError.previous_operation_failed(ValueError("bad"))
        data = error.to_dict()

        assert data["code"] == 102104
        assert data["status_code"] == 500
        assert data["cause"] == "bad"

    def test_str_includes_code(self):
        """Test the string form shows the code."""
        error = ChatError("nope", ErrorCode.BAD_REQUEST, status_code=400)
        assert str(error) == "nope (code=40000)"
