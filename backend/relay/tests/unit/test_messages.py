"""Tests for relay WebSocket message parsing."""

import pytest
from pydantic import ValidationError

from pairing.models import JoinStatus, Role
from relay.messaging.types import (
    CreateRoomMessage,
    ErrorCode,
    ErrorMessage,
    JoinResultMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    PingMessage,
    RelayMessage,
    parse_client_message,
)


class TestParseClientMessage:
    def test_parse_create_room(self):
        msg = parse_client_message('{"type": "create_room"}')
        assert isinstance(msg, CreateRoomMessage)
        assert msg.role is None

    def test_parse_create_room_with_role(self):
        msg = parse_client_message('{"type": "create_room", "role": "generator"}')
        assert isinstance(msg, CreateRoomMessage)
        assert msg.role is Role.GENERATOR

    def test_parse_join_room(self):
        msg = parse_client_message('{"type": "join_room", "code": "B17K", "role": "discriminator"}')
        assert isinstance(msg, JoinRoomMessage)
        assert msg.code == "B17K"
        assert msg.role is Role.DISCRIMINATOR

    def test_join_code_is_normalized(self):
        msg = parse_client_message('{"type": "join_room", "code": " b17k ", "role": "generator"}')
        assert msg.code == "B17K"

    def test_join_requires_role(self):
        with pytest.raises(ValidationError, match="role"):
            parse_client_message('{"type": "join_room", "code": "B17K"}')

    def test_join_rejects_unknown_role(self):
        with pytest.raises(ValidationError, match="role"):
            parse_client_message('{"type": "join_room", "code": "B17K", "role": "referee"}')

    def test_join_rejects_empty_code(self):
        with pytest.raises(ValidationError, match="code"):
            parse_client_message('{"type": "join_room", "code": "", "role": "generator"}')

    @pytest.mark.parametrize(
        "data",
        ['{"msg": "X"}', "[1, 2, 3]", '"text"', "42", "null", '{"nested": {"a": [true, false]}}'],
    )
    def test_relay_carries_any_json(self, data):
        msg = parse_client_message(f'{{"type": "relay", "data": {data}}}')
        assert isinstance(msg, RelayMessage)

    def test_relay_data_defaults_to_none(self):
        msg = parse_client_message('{"type": "relay"}')
        assert isinstance(msg, RelayMessage)
        assert msg.data is None

    def test_parse_leave_room(self):
        assert isinstance(parse_client_message('{"type": "leave_room"}'), LeaveRoomMessage)

    def test_parse_ping(self):
        assert isinstance(parse_client_message('{"type": "ping"}'), PingMessage)

    def test_reject_unknown_type(self):
        with pytest.raises(ValidationError, match="type"):
            parse_client_message('{"type": "start_room"}')

    def test_reject_missing_type(self):
        with pytest.raises(ValidationError):
            parse_client_message('{"code": "B17K"}')

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="Expecting value"):
            parse_client_message("not json")

    def test_reject_oversized_message(self):
        raw = '{"type": "relay", "data": "' + "a" * 300 + '"}'
        with pytest.raises(ValueError, match="Message too large"):
            parse_client_message(raw, max_bytes=256)

    def test_size_limit_counts_utf8_bytes(self):
        text = "一" * 100  # 300 bytes
        raw = f'{{"type": "relay", "data": "{text}"}}'
        with pytest.raises(ValueError, match="Message too large"):
            parse_client_message(raw, max_bytes=256)
        assert isinstance(parse_client_message(raw, max_bytes=512), RelayMessage)


class TestServerMessages:
    def test_join_result_serializes_wire_values(self):
        dumped = JoinResultMessage(code="B17K", role=Role.GENERATOR, status=JoinStatus.ROLE_ALREADY_FILLED).model_dump(
            mode="json",
        )
        assert dumped == {"type": "join_result", "code": "B17K", "role": "generator", "status": "role_already_filled"}

    def test_error_message(self):
        dumped = ErrorMessage(code=ErrorCode.RATE_LIMITED, message="slow down").model_dump(mode="json")
        assert dumped == {"type": "error", "code": "rate_limited", "message": "slow down"}
