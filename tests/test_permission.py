"""Tests for permission keys and the negotiation state machine."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from agent_toolbox.application.control import drain, run_stream
from agent_toolbox.application.messages import (
    ChoiceMessage,
    ErrorMessage,
    UserChoiceMessage,
)
from agent_toolbox.application.models import (
    AsyncControl,
    PermissionLevel,
)
from agent_toolbox.application.permission import (
    ALLOW,
    ALWAYS_ALLOW,
    ALWAYS_DENY,
    DENY,
    PermissionCheck,
    check_permission,
    create_permission_choice_message,
    extract_choice,
    generate_permission_key,
    handle_permission_response,
    negotiate_permission,
    request_tool_permission,
)
from agent_toolbox.application.settings import InMemorySettingsStore


class TestGeneratePermissionKey:
    """generate_permission_key のテスト."""

    def test_loose_uses_tool_name(self) -> None:
        """loose ティアはツール名そのものになる."""
        key = generate_permission_key("append_file", PermissionLevel.LOOSE, {"filePath": "a"})
        assert key == "append_file"

    def test_strict_includes_parameters(self) -> None:
        """strict ティアはパラメータの JSON を含む."""
        key = generate_permission_key(
            "replace_all", PermissionLevel.STRICT, {"filePath": "a.txt", "pattern": "x"}
        )
        assert key == 'replace_all({"filePath":"a.txt","pattern":"x"})'

    def test_strict_key_ignores_parameter_order(self) -> None:
        """キーの順序が違うだけのパラメータは同じキーになる."""
        first = generate_permission_key("t", "strict", {"b": 1, "a": 2})
        second = generate_permission_key("t", "strict", {"a": 2, "b": 1})
        assert first == second

    def test_strict_without_parameters(self) -> None:
        """パラメータなしの strict は空オブジェクトになる."""
        assert generate_permission_key("t", PermissionLevel.STRICT) == "t({})"

    def test_non_ascii_is_preserved(self) -> None:
        """非ASCII文字はエスケープされない."""
        key = generate_permission_key("t", PermissionLevel.STRICT, {"content": "日本語"})
        assert key == 't({"content":"日本語"})'


class TestCheckPermission:
    """check_permission のテスト."""

    def test_none_is_always_allowed(self) -> None:
        """none ティアは設定に関係なく許可される."""
        settings = InMemorySettingsStore(denied_tools=["read_file"])
        assert check_permission(settings, "read_file", PermissionLevel.NONE) == PermissionCheck(
            allowed=True, needs_user_input=False
        )

    def test_always_always_asks(self) -> None:
        """always ティアは許可リストにあっても確認が必要."""
        settings = InMemorySettingsStore(allowed_tools=["danger"])
        assert check_permission(settings, "danger", PermissionLevel.ALWAYS) == PermissionCheck(
            allowed=False, needs_user_input=True
        )

    def test_allowed_key(self) -> None:
        """許可リストにあるキーは確認不要で許可される."""
        settings = InMemorySettingsStore(allowed_tools=["append_file"])
        check = check_permission(settings, "append_file", PermissionLevel.LOOSE)
        assert check == PermissionCheck(allowed=True, needs_user_input=False)

    def test_denied_key(self) -> None:
        """拒否リストにあるキーは確認不要で拒否される."""
        settings = InMemorySettingsStore(denied_tools=["append_file"])
        check = check_permission(settings, "append_file", PermissionLevel.LOOSE)
        assert check == PermissionCheck(allowed=False, needs_user_input=False)

    def test_allowed_takes_precedence(self) -> None:
        """許可と拒否の両方に該当する場合は許可が優先される."""
        settings = MagicMock()
        settings.is_tool_allowed.return_value = True
        settings.is_tool_denied.return_value = True
        check = check_permission(settings, "append_file", PermissionLevel.LOOSE)
        assert check.allowed is True

    def test_unknown_key_needs_input(self) -> None:
        """未記録のキーは確認が必要."""
        check = check_permission(InMemorySettingsStore(), "append_file", "loose")
        assert check == PermissionCheck(allowed=False, needs_user_input=True)

    def test_strict_key_is_parameter_specific(self) -> None:
        """strict の許可は同じパラメータの呼び出しにだけ効く."""
        params = {"filePath": "a.txt", "pattern": "x", "content": "y"}
        settings = InMemorySettingsStore(
            allowed_tools=[generate_permission_key("replace_all", "strict", params)]
        )

        assert check_permission(settings, "replace_all", "strict", params).allowed is True
        other = {**params, "content": "z"}
        assert check_permission(settings, "replace_all", "strict", other).needs_user_input is True


class TestChoiceMessage:
    """create_permission_choice_message のテスト."""

    def test_standard_choices(self) -> None:
        """通常は4つの選択肢を持つ."""
        message = create_permission_choice_message("Allow?")

        assert [c.value for c in message.choices] == [ALLOW, ALWAYS_ALLOW, DENY, ALWAYS_DENY]
        assert message.prompt == "Allow?"
        assert message.sender == "permission"
        assert message.id.startswith("permission-choice-")
        assert message.content == (
            "Asking user for choices:\nAllow?\n"
            "- Allow (allow)\n- Always Allow (always_allow)\n"
            "- Deny (deny)\n- Always Deny (always_deny)"
        )

    def test_one_time_choices(self) -> None:
        """allow_always=False の場合は Allow と Deny だけになる."""
        message = create_permission_choice_message("Allow?", allow_always=False)
        assert [c.value for c in message.choices] == [ALLOW, DENY]

    def test_ids_are_unique(self) -> None:
        """メッセージIDは毎回異なる."""
        assert (
            create_permission_choice_message("a").id
            != create_permission_choice_message("a").id
        )


class TestExtractChoice:
    """extract_choice のテスト."""

    def test_user_choice(self) -> None:
        """ユーザーの選択値が返る."""
        question = create_permission_choice_message("Allow?")
        answer = UserChoiceMessage.answer(question, ALWAYS_ALLOW)
        assert extract_choice(answer) == ALWAYS_ALLOW

    @pytest.mark.parametrize(
        "response",
        [None, ErrorMessage.create("oops", sender="user")],
    )
    def test_non_choice_is_deny(self, response: ErrorMessage | None) -> None:
        """回答がない場合や user-choice 以外は拒否になる."""
        assert extract_choice(response) == DENY

    def test_out_of_range_is_deny(self) -> None:
        """範囲外のインデックスは拒否になる."""
        question = create_permission_choice_message("Allow?")
        answer = UserChoiceMessage(
            id="u", content="?", sender="user", choice=9, choices=question.choices
        )
        assert extract_choice(answer) == DENY

    def test_answer_rejects_unknown_value(self) -> None:
        """提示していない値で回答を作ろうとするとエラーになる."""
        question = create_permission_choice_message("Allow?", allow_always=False)
        with pytest.raises(ValueError, match="always_allow"):
            UserChoiceMessage.answer(question, ALWAYS_ALLOW)


class TestHandlePermissionResponse:
    """handle_permission_response のテスト."""

    @pytest.mark.parametrize(
        ("choice", "allowed", "allowed_calls", "denied_calls"),
        [
            (ALLOW, True, 0, 0),
            (ALWAYS_ALLOW, True, 1, 0),
            (DENY, False, 0, 0),
            (ALWAYS_DENY, False, 0, 1),
        ],
    )
    def test_records_always_choices(
        self, choice: str, allowed: bool, allowed_calls: int, denied_calls: int
    ) -> None:
        """Always 系の回答だけが設定ストアに記録される."""
        settings = MagicMock()
        answer = UserChoiceMessage.answer(create_permission_choice_message("?"), choice)

        result = handle_permission_response(settings, answer, "append_file", "loose")

        assert result is allowed
        assert settings.add_allowed_tool.call_count == allowed_calls
        assert settings.add_denied_tool.call_count == denied_calls

    def test_always_tier_is_not_recorded(self) -> None:
        """always ティアの回答は記録されない."""
        settings = MagicMock()
        answer = UserChoiceMessage.answer(create_permission_choice_message("?"), ALWAYS_ALLOW)

        assert handle_permission_response(settings, answer, "danger", "always") is True
        settings.add_allowed_tool.assert_not_called()


class TestNegotiatePermission:
    """negotiate_permission のテスト."""

    def test_yields_same_message_twice(self) -> None:
        """同じ ChoiceMessage を2回 yield し、2回目の再開で回答を返す."""
        question = create_permission_choice_message("Allow?")
        answer = UserChoiceMessage.answer(question, ALLOW)
        stream = negotiate_permission(question)

        assert next(stream) is question
        assert stream.send(None) is question
        with pytest.raises(StopIteration) as stop:
            stream.send(AsyncControl(response_message=answer))
        assert stop.value.value is answer

    def test_no_control_resolves_to_none(self) -> None:
        """回答なしで再開すると None を返す."""
        stream = negotiate_permission(create_permission_choice_message("Allow?"))
        next(stream)
        next(stream)
        with pytest.raises(StopIteration) as stop:
            next(stream)
        assert stop.value.value is None


class TestRequestToolPermission:
    """request_tool_permission のテスト."""

    def test_pre_allowed_does_not_prompt(self) -> None:
        """許可済みのキーはメッセージを出さずに許可される."""
        settings = InMemorySettingsStore(allowed_tools=["append_file"])
        stream = request_tool_permission(settings, "append_file", "loose", {}, "Allow?")

        with pytest.raises(StopIteration) as stop:
            next(stream)
        assert stop.value.value is True

    def test_always_allow_is_remembered(self) -> None:
        """Always Allow の回答後は確認なしで許可される."""
        settings = InMemorySettingsStore()

        def responder(question: ChoiceMessage) -> UserChoiceMessage:
            return UserChoiceMessage.answer(question, ALWAYS_ALLOW)

        yielded, _ = run_stream(
            request_tool_permission(settings, "append_file", "loose", {}, "Allow?"),
            responder,
        )

        assert len(yielded) == 2
        assert settings.allowed_tools == ["append_file"]
        check = check_permission(settings, "append_file", PermissionLevel.LOOSE)
        assert check.allowed is True

    def test_always_tier_offers_one_time_choices(self) -> None:
        """always ティアは Allow と Deny だけを提示する."""
        stream = request_tool_permission(InMemorySettingsStore(), "danger", "always", {}, "?")
        question = next(stream)

        assert isinstance(question, ChoiceMessage)
        assert [c.value for c in question.choices] == [ALLOW, DENY]


class TestControlHelpers:
    """drain と run_stream のテスト."""

    def test_drain_treats_prompt_as_denied(self) -> None:
        """drain は権限確認に回答せず、拒否として扱う."""
        settings = InMemorySettingsStore()
        stream = request_tool_permission(settings, "t", "loose", {}, "?")

        assert drain(stream) is False
        assert settings.allowed_tools == []
        assert settings.denied_tools == []

    def test_run_stream_calls_responder_once_per_question(self) -> None:
        """responder は ChoiceMessage ごとに1回だけ呼ばれる."""
        responder = MagicMock(return_value=None)
        stream = request_tool_permission(InMemorySettingsStore(), "t", "loose", {}, "?")

        yielded, response = run_stream(stream, responder)

        responder.assert_called_once_with(yielded[0])
        assert yielded[0] is yielded[1]
        assert response is False
