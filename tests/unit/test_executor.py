# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.
"""Unit tests for CommandExecutor (real child processes, FakeRedis bus)."""

import asyncio

import pytest

from bushook.core.errors import ReplyTransportError
from bushook.kernel.executor import CommandExecutor, ExecutionOutcome, OutcomeStatus, ellipsis
from bushook.kernel.routes import Action, RouteEntry
from bushook.protocols.schema import BusMessage


class RecordingBus:
    """Stands in for RedisBus.respond and remembers every reply."""

    def __init__(self, error=None):
        self.replies = []
        self._error = error

    async def respond(self, msg, data):
        if self._error:
            raise self._error
        self.replies.append((msg.reply, data))
        return 1


def _msg(data=b"", reply="_INBOX.test"):
    return BusMessage(subject="test", data=data, reply=reply)


class TestEllipsis:
    def test_short_text_untouched(self):
        assert ellipsis("abc", 5) == "abc"

    def test_long_text_cut(self):
        assert ellipsis("abcdef", 3) == "abc..."


class TestCommandExecutor:
    @pytest.mark.asyncio
    async def test_empty_action_is_noop(self):
        bus = RecordingBus()
        entry = RouteEntry("noop", Action.empty())
        outcome = await CommandExecutor(bus).execute(entry, _msg(b"ignored"))
        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.output == b""
        assert outcome.exit_code is None
        assert bus.replies == []

    @pytest.mark.asyncio
    async def test_payload_on_stdin_and_reply(self):
        bus = RecordingBus()
        entry = RouteEntry("echo", Action.command("cat"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(b"hello"))
        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.output == b"hello"
        assert outcome.exit_code == 0
        assert outcome.replied is True
        assert bus.replies == [("_INBOX.test", b"hello")]

    @pytest.mark.asyncio
    async def test_empty_payload_closes_stdin(self):
        bus = RecordingBus()
        entry = RouteEntry("wc", Action.command("wc -c"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(b""))
        assert outcome.output.strip() == b"0"

    @pytest.mark.asyncio
    async def test_no_reply_expected(self):
        bus = RecordingBus()
        entry = RouteEntry("echo", Action.command("cat"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(b"hi", reply=None))
        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.output == b"hi"
        assert outcome.replied is False
        assert bus.replies == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_still_replies(self):
        bus = RecordingBus()
        entry = RouteEntry("fail", Action.inline("echo oops; exit 3"))
        outcome = await CommandExecutor(bus).execute(entry, _msg())
        assert outcome.status is OutcomeStatus.PROCESS_ERROR
        assert outcome.exit_code == 3
        assert "exit status 3" in outcome.error
        assert bus.replies == [("_INBOX.test", b"oops\n")]

    @pytest.mark.asyncio
    async def test_stderr_is_captured(self):
        bus = RecordingBus()
        entry = RouteEntry("err", Action.inline("echo problem >&2"))
        outcome = await CommandExecutor(bus).execute(entry, _msg())
        assert outcome.output == b"problem\n"

    @pytest.mark.asyncio
    async def test_spawn_error_sends_no_reply(self):
        bus = RecordingBus()
        entry = RouteEntry("nosuch", Action.command("this-program-does-not-exist"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(b"x"))
        assert outcome.status is OutcomeStatus.SPAWN_ERROR
        assert outcome.output == b""
        assert "Failed to start command" in outcome.error
        assert bus.replies == []

    @pytest.mark.asyncio
    async def test_missing_workdir_is_spawn_error(self, tmp_path):
        bus = RecordingBus()
        entry = RouteEntry("pwd", Action.command("pwd"), workdir=str(tmp_path / "missing"))
        outcome = await CommandExecutor(bus).execute(entry, _msg())
        assert outcome.status is OutcomeStatus.SPAWN_ERROR
        assert bus.replies == []

    @pytest.mark.asyncio
    async def test_nul_byte_is_spawn_error(self):
        bus = RecordingBus()
        entry = RouteEntry("nul", Action.inline("echo a\x00b"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(b"x"))
        assert outcome.status is OutcomeStatus.SPAWN_ERROR
        assert "null byte" in outcome.error
        assert bus.replies == []

    @pytest.mark.asyncio
    async def test_workdir(self, tmp_path):
        bus = RecordingBus()
        entry = RouteEntry("pwd", Action.command("pwd"), workdir=str(tmp_path))
        outcome = await CommandExecutor(bus).execute(entry, _msg())
        assert outcome.output.decode().strip() == str(tmp_path.resolve())

    @pytest.mark.asyncio
    async def test_command_line_has_no_shell(self):
        bus = RecordingBus()
        entry = RouteEntry("echo", Action.command("echo $HOME | wc"))
        outcome = await CommandExecutor(bus).execute(entry, _msg())
        assert outcome.output == b"$HOME | wc\n"

    @pytest.mark.asyncio
    async def test_large_output_not_truncated(self):
        bus = RecordingBus()
        payload = b"x" * 1_000_000
        entry = RouteEntry("echo", Action.command("cat"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(payload))
        assert outcome.output == payload
        assert bus.replies[0][1] == payload

    @pytest.mark.asyncio
    async def test_reply_failure(self):
        bus = RecordingBus(error=ReplyTransportError("reply lost"))
        entry = RouteEntry("echo", Action.command("cat"))
        outcome = await CommandExecutor(bus).execute(entry, _msg(b"x"))
        assert outcome.status is OutcomeStatus.REPLY_ERROR
        assert outcome.reply_error == "reply lost"
        assert outcome.output == b"x"

    @pytest.mark.asyncio
    async def test_process_error_wins_over_reply_failure(self):
        bus = RecordingBus(error=ReplyTransportError("reply lost"))
        entry = RouteEntry("fail", Action.command("false"))
        outcome = await CommandExecutor(bus).execute(entry, _msg())
        assert outcome.status is OutcomeStatus.PROCESS_ERROR
        assert outcome.reply_error == "reply lost"

    @pytest.mark.asyncio
    async def test_cancel_kills_child(self):
        bus = RecordingBus()
        entry = RouteEntry("slow", Action.command("sleep 30"))
        task = asyncio.create_task(CommandExecutor(bus).execute(entry, _msg()))
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, 5)
        assert bus.replies == []


class TestExecutionOutcome:
    def test_preview_is_quoted_and_truncated(self):
        outcome = ExecutionOutcome(status=OutcomeStatus.SUCCESS, output=b'say "hi"\n' * 20)
        preview = outcome.preview(10)
        assert preview == '"say \\"hi\\"\\ns..."'

    def test_preview_handles_binary(self):
        outcome = ExecutionOutcome(status=OutcomeStatus.SUCCESS, output=b"\xff\xfe")
        assert outcome.preview().startswith('"')
