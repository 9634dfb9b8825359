"""Tests for relay.execution.step."""

import pytest

from relay.core.errors import PipelineConfigError
from relay.execution import ExecuteInput, Step, Steps


class Recorder(Step):
    """Step that records that it ran and optionally fails."""

    def __init__(self, calls: list[str], name: str, fail: bool = False) -> None:
        super().__init__()
        self.calls = calls
        self.name = name
        self.fail = fail

    async def perform_step(self, ctx):
        self.calls.append(self.name)
        if self.fail:
            raise RuntimeError(f"{self.name} failed")
        return f"{self.name} ok"


class TestStep:
    @pytest.mark.asyncio
    async def test_result_carries_output_and_timing(self):
        result = await Recorder([], "a").execute(ExecuteInput())
        assert result.ok
        assert result.output == "a ok"
        assert result.started_at <= result.finished_at
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_exception_becomes_error(self):
        result = await Recorder([], "a", fail=True).execute(ExecuteInput())
        assert not result.ok
        assert result.output is None
        assert isinstance(result.error, RuntimeError)
        assert result.finished_at is not None

    def test_ids_are_unique(self):
        a, b = Recorder([], "a"), Recorder([], "b")
        assert a.id != b.id
        assert a.id.endswith(":Recorder")

    @pytest.mark.asyncio
    async def test_to_dict(self):
        result = await Recorder([], "a", fail=True).execute(ExecuteInput())
        data = result.to_dict()
        assert data["error"] == "a failed"
        assert data["output"] is None
        assert data["step"].endswith(":Recorder")


class TestSteps:
    @pytest.mark.asyncio
    async def test_runs_in_order(self):
        calls: list[str] = []
        steps = Steps([Recorder(calls, "one"), Recorder(calls, "two")])
        results = await steps.execute(ExecuteInput())
        assert calls == ["one", "two"]
        assert [r.output for r in results] == ["one ok", "two ok"]

    @pytest.mark.asyncio
    async def test_short_circuits_on_first_error(self):
        calls: list[str] = []
        steps = Steps()
        steps.push(Recorder(calls, "one"))
        steps.push(Recorder(calls, "two", fail=True))
        steps.push(Recorder(calls, "three"))

        results = await steps.execute(ExecuteInput())

        assert len(results) == 2
        assert results[0].ok
        assert str(results[1].error) == "two failed"
        assert calls == ["one", "two"]

    @pytest.mark.asyncio
    async def test_empty_pipeline_is_rejected(self):
        with pytest.raises(PipelineConfigError, match="no steps defined"):
            await Steps().execute(ExecuteInput())


class TestExecuteInput:
    def test_fork_isolates_bindings_and_cached_fields(self):
        ctx = ExecuteInput(payload={"a": 1}, cached_fields={"token": "t"})
        forked = ctx.fork("channel", "#general")
        forked.cached_fields["extra"] = 1

        assert forked["channel"] == "#general"
        assert "channel" not in ctx.bindings
        assert ctx.cached_fields == {"token": "t"}
        assert forked.payload is ctx.payload

    def test_to_dict_exposes_bindings(self):
        ctx = ExecuteInput(settings={"k": 1}, payload={"p": 2}).fork("item", 3)
        assert ctx.to_dict() == {
            "settings": {"k": 1},
            "payload": {"p": 2},
            "mapping": None,
            "cachedFields": {},
            "item": 3,
        }
