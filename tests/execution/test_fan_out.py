"""Tests for relay.execution.action.FanOut."""

import asyncio

import pytest

from relay.core.errors import FanOutError, PipelineConfigError
from relay.execution import Action, ExecuteInput, FanOut


class TestFanOut:
    @pytest.mark.asyncio
    async def test_runs_once_per_element(self):
        seen: list[int] = []

        async def record(ctx):
            await asyncio.sleep(0)
            seen.append(ctx["n"])
            return ctx["n"] * 10

        action = Action().fan_out(on=[1, 2, 3, 4, 5], as_="n").do(record).fan_in()
        results = await action.execute(ExecuteInput(payload={}))

        assert sorted(seen) == [1, 2, 3, 4, 5]
        forks = results[-1].output
        assert [fork[-1].output for fork in forks] == [10, 20, 30, 40, 50]

    @pytest.mark.asyncio
    async def test_on_path_reads_the_context(self):
        action = Action().fan_out(on="$.payload.channels", as_="channel").do(lambda ctx: ctx["channel"]).fan_in()
        ctx = ExecuteInput(payload={"channels": ["#a", "#b"]})
        results = await action.execute(ctx)
        assert [fork[0].output for fork in results[-1].output] == ["#a", "#b"]

    @pytest.mark.asyncio
    async def test_on_path_sees_mapped_payload(self):
        action = Action().fan_out(on="$.payload.ids", as_="id").do(lambda ctx: ctx["id"]).fan_in()
        ctx = ExecuteInput(payload={"traits": {"ids": [7, 8]}}, mapping={"ids": {"@path": "$.traits.ids"}})
        results = await action.execute(ctx)
        assert [fork[0].output for fork in results[-1].output] == [7, 8]

    @pytest.mark.asyncio
    async def test_empty_array_runs_nothing(self):
        calls = []
        action = Action().fan_out(on=[], as_="n").do(calls.append).fan_in()
        results = await action.execute(ExecuteInput(payload={}))
        assert results[-1].output == []
        assert calls == []

    @pytest.mark.asyncio
    async def test_forks_do_not_share_cached_fields(self):
        def write(ctx):
            ctx.cached_fields["mine"] = ctx["n"]
            return ctx.cached_fields["mine"]

        action = Action().fan_out(on=[1, 2], as_="n").do(write).fan_in()
        ctx = ExecuteInput(payload={})
        results = await action.execute(ctx)

        assert [fork[0].output for fork in results[-1].output] == [1, 2]
        assert ctx.cached_fields == {}


class TestFanOutErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload,kind",
        [({"channels": "#a"}, "a string"), ({"channels": {"a": 1}}, "an object"), ({}, "an undefined")],
    )
    async def test_on_must_be_an_array(self, payload, kind):
        action = Action().fan_out(on="$.payload.channels", as_="c").do(lambda ctx: None).fan_in()
        with pytest.raises(FanOutError, match=f"is not an array, it is {kind}"):
            await action.execute(ExecuteInput(payload=payload))

    @pytest.mark.asyncio
    async def test_one_failing_fork_fails_the_step(self):
        def maybe_fail(ctx):
            if ctx["n"] == 3:
                raise ValueError("bad element")
            return ctx["n"]

        action = Action().fan_out(on=[1, 2, 3, 4], as_="n").do(maybe_fail).fan_in()
        results = await action.execute(ExecuteInput(payload={}), raise_on_error=False)

        error = results[-1].error
        assert isinstance(error, FanOutError)
        assert "element 2" in str(error)
        assert isinstance(error.__cause__, ValueError)

    def test_fan_in_without_steps(self):
        with pytest.raises(PipelineConfigError, match="no steps defined"):
            Action().fan_out(on=[1], as_="n").fan_in()

    @pytest.mark.asyncio
    async def test_standalone_fan_out_without_steps(self):
        result = await FanOut(None, on=[1], as_="n").execute(ExecuteInput())
        assert isinstance(result.error, PipelineConfigError)


class TestFanOutRequests:
    @pytest.mark.asyncio
    async def test_requests_per_element_use_parent_extensions(self, mock_api):
        seen = []
        action = Action(on_response=seen.append).extend_request(mock_api.extension)
        action.fan_out(on=["a", "b", "c"], as_="id").request(
            lambda request, ctx: request(f"https://api.example.com/items/{ctx['id']}")
        ).fan_in()

        await action.execute(ExecuteInput(payload={}))

        paths = sorted(r.url.path for r in mock_api.requests)
        assert paths == ["/items/a", "/items/b", "/items/c"]
        assert len(seen) == 3
