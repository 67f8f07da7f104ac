"""Unit tests for the retry/fallback executor."""
from __future__ import annotations

import unittest

from llm_relay.errors import ConfigurationError, TerminalProviderError, TransientProviderError
from llm_relay.executor import RetryExecutor, backoff_delay_ms
from llm_relay.live_inputs import LiveUserInputs
from llm_relay.models import AttemptConfig, Cancelled

from fakes import RecordingSleep, ScriptedProvider, live_inputs_for, make_context, make_resolver


class StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class TestBackoff(unittest.TestCase):
    def test_doubles_and_caps(self) -> None:
        self.assertEqual([backoff_delay_ms(i) for i in range(6)], [1000, 2000, 4000, 8000, 10000, 10000])


class TestRetryExecutor(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.context = make_context()
        self.live = live_inputs_for(self.context)
        self.sleep = RecordingSleep()
        self.resolver = make_resolver(a=ScriptedProvider(), b=ScriptedProvider())
        self.executor = RetryExecutor(self.resolver, self.live, sleep=self.sleep)
        self.calls: list[tuple[str, int]] = []

    def attempt_with(self, outcomes: dict[str, list]):
        """Attempt fn that pops the next outcome per model; exceptions are raised."""

        async def attempt(resolved, config, attempt_no):
            self.calls.append((config.model, attempt_no))
            outcome = outcomes[config.model].pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        return attempt

    async def test_fallback_ordering(self) -> None:
        plan = [AttemptConfig(model="a:x", retries=1), AttemptConfig(model="b:y", retries=0)]
        attempt = self.attempt_with(
            {"a:x": [ConnectionError("down"), ConnectionError("down")], "b:y": ["from b"]}
        )
        with self.assertLogs("llm_relay.executor", level="WARNING"):
            result = await self.executor.run(plan, attempt, context=self.context)
        self.assertEqual(result, "from b")
        self.assertEqual(self.calls, [("a:x", 0), ("a:x", 1), ("b:y", 0)])
        self.assertEqual(self.sleep.delays, [1.0])

    async def test_success_stops_the_plan(self) -> None:
        plan = [AttemptConfig(model="a:x"), AttemptConfig(model="b:y")]
        result = await self.executor.run(plan, self.attempt_with({"a:x": ["ok"], "b:y": []}), context=self.context)
        self.assertEqual(result, "ok")
        self.assertEqual(self.calls, [("a:x", 0)])

    async def test_cancelled_before_first_attempt(self) -> None:
        self.live.end_user_input(self.context.user_id, self.context.user_input_id)
        plan = [AttemptConfig(model="a:x", retries=3)]
        result = await self.executor.run(plan, self.attempt_with({"a:x": ["never"]}), context=self.context)
        self.assertEqual(result, Cancelled(user_id="user-1", user_input_id="input-1"))
        self.assertEqual(self.calls, [])

    async def test_cancelled_between_retries(self) -> None:
        async def attempt(resolved, config, attempt_no):
            self.calls.append((config.model, attempt_no))
            self.live.end_user_input(self.context.user_id, self.context.user_input_id)
            raise ConnectionError("down")

        plan = [AttemptConfig(model="a:x", retries=3)]
        result = await self.executor.run(plan, attempt, context=self.context)
        self.assertIsInstance(result, Cancelled)
        self.assertEqual(self.calls, [("a:x", 0)])

    async def test_backoff_growth_is_capped(self) -> None:
        plan = [AttemptConfig(model="a:x", retries=5)]
        attempt = self.attempt_with({"a:x": [StatusError(503)] * 5 + ["ok"]})
        result = await self.executor.run(plan, attempt, context=self.context)
        self.assertEqual(result, "ok")
        self.assertEqual(self.sleep.delays, [1.0, 2.0, 4.0, 8.0, 10.0])

    async def test_terminal_error_is_not_retried(self) -> None:
        plan = [AttemptConfig(model="a:x", retries=3), AttemptConfig(model="b:y")]
        attempt = self.attempt_with({"a:x": [StatusError(401)], "b:y": ["never"]})
        with self.assertRaises(TerminalProviderError) as ctx:
            await self.executor.run(plan, attempt, context=self.context)
        self.assertEqual(ctx.exception.status, 401)
        self.assertIsInstance(ctx.exception.__cause__, StatusError)
        self.assertEqual(self.calls, [("a:x", 0)])
        self.assertEqual(self.sleep.delays, [])

    async def test_exhaustion_raises_last_error(self) -> None:
        plan = [AttemptConfig(model="a:x", retries=1), AttemptConfig(model="b:y")]
        attempt = self.attempt_with(
            {"a:x": [ConnectionError("a down")] * 2, "b:y": [StatusError(502)]}
        )
        with self.assertLogs("llm_relay.executor", level="ERROR") as logs:
            with self.assertRaises(TransientProviderError) as ctx:
                await self.executor.run(plan, attempt, context=self.context)
        self.assertEqual(ctx.exception.model, "b:y")
        self.assertIn("All models in the attempt plan failed", logs.output[-1])

    async def test_unknown_model_is_fatal(self) -> None:
        plan = [AttemptConfig(model="nope:x", retries=2), AttemptConfig(model="a:x")]
        with self.assertRaises(ConfigurationError):
            await self.executor.run(plan, self.attempt_with({"a:x": ["ok"]}), context=self.context)
        self.assertEqual(self.calls, [])

    async def test_disabled_gate_runs_without_registration(self) -> None:
        executor = RetryExecutor(self.resolver, LiveUserInputs(enabled=False), sleep=self.sleep)
        result = await executor.run([AttemptConfig(model="a:x")], self.attempt_with({"a:x": ["ok"]}), context=make_context(user_id=None))
        self.assertEqual(result, "ok")


if __name__ == "__main__":
    unittest.main()
