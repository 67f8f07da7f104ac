"""End-to-end tests for the relay facade with scripted providers."""
from __future__ import annotations

import unittest

from llm_relay import LLMRelay, RelayConfig
from llm_relay.core import STOP_MARKER, PromptStream, get_default_relay, set_default_relay
from llm_relay.cost import LoggingCostSink, calc_cost
from llm_relay.errors import ConfigurationError, StreamError
from llm_relay.models import (
    AttemptConfig,
    Cancelled,
    Completed,
    ErrorFrame,
    Message,
    ReasoningDelta,
    TextDelta,
    UsageSummary,
)
from llm_relay.resolver import ProviderResolver

from fakes import (
    FakeClock,
    RecordingSink,
    RecordingSleep,
    ScriptedProvider,
    live_inputs_for,
    make_context,
    make_resolver,
)

HI = [Message(role="user", content="hi")]


class RelayTestCase(unittest.IsolatedAsyncioTestCase):
    def make_relay(self, config: RelayConfig | None = None, **providers: ScriptedProvider) -> LLMRelay:
        self.context = make_context()
        self.live = live_inputs_for(self.context)
        self.sink = RecordingSink()
        self.sleep = RecordingSleep()
        self.clock = FakeClock()
        return LLMRelay(
            config or RelayConfig(),
            resolver=make_resolver(**providers),
            live_inputs=self.live,
            sink=self.sink,
            sleep=self.sleep,
            clock=self.clock,
        )


class TestPrompt(RelayTestCase):
    async def test_retry_after_connection_error(self) -> None:
        def on_open(request):
            # The failed attempt takes 5s; only the second attempt's time is billed.
            self.clock.advance(5 if len(provider.calls) == 1 else 0.25)

        provider = ScriptedProvider(ConnectionError("reset"), [TextDelta("hello")], on_open=on_open)
        relay = self.make_relay(x=provider)

        with self.assertLogs("llm_relay", level="WARNING") as logs:
            outcome = await relay.prompt(HI, context=self.context, model=[{"model": "x:m", "retries": 1}])

        self.assertEqual(outcome, Completed(text="hello", model="x:m", usage=outcome.usage))
        self.assertEqual(len(provider.calls), 2)
        warnings = [r for r in logs.records if r.levelname == "WARNING"]
        self.assertEqual(len(warnings), 1)
        self.assertEqual(self.sleep.delays, [1.0])
        self.assertEqual(len(self.sink.records), 1)
        self.assertEqual(self.sink.records[0].latency_ms, 250)

    async def test_cancelled_before_any_call(self) -> None:
        provider = ScriptedProvider([TextDelta("never")])
        relay = self.make_relay(x=provider)
        self.live.end_user_input(self.context.user_id, self.context.user_input_id)
        outcome = await relay.prompt(HI, context=self.context, model="x:m")
        self.assertIsInstance(outcome, Cancelled)
        self.assertEqual(provider.calls, [])
        self.assertEqual(self.sink.records, [])

    async def test_prompt_excludes_reasoning(self) -> None:
        relay = self.make_relay(x=ScriptedProvider([ReasoningDelta("think"), TextDelta("answer")]))
        outcome = await relay.prompt(HI, context=self.context, model="x:m")
        self.assertEqual(outcome.text, "answer")

    async def test_error_frame_mid_stream_is_retried_when_not_streaming(self) -> None:
        provider = ScriptedProvider(
            [TextDelta("part"), ErrorFrame({"code": 502})],
            [TextDelta("whole")],
        )
        relay = self.make_relay(x=provider)
        with self.assertLogs("llm_relay", level="WARNING"):
            outcome = await relay.prompt(HI, context=self.context, model=AttemptConfig(model="x:m", retries=1))
        self.assertEqual(outcome.text, "whole")
        self.assertEqual(len(self.sink.records), 1)

    async def test_default_model_from_config(self) -> None:
        relay = self.make_relay(RelayConfig(default_model="x:default"), x=ScriptedProvider())
        outcome = await relay.prompt(HI, context=self.context)
        self.assertEqual(outcome.model, "x:default")
        self.assertEqual(relay.resolver.resolve("x:default").adapter.calls[0].model, "default")


class TestPromptStream(RelayTestCase):
    async def test_fragments_and_outcome(self) -> None:
        relay = self.make_relay(
            x=ScriptedProvider([ReasoningDelta("plan"), TextDelta("Hel"), TextDelta("lo")])
        )
        stream = relay.prompt_stream(HI, context=self.context, model="x:m")
        self.assertIsNone(stream.outcome)
        pieces = [piece async for piece in stream]
        self.assertEqual(
            "".join(pieces),
            '<think_deeply>\n{"thought": "plan"}\n</think_deeply>\n\nHello',
        )
        self.assertIsInstance(stream.outcome, Completed)
        self.assertEqual(stream.outcome.text, "Hello")
        self.assertEqual(len(self.sink.records), 1)

    async def test_stream_is_not_restartable(self) -> None:
        relay = self.make_relay(x=ScriptedProvider())
        stream = relay.prompt_stream(HI, context=self.context, model="x:m")
        await stream.collect()
        with self.assertRaises(RuntimeError):
            async for _ in stream:
                pass

    async def test_cancelled_stream_yields_nothing(self) -> None:
        provider = ScriptedProvider()
        relay = self.make_relay(x=provider)
        self.live.end_user_input(self.context.user_id, self.context.user_input_id)
        stream = relay.prompt_stream(HI, context=self.context, model="x:m")
        pieces = [piece async for piece in stream]
        self.assertEqual(pieces, [])
        self.assertIsInstance(stream.outcome, Cancelled)
        self.assertEqual(provider.calls, [])

    async def test_failure_before_first_event_falls_back(self) -> None:
        a = ScriptedProvider(ConnectionError("down"))
        b = ScriptedProvider([TextDelta("from b")])
        relay = self.make_relay(a=a, b=b)
        stream = relay.prompt_stream(HI, context=self.context, model=["a:m", "b:m"])
        with self.assertLogs("llm_relay", level="WARNING"):
            outcome = await stream.collect()
        self.assertEqual(outcome.text, "from b")
        self.assertEqual(outcome.model, "b:m")
        self.assertEqual((len(a.calls), len(b.calls)), (1, 1))

    async def test_failure_after_content_is_not_retried(self) -> None:
        provider = ScriptedProvider([TextDelta("part"), ErrorFrame("boom")], [TextDelta("never")])
        relay = self.make_relay(x=provider)
        stream = relay.prompt_stream(HI, context=self.context, model={"model": "x:m", "retries": 2})
        pieces = []
        with self.assertLogs("llm_relay", level="ERROR"):
            with self.assertRaises(StreamError):
                async for piece in stream:
                    pieces.append(piece)
        self.assertEqual(pieces, ["part"])
        self.assertEqual(len(provider.calls), 1)
        self.assertIsNone(stream.outcome)

    async def test_invalid_plan_raises_immediately(self) -> None:
        relay = self.make_relay(x=ScriptedProvider())
        with self.assertRaises(ConfigurationError):
            relay.prompt_stream(HI, context=self.context, model=[])

    async def test_prompt_with_continuation_stops_at_marker(self) -> None:
        provider = ScriptedProvider([TextDelta("one "), TextDelta(f"two {STOP_MARKER}"), TextDelta(" three")])
        relay = self.make_relay(x=provider)
        outcome = await relay.prompt_with_continuation(HI, context=self.context, model="x:m")
        self.assertEqual(outcome.text, f"one two {STOP_MARKER}")
        self.assertEqual(outcome.model, "x:m")
        self.assertEqual(len(self.sink.records), 1)
        self.assertTrue(self.sink.records[0].partial)
        self.assertEqual(self.sink.records[0].response, f"one two {STOP_MARKER}")

    async def test_prompt_with_continuation_reports_the_model_that_answered(self) -> None:
        a = ScriptedProvider(ConnectionError("down"))
        b = ScriptedProvider([TextDelta(f"answer {STOP_MARKER}"), TextDelta(" trailing")])
        relay = self.make_relay(a=a, b=b)
        with self.assertLogs("llm_relay", level="WARNING"):
            outcome = await relay.prompt_with_continuation(HI, context=self.context, model=["a:x", "b:y"])
        self.assertEqual(outcome, Completed(text=f"answer {STOP_MARKER}", model="b:y", usage=outcome.usage))
        self.assertEqual(len(self.sink.records), 1)
        record = self.sink.records[0]
        self.assertEqual((record.model, record.provider_model), ("b:y", "b:y"))
        self.assertTrue(record.partial)

    async def test_prompt_with_continuation_without_marker(self) -> None:
        relay = self.make_relay(x=ScriptedProvider([TextDelta("all of it")]))
        outcome = await relay.prompt_with_continuation(HI, context=self.context, model="x:m")
        self.assertEqual(outcome.text, "all of it")
        self.assertEqual(len(self.sink.records), 1)
        self.assertFalse(self.sink.records[0].partial)


class TestPromptStreamContract(unittest.IsolatedAsyncioTestCase):
    async def test_collect_without_outcome_raises(self) -> None:
        async def source(stream):
            yield "x"

        with self.assertRaises(RuntimeError):
            await PromptStream(source).collect()

    def test_stop_marker(self) -> None:
        self.assertEqual(STOP_MARKER, "[END]")


class TestCostRecords(unittest.IsolatedAsyncioTestCase):
    def make_relay(self, sink) -> LLMRelay:
        self.context = make_context()
        self.provider = ScriptedProvider(
            [TextDelta("hi")],
            usage=UsageSummary(input_tokens=1_000_000, output_tokens=1_000_000),
        )
        resolver = ProviderResolver(RelayConfig(anthropic_api_key="test-key"))
        resolver.register("anthropic", lambda cfg, scope: self.provider)
        return LLMRelay(
            RelayConfig(),
            resolver=resolver,
            live_inputs=live_inputs_for(self.context),
            sink=sink,
            sleep=RecordingSleep(),
        )

    async def test_short_name_is_priced_by_native_model(self) -> None:
        sink = RecordingSink()
        relay = self.make_relay(sink)
        outcome = await relay.prompt(HI, context=self.context, model="sonnet")
        self.assertEqual(outcome.model, "sonnet")
        record = sink.records[0]
        self.assertEqual(record.model, "sonnet")
        self.assertEqual(record.provider_model, "anthropic:claude-sonnet-4-20250514")
        self.assertAlmostEqual(calc_cost(record.provider_model, record.usage), 18.0)

    async def test_logging_sink_prices_short_names(self) -> None:
        relay = self.make_relay(LoggingCostSink())
        with self.assertLogs("llm_relay.cost", level="INFO") as logs:
            await relay.prompt(HI, context=self.context, model="sonnet")
        self.assertEqual(logs.records[0].cost_usd, 18.0)


class TestDefaultRelay(unittest.TestCase):
    def tearDown(self) -> None:
        set_default_relay(None)

    def test_set_and_get(self) -> None:
        relay = LLMRelay(RelayConfig())
        set_default_relay(relay)
        self.assertIs(get_default_relay(), relay)

    def test_built_lazily(self) -> None:
        set_default_relay(None)
        relay = get_default_relay()
        self.assertIs(get_default_relay(), relay)


if __name__ == "__main__":
    unittest.main()
