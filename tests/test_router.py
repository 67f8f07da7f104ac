"""HTTP tests for the LLM router."""
from __future__ import annotations

import unittest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from llm_relay import LLMRelay, LiveUserInputs, RelayConfig, get_default_relay
from llm_relay.models import TextDelta
from routers import llm_router
from routers.llm import PromptRequest, stream as stream_route

from fakes import RecordingSink, RecordingSleep, ScriptedProvider, make_resolver


def body(**overrides) -> dict:
    data = {
        "user_id": "u1",
        "user_input_id": "in-1",
        "client_session_id": "s1",
        "fingerprint_id": "fp1",
        "messages": [{"role": "user", "content": "hi"}],
        "model": "x:m",
    }
    data.update(overrides)
    return data


class TestLLMRouter(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = ScriptedProvider([TextDelta("Hel"), TextDelta("lo")])
        self.sink = RecordingSink()
        self.live = LiveUserInputs()
        self.relay = LLMRelay(
            RelayConfig(),
            resolver=make_resolver(x=self.provider),
            live_inputs=self.live,
            sink=self.sink,
            sleep=RecordingSleep(),
        )
        app = FastAPI()
        app.include_router(llm_router)
        app.dependency_overrides[get_default_relay] = lambda: self.relay
        self.client = TestClient(app)

    def test_complete(self) -> None:
        response = self.client.post("/llm/complete", json=body())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"text": "Hello", "model": "x:m", "cancelled": False})
        self.assertEqual(len(self.sink.records), 1)
        self.assertIsNone(self.live.get_live_user_input_ids("u1"))

    def test_stream(self) -> None:
        response = self.client.post("/llm/stream", json=body())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "Hello")
        self.assertIsNone(self.live.get_live_user_input_ids("u1"))

    def test_fallback_list_in_body(self) -> None:
        response = self.client.post(
            "/llm/complete", json=body(model=[{"model": "x:m", "retries": 1}])
        )
        self.assertEqual(response.json()["text"], "Hello")

    def test_unknown_model_is_bad_request(self) -> None:
        for route in ("/llm/complete", "/llm/stream"):
            response = self.client.post(route, json=body(model="nope"))
            self.assertEqual(response.status_code, 400, route)
        self.assertEqual(self.provider.calls, [])

    def test_provider_failure_is_bad_gateway(self) -> None:
        self.provider.script = [ValueError("invalid request")]
        response = self.client.post("/llm/complete", json=body())
        self.assertEqual(response.status_code, 502)
        self.assertIn("provider=x", response.json()["detail"])

    def test_cancel(self) -> None:
        self.live.start_user_input("u1", "in-1")
        self.live.start_user_input("u1", "in-2")
        response = self.client.post("/inputs/cancel", json={"user_id": "u1", "user_input_id": "in-1"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["live_user_input_ids"], ["in-2"])
        self.assertFalse(self.live.check_live_user_input("u1", "in-1"))


class TestStreamRouteLifecycle(unittest.IsolatedAsyncioTestCase):
    async def test_input_is_live_only_while_body_is_sent(self) -> None:
        live = LiveUserInputs()
        relay = LLMRelay(
            RelayConfig(),
            resolver=make_resolver(x=ScriptedProvider([TextDelta("Hel"), TextDelta("lo")])),
            live_inputs=live,
            sink=RecordingSink(),
            sleep=RecordingSleep(),
        )
        response = await stream_route(PromptRequest(**body()), relay)
        # Nothing is registered until the body is read
        self.assertIsNone(live.get_live_user_input_ids("u1"))

        seen = []
        async for piece in response.body_iterator:
            seen.append((piece, live.check_live_user_input("u1", "in-1")))
        self.assertEqual(seen, [("Hel", True), ("lo", True)])
        self.assertIsNone(live.get_live_user_input_ids("u1"))


if __name__ == "__main__":
    unittest.main()
