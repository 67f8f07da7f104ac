"""Unit tests for the live user input registry."""
from __future__ import annotations

import threading
import unittest

from llm_relay.live_inputs import LiveUserInputs


class TestLiveUserInputs(unittest.TestCase):
    def setUp(self) -> None:
        self.live = LiveUserInputs()

    def test_started_input_is_live_until_ended(self) -> None:
        self.live.start_user_input("u1", "root-1")
        self.assertTrue(self.live.check_live_user_input("u1", "root-1"))
        self.live.end_user_input("u1", "root-1")
        self.assertFalse(self.live.check_live_user_input("u1", "root-1"))
        self.assertIsNone(self.live.get_live_user_input_ids("u1"))

    def test_derived_ids_inherit_liveness_by_prefix(self) -> None:
        self.live.start_user_input("u1", "root-1")
        self.assertTrue(self.live.check_live_user_input("u1", "root-1-step-2"))
        self.assertFalse(self.live.check_live_user_input("u1", "other-root"))

    def test_async_branch_outlives_parent(self) -> None:
        self.live.start_user_input("u1", "root-1")
        self.live.end_user_input("u1", "root-1")
        self.assertTrue(self.live.check_live_user_input("u1", "root-1-async-agent"))
        self.assertFalse(self.live.check_live_user_input("u1", "root-1-agent"))

    def test_missing_user_is_never_live(self) -> None:
        self.assertFalse(self.live.check_live_user_input(None, "root-1-async-x"))

    def test_disabled_check_treats_everything_as_live(self) -> None:
        self.live.disable_check()
        self.assertFalse(self.live.enabled)
        self.assertTrue(self.live.check_live_user_input(None, "anything"))

    def test_ending_unknown_input_is_a_logged_noop(self) -> None:
        self.live.start_user_input("u1", "root-1")
        with self.assertLogs("llm_relay.live_inputs", level="DEBUG") as logs:
            self.live.end_user_input("u1", "root-2")
            self.live.end_user_input("u2", "root-1")
        self.assertEqual(len(logs.records), 2)
        self.assertEqual(self.live.get_live_user_input_ids("u1"), ["root-1"])

    def test_multiple_inputs_per_user(self) -> None:
        self.live.start_user_input("u1", "a")
        self.live.start_user_input("u1", "b")
        self.live.end_user_input("u1", "a")
        self.assertEqual(self.live.get_live_user_input_ids("u1"), ["b"])

    def test_concurrent_start_and_end(self) -> None:
        def worker(n: int) -> None:
            for i in range(200):
                self.live.start_user_input("u1", f"w{n}-{i}")
                self.live.end_user_input("u1", f"w{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertIsNone(self.live.get_live_user_input_ids("u1"))


if __name__ == "__main__":
    unittest.main()
