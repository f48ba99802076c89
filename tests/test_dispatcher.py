"""Unit tests for CallbackDispatcher."""

import threading
import unittest

from rayneo_sdk.device.dispatcher import CallbackDispatcher
from tests.fakes import wait_until


class TestCallbackDispatcher(unittest.TestCase):

    def setUp(self):
        self.dispatcher = CallbackDispatcher()
        self.addCleanup(self.dispatcher.stop)

    def test_process_pending_runs_in_order(self):
        seen = []
        for i in range(5):
            self.dispatcher.post(seen.append, i)

        self.assertEqual(self.dispatcher.pending, 5)
        self.assertEqual(self.dispatcher.process_pending(), 5)
        self.assertEqual(seen, [0, 1, 2, 3, 4])
        self.assertEqual(self.dispatcher.process_pending(), 0)

    def test_runs_on_draining_thread(self):
        threads = []
        poster = threading.Thread(
            target=lambda: self.dispatcher.post(lambda: threads.append(threading.current_thread()))
        )
        poster.start()
        poster.join()

        self.dispatcher.process_pending()
        self.assertEqual(threads, [threading.current_thread()])

    def test_multiple_args(self):
        seen = []
        self.dispatcher.post(lambda a, b: seen.append((a, b)), 1, "two")
        self.dispatcher.process_pending()

        self.assertEqual(seen, [(1, "two")])

    def test_callback_error_does_not_stop_delivery(self):
        seen = []

        def broken():
            raise ValueError("boom")

        self.dispatcher.post(broken)
        self.dispatcher.post(seen.append, "after")

        with self.assertLogs("rayneo_sdk.device.dispatcher", level="ERROR"):
            self.assertEqual(self.dispatcher.process_pending(), 2)
        self.assertEqual(seen, ["after"])

    def test_background_thread_delivers(self):
        seen = []
        self.dispatcher.start()
        self.assertTrue(self.dispatcher.is_running)

        self.dispatcher.post(seen.append, "hello")

        self.assertTrue(wait_until(lambda: seen == ["hello"], timeout=2.0))

    def test_stop_drains_queued_callbacks(self):
        seen = []
        gate = threading.Event()
        self.dispatcher.start()
        self.dispatcher.post(gate.wait, 1.0)
        for i in range(3):
            self.dispatcher.post(seen.append, i)
        gate.set()

        self.dispatcher.stop()

        self.assertEqual(seen, [0, 1, 2])
        self.assertFalse(self.dispatcher.is_running)

    def test_stop_from_callback(self):
        errors = []
        seen = []
        delivery = threading.Event()

        def stop_from_inside():
            try:
                self.dispatcher.stop()
            except Exception as e:
                errors.append(e)
            delivery.set()

        self.dispatcher.post(stop_from_inside)
        self.dispatcher.post(seen.append, "queued before stop")
        self.dispatcher.start()
        thread = self.dispatcher._thread

        self.assertTrue(delivery.wait(2.0))
        thread.join(2.0)

        self.assertEqual(errors, [])
        self.assertFalse(self.dispatcher.is_running)
        self.assertFalse(thread.is_alive())
        self.assertEqual(seen, ["queued before stop"])

    def test_start_stop_idempotent(self):
        self.dispatcher.start()
        self.dispatcher.start()
        self.dispatcher.stop()
        self.dispatcher.stop()

        self.assertFalse(self.dispatcher.is_running)


if __name__ == '__main__':
    unittest.main()
