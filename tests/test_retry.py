import unittest
import urllib.error
from unittest.mock import patch

import requests
from urllib3.exceptions import ProtocolError

from webintel.errors import NetworkError, RateLimitError
from webintel.retry import RetryPolicy, _sleep_seconds, is_connection_reset, is_transient_error, retry_call

NO_WAIT = RetryPolicy(retries=3, base_delay_seconds=0.0, max_delay_seconds=0.0)


class TestRetry(unittest.TestCase):
    def test_retries_then_succeeds(self):
        state = {"n": 0}

        def fn():
            state["n"] += 1
            if state["n"] < 3:
                raise NetworkError("timeout")
            return 42

        out = retry_call(fn, policy=NO_WAIT)
        self.assertEqual(out, 42)
        self.assertEqual(state["n"], 3)

    def test_does_not_retry_when_predicate_false(self):
        state = {"n": 0}

        def fn():
            state["n"] += 1
            raise RuntimeError("nope")

        with self.assertRaises(RuntimeError):
            retry_call(fn, policy=NO_WAIT, should_retry=lambda e: False)

        self.assertEqual(state["n"], 1)

    def test_gives_up_after_budget(self):
        state = {"n": 0}

        def fn():
            state["n"] += 1
            raise NetworkError("reset")

        with self.assertRaises(NetworkError):
            retry_call(fn, policy=RetryPolicy(retries=2, base_delay_seconds=0.0))
        self.assertEqual(state["n"], 3)

    def test_rate_limit_is_not_retried(self):
        state = {"n": 0}

        def fn():
            state["n"] += 1
            raise RateLimitError("429")

        with self.assertRaises(RateLimitError):
            retry_call(fn, policy=NO_WAIT)
        self.assertEqual(state["n"], 1)

    def test_linear_backoff_capped(self):
        policy = RetryPolicy(retries=5, base_delay_seconds=0.5, max_delay_seconds=1.2)
        self.assertEqual(_sleep_seconds(1, policy), 0.5)
        self.assertEqual(_sleep_seconds(2, policy), 1.0)
        self.assertEqual(_sleep_seconds(3, policy), 1.2)

    def test_sleeps_between_attempts(self):
        calls = iter([NetworkError("x"), NetworkError("x"), "ok"])

        def fn():
            v = next(calls)
            if isinstance(v, Exception):
                raise v
            return v

        with patch("webintel.retry.time.sleep") as sleep:
            out = retry_call(fn, policy=RetryPolicy(retries=2, base_delay_seconds=0.25))
        self.assertEqual(out, "ok")
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.25, 0.5])


class TestTransientClassification(unittest.TestCase):
    def test_network_error_flag(self):
        self.assertTrue(is_transient_error(NetworkError("x", transient=True)))
        self.assertFalse(is_transient_error(NetworkError("x", transient=False)))

    def test_urllib_http_errors(self):
        e503 = urllib.error.HTTPError("http://x", 503, "Service Unavailable", None, None)
        e404 = urllib.error.HTTPError("http://x", 404, "Not Found", None, None)
        e429 = urllib.error.HTTPError("http://x", 429, "Too Many Requests", None, None)
        self.assertTrue(is_transient_error(e503))
        self.assertFalse(is_transient_error(e404))
        self.assertFalse(is_transient_error(e429))

    def test_urllib_url_error_reasons(self):
        self.assertTrue(is_transient_error(urllib.error.URLError(TimeoutError("timed out"))))
        self.assertTrue(is_transient_error(urllib.error.URLError(ConnectionResetError())))
        self.assertFalse(is_transient_error(urllib.error.URLError("bad scheme")))

    def test_requests_errors(self):
        self.assertTrue(is_transient_error(requests.Timeout()))
        self.assertFalse(is_transient_error(requests.ConnectionError()))

        resp = requests.Response()
        resp.status_code = 502
        self.assertTrue(is_transient_error(requests.HTTPError(response=resp)))
        resp.status_code = 400
        self.assertFalse(is_transient_error(requests.HTTPError(response=resp)))

    def test_requests_connection_errors_by_cause(self):
        reset = requests.ConnectionError(
            ProtocolError("Connection aborted.", ConnectionResetError(104, "Connection reset by peer"))
        )
        self.assertTrue(is_connection_reset(reset))
        self.assertTrue(is_transient_error(reset))

        refused = requests.ConnectionError(ConnectionRefusedError(111, "Connection refused"))
        self.assertFalse(is_transient_error(refused))
        unresolved = requests.ConnectionError("Failed to resolve 'xranks.com'")
        self.assertFalse(is_transient_error(unresolved))

    def test_refused_connection_is_not_retried(self):
        state = {"n": 0}

        def fn():
            state["n"] += 1
            raise urllib.error.URLError(ConnectionRefusedError(111, "Connection refused"))

        with self.assertRaises(urllib.error.URLError):
            retry_call(fn, policy=NO_WAIT)
        self.assertEqual(state["n"], 1)

    def test_other_errors(self):
        self.assertFalse(is_transient_error(ValueError("bad")))
        self.assertFalse(is_transient_error(ConnectionRefusedError()))
        self.assertFalse(is_transient_error(ConnectionAbortedError()))
        self.assertTrue(is_transient_error(ConnectionResetError()))


if __name__ == "__main__":
    unittest.main()
