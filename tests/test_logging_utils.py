import logging
import unittest
from unittest.mock import patch

from webintel import logging_utils
from webintel.logging_utils import configure_logging, log_suppressed


class TestLogSuppressed(unittest.TestCase):
    def setUp(self):
        logging_utils._SUPPRESSION_STATE.clear()
        self.logger = logging.getLogger("webintel.test.suppressed")

    def test_samples_then_throttles(self):
        with patch.object(self.logger, "log") as log, patch("webintel.logging_utils.time.time", return_value=100.0):
            for _ in range(8):
                log_suppressed(self.logger, OSError("refused"), "probe failed", sample=3, cooldown=60)
        self.assertEqual(log.call_count, 3)

    def test_emits_again_after_cooldown(self):
        with patch.object(self.logger, "log") as log:
            with patch("webintel.logging_utils.time.time", return_value=100.0):
                for _ in range(3):
                    log_suppressed(self.logger, OSError("x"), "ctx", sample=1, cooldown=60)
            with patch("webintel.logging_utils.time.time", return_value=200.0):
                count = log_suppressed(self.logger, OSError("x"), "ctx", sample=1, cooldown=60)
        self.assertEqual(log.call_count, 2)
        self.assertEqual(count, 4)


class TestConfigureLogging(unittest.TestCase):
    def test_idempotent(self):
        logger = logging.getLogger("webintel")
        before = len(logger.handlers)
        configure_logging("DEBUG")
        configure_logging("INFO")
        added = [h for h in logger.handlers if getattr(h, "_webintel", False)]
        self.assertEqual(len(added), 1)
        self.assertLessEqual(len(logger.handlers), before + 1)
        self.assertEqual(logger.level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
