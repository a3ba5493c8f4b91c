"""
Tests for the CLI module.
"""

import csv
import json
import os
import tempfile
import unittest
from io import StringIO
from unittest.mock import patch

from webintel.cli import _settings_with, main, print_domain_result
from webintel.config import Settings
from webintel.detectors.base import Detector
from webintel.models import DetectionResult
from webintel.pipeline import RowScheduler


class FixedDetector(Detector):
    source = "fixed"

    def __init__(self, kind, value):
        super().__init__()
        self.name = kind
        self.kind = kind
        self.value = value

    def detect(self, hostname):
        return DetectionResult(kind=self.kind, status="success", value=self.value, source=self.source)


def _scheduler(*args, **kwargs):
    return RowScheduler(
        {
            "cdn": FixedDetector("cdn", "Akamai"),
            "defense": FixedDetector("defense", "Akamai WAF, Akamai Bot Manager"),
            "traffic": FixedDetector("traffic", "No data available"),
        }
    )


class TestPrintDomainResult(unittest.TestCase):
    def test_output(self):
        with patch("sys.stdout", new=StringIO()) as mock_stdout:
            print_domain_result({"domain": "example.com", "cdn": "Fastly", "waf": "Fastly WAF"})
            output = mock_stdout.getvalue()

        self.assertIn("example.com", output)
        self.assertIn("CDN:      Fastly", output)
        self.assertIn("Security: Fastly WAF", output)


class TestMain(unittest.TestCase):
    def setUp(self):
        for target, kwargs in (
            ("webintel.cli.get_settings", {"return_value": Settings()}),
            ("webintel.cli.RowScheduler.from_settings", {"side_effect": _scheduler}),
            ("webintel.cli.configure_logging", {}),
        ):
            p = patch(target, **kwargs)
            p.start()
            self.addCleanup(p.stop)

    def _run(self, argv):
        with patch("sys.stdout", new=StringIO()) as out, patch("sys.stderr", new=StringIO()) as err:
            with self.assertRaises(SystemExit) as ctx:
                main(argv)
        return ctx.exception.code, out.getvalue(), err.getvalue()

    def test_analyze_writes_output_file(self):
        with tempfile.TemporaryDirectory() as d:
            src = os.path.join(d, "sites.csv")
            dst = os.path.join(d, "out.csv")
            with open(src, "w", newline="") as f:
                f.write("Company,Website\nAcme,acme.com\n")

            code, _, err = self._run(["analyze", src, "-o", dst])

            self.assertEqual(code, 0)
            self.assertIn("1 rows written", err)
            with open(dst, newline="") as f:
                rows = list(csv.DictReader(f))
        self.assertEqual(rows[0]["CDN"], "Akamai")
        self.assertEqual(rows[0]["Security"], "Akamai WAF, Akamai Bot Manager")

    def test_analyze_json(self):
        with tempfile.TemporaryDirectory() as d:
            src = os.path.join(d, "sites.csv")
            with open(src, "w", newline="") as f:
                f.write("Website\nacme.com\n\n")

            code, out, _ = self._run(["analyze", src, "--json"])

        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(payload, [{"Website": "acme.com", "CDN": "Akamai",
                                    "Security": "Akamai WAF, Akamai Bot Manager",
                                    "Traffic": "No data available"}])

    def test_analyze_input_error_exit_code(self):
        with tempfile.TemporaryDirectory() as d:
            src = os.path.join(d, "sites.csv")
            with open(src, "w", newline="") as f:
                f.write("Company\nAcme\n")

            code, _, err = self._run(["analyze", src])

        self.assertEqual(code, 1)
        self.assertIn("No website URL found in any column.", err)

    def test_analyze_missing_file(self):
        code, _, err = self._run(["analyze", "/nonexistent/sites.csv"])
        self.assertEqual(code, 1)
        self.assertIn("Error", err)

    def test_domain_json(self):
        with patch("webintel.pipeline.resolve_ipv4", return_value=["1.1.1.1"]):
            code, out, _ = self._run(["domain", "www.example.com", "--json"])
        self.assertEqual(code, 0)
        self.assertEqual(
            json.loads(out),
            {"domain": "example.com", "cdn": "Akamai", "waf": "Akamai WAF, Akamai Bot Manager"},
        )

    def test_domain_invalid(self):
        code, _, err = self._run(["domain", "bad domain"])
        self.assertEqual(code, 1)
        self.assertIn("Invalid domain", err)


class TestSettingsOverrides(unittest.TestCase):
    def test_workers_and_timeout(self):
        s = _settings_with(Settings(), 8, 10.0)
        self.assertEqual(s.max_concurrency, 8)
        self.assertEqual(s.detector_timeout, 10.0)
        self.assertEqual(_settings_with(Settings(), None, None), Settings())


if __name__ == "__main__":
    unittest.main()
