import os
import unittest
from dataclasses import replace
from unittest.mock import patch

import fakes  # noqa: F401

from candidate_report.core.config import load_settings, validate_settings


class SettingsTests(unittest.TestCase):
    def _settings(self, **overrides):
        return replace(load_settings(), llm_api_key="sk-live-key", **overrides)

    def test_env_values_are_read(self):
        env = {
            "LLM_API_KEY": "",
            "OPENAI_API_KEY": "sk-fallback",
            "LLM_MODEL": " gpt-4o-mini ",
            "LLM_TOP_K": "40",
            "REPORT_MAX_ATTEMPTS": "not-a-number",
            "CORS_ALLOWED_ORIGINS": "https://a.example, ,https://b.example",
        }
        with patch.dict(os.environ, env):
            cfg = load_settings()
        self.assertEqual(cfg.llm_api_key, "sk-fallback")
        self.assertEqual(cfg.llm_model, "gpt-4o-mini")
        self.assertEqual(cfg.llm_top_k, 40)
        self.assertEqual(cfg.report_max_attempts, 3)
        self.assertEqual(cfg.cors_allowed_origins, ("https://a.example", "https://b.example"))

    def test_valid_settings_pass(self):
        validate_settings(self._settings())

    def test_missing_or_placeholder_key_fails_fast(self):
        for key in (None, "", "your_openai_key_here", "changeme"):
            with self.subTest(key=key):
                with self.assertRaises(RuntimeError):
                    validate_settings(replace(self._settings(), llm_api_key=key))

    def test_out_of_range_parameters_fail_fast(self):
        for overrides in (
            {"llm_temperature": 3.0},
            {"llm_top_p": 0.0},
            {"llm_top_k": 0},
            {"llm_max_output_tokens": 0},
            {"report_max_attempts": 0},
            {"report_timeout_s": 0.0},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(RuntimeError):
                    validate_settings(self._settings(**overrides))


if __name__ == "__main__":
    unittest.main()
