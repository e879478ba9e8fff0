"""Tests for overload fallback decisions."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from parley.config import DEFAULT_FLASH_MODEL
from parley.content_generator import AuthType, OverloadSimulation
from parley.core.fallback import ModelFallbackManager, call_with_fallback
from parley.errors import ProviderError, RateLimitError
from tests.fakes import make_config


class ModelFallbackManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.handler = MagicMock(return_value=True)
        self.config = make_config(flash_fallback_handler=self.handler)
        self.simulation = OverloadSimulation(enabled=True)
        self.manager = ModelFallbackManager(self.config, simulation=self.simulation)

    def test_only_oauth_sessions_fall_back(self) -> None:
        for auth_type in (AuthType.USE_GEMINI, AuthType.USE_VERTEX_AI, None):
            self.assertIsNone(self.manager.handle_overload(auth_type))
        self.handler.assert_not_called()

    def test_approved_switch_updates_model(self) -> None:
        result = self.manager.handle_overload(AuthType.LOGIN_WITH_GOOGLE)
        self.assertEqual(result, DEFAULT_FLASH_MODEL)
        self.assertEqual(self.config.get_model(), DEFAULT_FLASH_MODEL)
        self.handler.assert_called_once_with("gemini-2.5-pro", DEFAULT_FLASH_MODEL)
        self.assertTrue(self.simulation.fallback_occurred)

    def test_plain_string_auth_type_accepted(self) -> None:
        self.assertEqual(self.manager.handle_overload("oauth-personal"), DEFAULT_FLASH_MODEL)

    def test_already_on_fallback_model(self) -> None:
        self.config.set_model(DEFAULT_FLASH_MODEL)
        self.assertIsNone(self.manager.handle_overload(AuthType.LOGIN_WITH_GOOGLE))
        self.handler.assert_not_called()

    def test_declined_switch_keeps_model(self) -> None:
        self.handler.return_value = False
        self.assertIsNone(self.manager.handle_overload(AuthType.LOGIN_WITH_GOOGLE))
        self.assertEqual(self.config.get_model(), "gemini-2.5-pro")
        self.assertFalse(self.config.is_model_switched_during_session())

    def test_handler_failure_is_swallowed(self) -> None:
        self.handler.side_effect = RuntimeError("dialog closed")
        with self.assertLogs("parley.fallback", level="WARNING"):
            self.assertIsNone(self.manager.handle_overload(AuthType.LOGIN_WITH_GOOGLE))
        self.assertEqual(self.config.get_model(), "gemini-2.5-pro")

    def test_missing_handler(self) -> None:
        self.config.flash_fallback_handler = None
        self.assertIsNone(self.manager.handle_overload(AuthType.LOGIN_WITH_GOOGLE))


class CallWithFallbackTests(unittest.TestCase):
    def test_success_needs_no_fallback(self) -> None:
        on_overload = MagicMock()
        self.assertEqual(call_with_fallback(lambda model: model.upper(), "pro", on_overload), "PRO")
        on_overload.assert_not_called()

    def test_retries_once_with_fallback(self) -> None:
        calls = []

        def request(model):
            calls.append(model)
            if model == "pro":
                raise RateLimitError("busy")
            return "ok"

        self.assertEqual(call_with_fallback(request, "pro", lambda: "flash"), "ok")
        self.assertEqual(calls, ["pro", "flash"])

    def test_never_repeats_same_model(self) -> None:
        request = MagicMock(side_effect=RateLimitError("busy"))
        with self.assertRaises(RateLimitError):
            call_with_fallback(request, "flash", lambda: "flash")
        request.assert_called_once_with("flash")

    def test_fallback_failure_propagates(self) -> None:
        request = MagicMock(side_effect=RateLimitError("busy"))
        with self.assertRaises(RateLimitError):
            call_with_fallback(request, "pro", lambda: "flash")
        self.assertEqual(request.call_count, 2)

    def test_other_provider_errors_pass_through(self) -> None:
        on_overload = MagicMock()
        request = MagicMock(side_effect=ProviderError("bad request", status_code=400))
        with self.assertRaises(ProviderError):
            call_with_fallback(request, "pro", on_overload)
        on_overload.assert_not_called()


if __name__ == "__main__":
    unittest.main()
