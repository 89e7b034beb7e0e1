"""
Testes do RequestTimingMiddleware.
"""

from unittest.mock import patch

from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase, override_settings

from .middleware import RequestTimingMiddleware


class RequestTimingMiddlewareTest(SimpleTestCase):
    def setUp(self):
        self.request = RequestFactory().get("/card.png")

    @override_settings(REQUEST_TIMING_THRESHOLD_MS=500)
    @patch("compass_portal.middleware.time.perf_counter")
    def test_loga_request_lenta(self, mock_clock):
        mock_clock.side_effect = [10.0, 10.9]
        middleware = RequestTimingMiddleware(lambda request: HttpResponse("ok"))

        with self.assertLogs("compass_portal.middleware", level="WARNING") as logs:
            response = middleware(self.request)

        self.assertEqual(response.status_code, 200)
        self.assertIn("path=/card.png", logs.output[0])
        self.assertIn("elapsed_ms=900", logs.output[0])

    @override_settings(REQUEST_TIMING_THRESHOLD_MS=500)
    @patch("compass_portal.middleware.time.perf_counter")
    def test_request_rapida_nao_loga(self, mock_clock):
        mock_clock.side_effect = [10.0, 10.1]
        middleware = RequestTimingMiddleware(lambda request: HttpResponse("ok"))

        with patch("compass_portal.middleware.logger") as mock_logger:
            middleware(self.request)

        mock_logger.warning.assert_not_called()
