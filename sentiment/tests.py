"""
Testes do app sentiment - cliente do webhook de score.
"""

from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings

from .services import ScoringWebhookError, build_webhook_body, submit_posts_for_scoring

USER = {"user_id": "42", "username": "alice", "access_token": "tok"}
POSTS = [{"id": "1", "text": "gm"}, {"id": "2", "text": "wagmi"}]


def fake_response(status_code=200, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.text = text
    return resp


class BuildWebhookBodyTest(SimpleTestCase):
    def test_formato_do_corpo(self):
        body = build_webhook_body(USER, POSTS)

        self.assertEqual(body["user"], {"id": "42", "username": "alice"})
        self.assertEqual(body["count"], 2)
        self.assertEqual(body["tweets"], POSTS)
        self.assertEqual(body["source"], "twitterapi.io")
        self.assertNotIn("access_token", str(body))


class SubmitPostsTest(SimpleTestCase):
    """Testes de submit_posts_for_scoring."""

    @patch("sentiment.services.requests.post")
    def test_resposta_json(self, mock_post):
        mock_post.return_value = fake_response(text='[{"Positive": 3, "Neutral": 1, "Negative": 0}]')

        result = submit_posts_for_scoring(USER, POSTS)

        self.assertTrue(result.parsed)
        self.assertEqual(result.payload, [{"Positive": 3, "Neutral": 1, "Negative": 0}])
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(mock_post.call_args.args[0], "http://webhook.invalid/score")
        self.assertEqual(kwargs["json"]["count"], 2)
        self.assertEqual(kwargs["timeout"], 60)

    @patch("sentiment.services.requests.post")
    def test_resposta_nao_json(self, mock_post):
        mock_post.return_value = fake_response(text="Workflow was started")

        with self.assertLogs("sentiment.services", level="INFO") as logs:
            result = submit_posts_for_scoring(USER, POSTS)

        self.assertFalse(result.parsed)
        self.assertIsNone(result.payload)
        self.assertEqual(result.raw_text, "Workflow was started")
        self.assertTrue(any("Workflow was started" in line for line in logs.output))

    @patch("sentiment.services.requests.post")
    def test_json_null_conta_como_json(self, mock_post):
        mock_post.return_value = fake_response(text="null")

        result = submit_posts_for_scoring(USER, POSTS)

        self.assertTrue(result.parsed)
        self.assertIsNone(result.payload)

    @patch("sentiment.services.requests.post")
    def test_status_de_erro_nao_levanta(self, mock_post):
        mock_post.return_value = fake_response(502, text="Bad Gateway")

        with self.assertLogs("sentiment.services", level="WARNING"):
            result = submit_posts_for_scoring(USER, POSTS)

        self.assertEqual(result.status_code, 502)
        self.assertEqual(result.raw_text, "Bad Gateway")

    @patch("sentiment.services.requests.post")
    def test_falha_de_rede_levanta(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(ScoringWebhookError):
            submit_posts_for_scoring(USER, POSTS)

    @override_settings(WEBHOOK_URL="")
    def test_sem_url_levanta(self):
        with self.assertRaises(ScoringWebhookError):
            submit_posts_for_scoring(USER, POSTS)
