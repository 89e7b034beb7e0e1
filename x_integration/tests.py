"""
Testes do app x_integration - OAuth2 PKCE, twitterapi.io e views.
"""

import base64
import hashlib
from unittest.mock import MagicMock, patch

import requests
from django.conf import settings
from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from .services import (
    SESSION_STATE_KEY,
    SESSION_USER_KEY,
    SESSION_VERIFIER_KEY,
    XIntegrationError,
    XRateLimitError,
    build_oauth_url,
    desired_post_count,
    exchange_code_for_token,
    fetch_profile_info,
    fetch_recent_posts,
    fetch_x_user,
    generate_pkce_pair,
    get_session_user,
    upgrade_avatar_url,
)


def set_session(client, **data):
    session = client.session
    for key, value in data.items():
        session[key] = value
    session.save()
    client.cookies[settings.SESSION_COOKIE_NAME] = session.session_key


def fake_response(status_code=200, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.json.return_value = json_data
    resp.text = text
    return resp


def tweets_page(ids, has_next=False, cursor=""):
    return fake_response(
        json_data={
            "data": {"tweets": [{"id": i, "text": f"post {i}"} for i in ids]},
            "has_next_page": has_next,
            "next_cursor": cursor,
        }
    )


# ---------------------------------------------------------------------------
# Services - OAuth2
# ---------------------------------------------------------------------------


class PkceTest(SimpleTestCase):
    """Testes de generate_pkce_pair."""

    def test_challenge_e_sha256_do_verifier(self):
        verifier, challenge = generate_pkce_pair()

        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        self.assertEqual(challenge, expected)
        self.assertTrue(43 <= len(verifier) <= 128)
        self.assertNotIn("=", challenge)

    def test_pares_distintos(self):
        self.assertNotEqual(generate_pkce_pair()[0], generate_pkce_pair()[0])


class BuildOAuthUrlTest(SimpleTestCase):
    """Testes de build_oauth_url."""

    def test_retorna_url_com_state_scope_e_pkce(self):
        url = build_oauth_url("state_abc", "challenge_xyz")

        self.assertTrue(url.startswith("https://twitter.com/i/oauth2/authorize?"))
        self.assertIn("client_id=ci-client", url)
        self.assertIn("state=state_abc", url)
        self.assertIn("scope=tweet.read+users.read+offline.access", url)
        self.assertIn("code_challenge=challenge_xyz", url)
        self.assertIn("code_challenge_method=S256", url)
        self.assertIn("response_type=code", url)


class ExchangeCodeTest(SimpleTestCase):
    """Testes de exchange_code_for_token."""

    @patch("x_integration.services.requests.post")
    def test_envia_verifier_e_credenciais(self, mock_post):
        mock_post.return_value = fake_response(json_data={"access_token": "tok"})

        data = exchange_code_for_token("code_1", "verifier_1")

        self.assertEqual(data["access_token"], "tok")
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(kwargs["data"]["code_verifier"], "verifier_1")
        self.assertEqual(kwargs["data"]["grant_type"], "authorization_code")
        self.assertEqual(kwargs["auth"], ("ci-client", "ci-secret"))
        self.assertIn("timeout", kwargs)

    @patch("x_integration.services.requests.post")
    def test_erro_levanta_x_integration_error(self, mock_post):
        mock_post.return_value = fake_response(400, text="invalid_grant")

        with self.assertRaises(XIntegrationError):
            exchange_code_for_token("code_1", "verifier_1")


class FetchXUserTest(SimpleTestCase):
    """Testes de fetch_x_user."""

    @patch("x_integration.services.requests.get")
    def test_retorna_data(self, mock_get):
        mock_get.return_value = fake_response(json_data={"data": {"id": "1", "username": "alice"}})
        self.assertEqual(fetch_x_user("tok"), {"id": "1", "username": "alice"})
        self.assertEqual(mock_get.call_args.kwargs["headers"]["Authorization"], "Bearer tok")

    @patch("x_integration.services.requests.get")
    def test_429_levanta_rate_limit(self, mock_get):
        mock_get.return_value = fake_response(429, text="Too Many Requests")
        with self.assertRaises(XRateLimitError):
            fetch_x_user("tok")

    @patch("x_integration.services.requests.get")
    def test_outros_erros(self, mock_get):
        mock_get.return_value = fake_response(401, text="Unauthorized")
        with self.assertRaises(XIntegrationError):
            fetch_x_user("tok")


# ---------------------------------------------------------------------------
# Services - twitterapi.io
# ---------------------------------------------------------------------------


class ProfileInfoTest(SimpleTestCase):
    """Testes de fetch_profile_info e upgrade_avatar_url."""

    def test_upgrade_avatar(self):
        self.assertEqual(
            upgrade_avatar_url("https://pbs.twimg.com/p/abc_normal.jpg"),
            "https://pbs.twimg.com/p/abc_400x400.jpg",
        )
        self.assertEqual(upgrade_avatar_url("https://pbs.twimg.com/p/abc.jpg"), "https://pbs.twimg.com/p/abc.jpg")

    @patch("x_integration.services.requests.get")
    def test_retorna_avatar_e_id(self, mock_get):
        mock_get.return_value = fake_response(
            json_data={"data": {"id": 42, "profilePicture": "https://pbs.twimg.com/p/abc_normal.jpg"}}
        )

        info = fetch_profile_info("alice")

        self.assertEqual(info, {"profile_image_url": "https://pbs.twimg.com/p/abc_400x400.jpg", "id": "42"})
        self.assertEqual(mock_get.call_args.kwargs["params"], {"userName": "alice"})
        self.assertEqual(mock_get.call_args.kwargs["headers"]["x-api-key"], "ci-key")

    @patch("x_integration.services.requests.get")
    def test_falha_devolve_vazio(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("down")
        with self.assertLogs("x_integration.services", level="WARNING"):
            self.assertEqual(fetch_profile_info("alice"), {})

    @patch("x_integration.services.requests.get")
    def test_status_de_erro_devolve_vazio(self, mock_get):
        mock_get.return_value = fake_response(500)
        with self.assertLogs("x_integration.services", level="WARNING"):
            self.assertEqual(fetch_profile_info("alice"), {})


class FetchRecentPostsTest(SimpleTestCase):
    """Testes da paginação de fetch_recent_posts."""

    @patch("x_integration.services.requests.get")
    def test_pagina_ate_o_desejado_e_trunca(self, mock_get):
        mock_get.side_effect = [
            tweets_page([1, 2], has_next=True, cursor="c1"),
            tweets_page([3, 4], has_next=True, cursor="c2"),
        ]

        posts = fetch_recent_posts("alice", 3)

        self.assertEqual([p["id"] for p in posts], [1, 2, 3])
        self.assertEqual(mock_get.call_count, 2)
        first_params = mock_get.call_args_list[0].kwargs["params"]
        second_params = mock_get.call_args_list[1].kwargs["params"]
        self.assertNotIn("cursor", first_params)
        self.assertEqual(first_params["includeReplies"], "false")
        self.assertEqual(second_params["cursor"], "c1")

    @patch("x_integration.services.requests.get")
    def test_para_sem_proxima_pagina(self, mock_get):
        mock_get.side_effect = [tweets_page([1, 2], has_next=False, cursor="c1")]

        posts = fetch_recent_posts("alice", 10, include_replies=True)

        self.assertEqual(len(posts), 2)
        self.assertEqual(mock_get.call_args.kwargs["params"]["includeReplies"], "true")

    @patch("x_integration.services.requests.get")
    def test_para_sem_cursor(self, mock_get):
        mock_get.side_effect = [tweets_page([1], has_next=True, cursor="")]
        self.assertEqual(len(fetch_recent_posts("alice", 10)), 1)
        self.assertEqual(mock_get.call_count, 1)

    @patch("x_integration.services.requests.get")
    def test_respeita_limite_de_paginas(self, mock_get):
        mock_get.side_effect = [tweets_page([i], has_next=True, cursor=f"c{i}") for i in range(10)]

        posts = fetch_recent_posts("alice", 100, max_pages=3)

        self.assertEqual(len(posts), 3)
        self.assertEqual(mock_get.call_count, 3)

    @patch("x_integration.services.requests.get")
    def test_pagina_vazia_encerra(self, mock_get):
        mock_get.side_effect = [tweets_page([])]
        self.assertEqual(fetch_recent_posts("alice", 10), [])

    @patch("x_integration.services.requests.get")
    def test_erro_devolve_o_que_foi_coletado(self, mock_get):
        mock_get.side_effect = [
            tweets_page([1, 2], has_next=True, cursor="c1"),
            requests.Timeout("slow"),
        ]

        with self.assertLogs("x_integration.services", level="WARNING"):
            posts = fetch_recent_posts("alice", 10)

        self.assertEqual([p["id"] for p in posts], [1, 2])


class SettingsHelpersTest(SimpleTestCase):
    """Testes de desired_post_count e get_session_user."""

    def test_desired_post_count(self):
        cases = {"10": 10, "abc": 50, "0": 50, "-5": 1, "2.5": 2}
        for raw, expected in cases.items():
            with override_settings(TWEET_COUNT=raw):
                self.assertEqual(desired_post_count(), expected, raw)

    def test_session_user_exige_token_e_username(self):
        self.assertIsNone(get_session_user({}))
        self.assertIsNone(get_session_user({SESSION_USER_KEY: {"username": "alice"}}))
        self.assertIsNone(get_session_user({SESSION_USER_KEY: "alice"}))
        user = {"username": "alice", "access_token": "tok"}
        self.assertEqual(get_session_user({SESSION_USER_KEY: user}), user)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class XLoginViewTest(SimpleTestCase):
    """Testes da XLoginView."""

    def test_redireciona_para_x_com_state_na_sessao(self):
        response = self.client.get(reverse("x:login"))

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.url.startswith("https://twitter.com/i/oauth2/authorize"))
        session = self.client.session
        self.assertIn(f"state={session[SESSION_STATE_KEY]}", response.url)
        self.assertTrue(session[SESSION_VERIFIER_KEY])

    @override_settings(X_CLIENT_ID="", X_CLIENT_SECRET="")
    @patch("x_integration.views.build_oauth_url")
    def test_nao_configurado_volta_para_landing(self, mock_build):
        with self.assertLogs("x_integration.views", level="ERROR"):
            response = self.client.get(reverse("x:login"))

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("gauge:landing"))
        mock_build.assert_not_called()


class XCallbackViewTest(SimpleTestCase):
    """Testes da XCallbackView."""

    def setUp(self):
        set_session(self.client, **{SESSION_STATE_KEY: "expected_state", SESSION_VERIFIER_KEY: "verifier"})

    def test_state_invalido_retorna_400(self):
        response = self.client.get(reverse("x:callback") + "?state=wrong&code=xyz")
        self.assertEqual(response.status_code, 400)

    def test_sem_code_retorna_400(self):
        response = self.client.get(reverse("x:callback") + "?state=expected_state")
        self.assertEqual(response.status_code, 400)

    @patch("x_integration.views.exchange_code_for_token")
    def test_falha_na_troca_retorna_500(self, mock_exchange):
        mock_exchange.side_effect = XIntegrationError("bad")

        with self.assertLogs("x_integration.views", level="ERROR"):
            response = self.client.get(reverse("x:callback") + "?state=expected_state&code=xyz")

        self.assertEqual(response.status_code, 500)

    @patch("x_integration.views.fetch_x_user")
    @patch("x_integration.views.exchange_code_for_token")
    def test_rate_limit_retorna_429(self, mock_exchange, mock_user):
        mock_exchange.return_value = {"access_token": "tok"}
        mock_user.side_effect = XRateLimitError("429")

        with self.assertLogs("x_integration.views", level="WARNING"):
            response = self.client.get(reverse("x:callback") + "?state=expected_state&code=xyz")

        self.assertEqual(response.status_code, 429)

    @patch("x_integration.views.fetch_profile_info")
    @patch("x_integration.views.fetch_x_user")
    @patch("x_integration.views.exchange_code_for_token")
    def test_callback_valido_grava_usuario(self, mock_exchange, mock_user, mock_profile):
        mock_exchange.return_value = {"access_token": "tok", "refresh_token": "ref", "expires_in": 7200}
        mock_user.return_value = {"id": "1", "username": "alice"}
        mock_profile.return_value = {"id": "99", "profile_image_url": "https://pbs.twimg.com/a_400x400.jpg"}

        response = self.client.get(reverse("x:callback") + "?state=expected_state&code=xyz")

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("gauge:fetch"))
        mock_exchange.assert_called_once_with("xyz", "verifier")

        session = self.client.session
        user = session[SESSION_USER_KEY]
        self.assertEqual(user["username"], "alice")
        self.assertEqual(user["user_id"], "99")
        self.assertEqual(user["access_token"], "tok")
        self.assertEqual(user["profile_image_url"], "https://pbs.twimg.com/a_400x400.jpg")
        self.assertNotIn(SESSION_STATE_KEY, session)


class XLogoutViewTest(SimpleTestCase):
    def test_limpa_sessao(self):
        set_session(self.client, **{SESSION_USER_KEY: {"username": "alice", "access_token": "tok"}})

        response = self.client.get(reverse("x:logout"))

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("gauge:landing"))
        self.assertNotIn(SESSION_USER_KEY, self.client.session)
