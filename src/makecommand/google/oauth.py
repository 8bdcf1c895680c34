# src/makecommand/google/oauth.py

"""
Google OAuth 2.0 implicit-grant token lifecycle.

States:
    SIGNED_OUT --initiate--> AUTHORIZING --callback--> SIGNED_IN
    SIGNED_OUT --restore (stored token)--> SIGNED_IN
    SIGNED_IN  --401 / sign_out--> SIGNED_OUT

Key invariants:
- the token lives under ONE session-storage key; sign-in, sign-out and the 401
  handler all go through OAuthSession, never around it,
- the callback token is read from the URL fragment only, and only trusted when the
  returned `state` equals the fixed value sent at initiation,
- the implicit grant never issues a refresh token: a 401 means "sign in again".
"""

from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from ..core.ports import Navigator, NoticeSink, SessionStore
from ..errors import Unauthenticated

logger = logging.getLogger(__name__)

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"

# Opaque CSRF guard echoed back by the authorization server.
OAUTH_STATE = "makecommand_google_tasks"

TOKEN_STORAGE_KEY = "google_access_token"


class AuthState(StrEnum):
    SIGNED_OUT = "signed_out"
    AUTHORIZING = "authorizing"
    SIGNED_IN = "signed_in"


@dataclass(frozen=True, slots=True)
class OAuthCallback:
    token: str
    state: str


def build_authorization_url(
    *,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str = OAUTH_STATE,
) -> str:
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "token",
            "scope": scope,
            "state": state,
            "prompt": "select_account",
        }
    )
    return f"{AUTHORIZATION_ENDPOINT}?{query}"


def parse_callback(url: str) -> OAuthCallback | None:
    """
    Extract {access_token, state} from the URL fragment.

    Returns None when the fragment is empty, carries an `error`, or lacks either field.
    The query string is ignored on purpose: implicit grant never puts the token there.
    """
    if not url:
        return None
    fragment = urlsplit(url).fragment
    if not fragment:
        return None

    params = parse_qs(fragment, keep_blank_values=True)
    if params.get("error"):
        return None

    token = (params.get("access_token") or [""])[0].strip()
    state = (params.get("state") or [""])[0].strip()
    if not token or not state:
        return None
    return OAuthCallback(token=token, state=state)


def strip_fragment(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


class BrowserNavigator:
    """Navigator for the console: opens the system browser; replace() is a no-op."""

    def open(self, url: str) -> None:
        if not webbrowser.open(url):
            logger.info("Could not open a browser; open this URL manually: %s", url)

    def replace(self, url: str) -> None:
        logger.debug("Address replaced (fragment stripped): %s", url)


class OAuthSession:
    """
    Single source of truth for the Google access token.

    The token itself is never logged.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        client_id: str | None,
        redirect_uri: str,
        scope: str,
        navigator: Navigator | None = None,
        notify: NoticeSink | None = None,
    ) -> None:
        self._store = store
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._scope = scope
        self._navigator: Navigator = navigator or BrowserNavigator()
        self._notify = notify
        self._state = AuthState.SIGNED_OUT
        self._connected = False

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._connected

    def initiate(self) -> str:
        if not self._client_id:
            raise RuntimeError(
                "Google client id is not set. Set MAKECOMMAND_GOOGLE_CLIENT_ID in your .env."
            )
        url = build_authorization_url(
            client_id=self._client_id,
            redirect_uri=self._redirect_uri,
            scope=self._scope,
        )
        self._state = AuthState.AUTHORIZING
        logger.info("Google OAuth: redirecting to authorization endpoint")
        self._navigator.open(url)
        return url

    def handle_redirect(self, url: str | None) -> bool:
        """
        Called once on load with the current address.

        A valid callback signs in; anything else (no fragment, bad/missing state)
        falls through to restore() and is never trusted.
        """
        cb = parse_callback(url or "")
        if cb is not None and cb.state == OAUTH_STATE:
            self._store.set(TOKEN_STORAGE_KEY, cb.token)
            self._navigator.replace(strip_fragment(url or ""))
            self._state = AuthState.SIGNED_IN
            self._connected = True
            logger.info("Google OAuth: signed in from redirect callback")
            return True

        if cb is not None:
            logger.warning("Google OAuth: callback state mismatch; ignoring token")
        return self.restore()

    def restore(self) -> bool:
        token = self._store.get(TOKEN_STORAGE_KEY)
        if token:
            self._state = AuthState.SIGNED_IN
            self._connected = True
            logger.info("Google OAuth: session restored from storage")
            return True
        if self._state != AuthState.AUTHORIZING:
            self._state = AuthState.SIGNED_OUT
        self._connected = False
        return False

    def access_token(self) -> str:
        token = self._store.get(TOKEN_STORAGE_KEY) if self._connected else None
        if not token:
            raise Unauthenticated("Not authenticated with Google Tasks.", service="google")
        return token

    def invalidate(self, reason: str = "token rejected") -> None:
        """401 handler: forget the token and ask the user to sign in again."""
        self._clear()
        logger.info("Google OAuth: session invalidated (%s)", reason)
        if self._notify is not None:
            self._notify("Google Tasks session expired. Use /google connect to sign in again.")

    def sign_out(self) -> None:
        self._clear()
        logger.info("Google OAuth: signed out")

    def _clear(self) -> None:
        self._store.clear(TOKEN_STORAGE_KEY)
        self._state = AuthState.SIGNED_OUT
        self._connected = False
