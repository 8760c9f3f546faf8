"""
Spotify Web API wrapper using spotipy
"""

import logging
import threading
from typing import Any, Dict, List, Optional

import requests
from spotipy import Spotify, SpotifyException
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .config import SpotifyAuth
from .errors import AuthError, ClassificationAmbiguity, TransportError
from .models import Credential, PlaybackObservation

logger = logging.getLogger(__name__)

AUTH_STATUS_CODES = (401, 403)


def parse_playback(payload: Optional[Dict[str, Any]]) -> Optional[PlaybackObservation]:
    """
    Turn a currently-playing payload into an observation.

    Returns:
        PlaybackObservation, or None when the API returned no payload

    Raises:
        ClassificationAmbiguity: payload present but not in a recognised shape
    """
    if payload is None:
        return None
    if not isinstance(payload, dict) or "is_playing" not in payload:
        raise ClassificationAmbiguity(f"Unrecognised playback payload: {type(payload).__name__}")

    try:
        item = payload.get("item") or {}
        device = payload.get("device") or {}
        context = payload.get("context") or {}
        return PlaybackObservation(
            is_playing=bool(payload["is_playing"]),
            item_uri=item.get("uri"),
            timestamp_ms=int(payload.get("timestamp") or 0),
            progress_ms=int(payload.get("progress_ms") or 0),
            device_id=device.get("id"),
            is_shuffling=bool(payload.get("shuffle_state", False)),
            context_uri=context.get("uri"),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ClassificationAmbiguity(f"Malformed playback payload: {e}") from e


class SpotifyRemote:
    """The four remote operations the recorder depends on"""

    def __init__(self, auth_config: SpotifyAuth, request_timeout_s: float = 10.0):
        """
        Initialize the remote API wrapper.

        Args:
            auth_config: Spotify authentication configuration
            request_timeout_s: Timeout applied to every HTTP call
        """
        self.auth_config = auth_config
        self.request_timeout_s = request_timeout_s
        self._oauth: Optional[SpotifyOAuth] = None
        self._spotify: Optional[Spotify] = None
        self._client_token: Optional[str] = None
        self._client_lock = threading.Lock()

    def _create_oauth_manager(self, scopes: Optional[List[str]] = None) -> SpotifyOAuth:
        """Create SpotifyOAuth manager; token caching stays in memory"""
        try:
            return SpotifyOAuth(
                client_id=self.auth_config.client_id,
                client_secret=self.auth_config.client_secret,
                redirect_uri=self.auth_config.redirect_uri,
                scope=" ".join(scopes or self.auth_config.scopes),
                cache_handler=MemoryCacheHandler(),
                open_browser=False,
                requests_timeout=self.request_timeout_s,
            )
        except SpotifyOauthError as e:
            raise AuthError(f"Spotify client is not configured: {e}") from e

    @property
    def oauth(self) -> SpotifyOAuth:
        if self._oauth is None:
            self._oauth = self._create_oauth_manager()
        return self._oauth

    def build_authorization_url(self, scopes: Optional[List[str]] = None) -> str:
        """URL the operator opens once to grant access"""
        if scopes:
            return self._create_oauth_manager(scopes).get_authorize_url()
        return self.oauth.get_authorize_url()

    def exchange_authorization_code(self, code: str) -> Credential:
        """
        Exchange a one-time authorization code for the first credential pair.

        Raises:
            AuthError: code rejected or token payload malformed
            TransportError: network failure or timeout
        """
        oauth = self._create_oauth_manager()
        try:
            oauth.get_access_token(code=code, as_dict=False, check_cache=False)
        except SpotifyOauthError as e:
            raise AuthError(f"Authorization code exchange rejected: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Authorization code exchange failed: {e}") from e
        return self._credential_from(oauth.cache_handler.get_cached_token(), "")

    def refresh_access_token(self, refresh_token: str) -> Credential:
        """
        Exchange the refresh token for a new access token.

        Raises:
            AuthError: refresh rejected or token payload malformed
            TransportError: network failure or timeout
        """
        if not refresh_token:
            raise AuthError("No refresh token available")
        try:
            token_info = self.oauth.refresh_access_token(refresh_token)
        except SpotifyOauthError as e:
            raise AuthError(f"Token refresh rejected: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Token refresh failed: {e}") from e
        return self._credential_from(token_info, refresh_token)

    def _get_client(self, access_token: str) -> Spotify:
        """Spotify client for the given token, rebuilt only when the token changes"""
        with self._client_lock:
            if self._spotify is not None and self._client_token == access_token:
                return self._spotify

            self._close_client()
            self._spotify = Spotify(
                auth=access_token,
                requests_timeout=self.request_timeout_s,
                retries=0,
                status_retries=0,
            )
            self._client_token = access_token
            return self._spotify

    def _close_client(self) -> None:
        session = getattr(self._spotify, "_session", None)
        if isinstance(session, requests.Session):
            session.close()
        self._spotify = None
        self._client_token = None

    def close(self) -> None:
        """Release the HTTP session held by the cached client"""
        with self._client_lock:
            self._close_client()

    def get_current_playback(self, access_token: str) -> Optional[PlaybackObservation]:
        """
        Get current playback state.

        Returns:
            PlaybackObservation, or None if the API returned nothing

        Raises:
            AuthError: access token rejected
            TransportError: network failure, timeout or other API error
            ClassificationAmbiguity: unrecognised payload shape
        """
        client = self._get_client(access_token)
        try:
            payload = client.current_playback()
        except SpotifyException as e:
            if e.http_status in AUTH_STATUS_CODES:
                raise AuthError(f"Access token rejected ({e.http_status}): {e.msg}") from e
            raise TransportError(f"Spotify API error getting current playback: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error getting current playback: {e}") from e
        return parse_playback(payload)

    @staticmethod
    def _credential_from(token_info: Optional[Dict[str, Any]], fallback_refresh_token: str) -> Credential:
        if not isinstance(token_info, dict) or not token_info.get("access_token"):
            raise AuthError("Token endpoint returned no access token")
        try:
            return Credential.from_token_info(token_info, fallback_refresh_token)
        except (TypeError, ValueError) as e:
            raise AuthError(f"Malformed token payload: {e}") from e
