"""
One-time authorization and credential hydration at startup
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import SpotifyAuth
from .credentials import TokenFile
from .errors import AuthError, TransportError
from .logging_utils import mask_token
from .models import Credential
from .spotify_api import SpotifyRemote

logger = logging.getLogger(__name__)


@dataclass
class BootstrapResult:
    """Credential to seed the store with and when the first refresh is due"""
    credential: Credential
    initial_refresh_delay_s: float
    source: str


def bootstrap(auth: SpotifyAuth, remote: SpotifyRemote,
              token_file: Optional[TokenFile] = None,
              echo: Callable[[str], None] = print) -> Optional[BootstrapResult]:
    """
    Produce the starting credential.

    Order: token cache, pre-seeded access token, pre-seeded refresh token,
    one-time authorization code. With none of these the authorization URL is
    printed and None is returned.

    Returns:
        BootstrapResult, or None if the process has nothing to run with

    Raises:
        AuthError: client credentials missing, so no authorization URL can be built
    """
    if token_file is not None:
        cached = token_file.load()
        if cached is not None and cached.refresh_token:
            delay = cached.remaining_seconds()
            logger.info(f"Loaded credential from {token_file.path}, refreshing in {delay}s")
            return BootstrapResult(cached, float(delay), "token_cache")

    if auth.access_token:
        # expiry of a pre-seeded token is unknown, so refresh straight away
        credential = Credential(
            access_token=auth.access_token,
            refresh_token=auth.refresh_token or "",
            expires_in_seconds=0,
        )
        if not credential.refresh_token:
            logger.warning("Access token given without a refresh token; it cannot be renewed")
        logger.info("Using pre-seeded access token")
        return BootstrapResult(credential, 0.0, "environment")

    if auth.refresh_token:
        logger.info("Using pre-seeded refresh token, requesting access token")
        credential = Credential(access_token="", refresh_token=auth.refresh_token, expires_in_seconds=0)
        return BootstrapResult(credential, 0.0, "environment")

    if not auth.is_authorized:
        url = remote.build_authorization_url()
        echo(f"You need to get an access code. Open the following webpage: {url}")
        return None

    try:
        credential = remote.exchange_authorization_code(auth.access_code)
    except (AuthError, TransportError) as e:
        logger.error(f"Couldn't request tokens: {e}")
        return None
    logger.info(
        f"Received access and refresh tokens. Will expire in: {credential.expires_in_seconds} seconds "
        f"(access {mask_token(credential.access_token)}, refresh {mask_token(credential.refresh_token)})"
    )
    echo(f"SPOTIFY_ACCESS_TOKEN={credential.access_token}")
    echo(f"SPOTIFY_REFRESH_TOKEN={credential.refresh_token}")
    if token_file is not None:
        token_file.save(credential)
    return BootstrapResult(credential, float(credential.expires_in_seconds), "authorization_code")
