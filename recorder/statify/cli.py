"""
Command line entry point for the playback recorder
"""

import click
import sys

from .agent import RecorderAgent
from .bootstrap import bootstrap
from .config import RecorderConfig
from .credentials import TokenFile
from .errors import StatifyError, StorageError
from .event_log import EventLog
from .logging_utils import setup_logging, get_logger, mask_token
from .scheduler import ApschedulerScheduler
from .spotify_api import SpotifyRemote

logger = get_logger(__name__)


def _remote(config: RecorderConfig) -> SpotifyRemote:
    return SpotifyRemote(config.spotify, request_timeout_s=config.timings.request_timeout_s)


@click.group()
@click.option('--env-file', help='.env file to load before reading the environment')
@click.option('--log-level', default=None, help='Log level (overrides LOG_LEVEL)')
@click.option('--log-format', default=None, type=click.Choice(['text', 'json']), help='Log format (overrides LOG_FORMAT)')
@click.option('--log-file', default=None, help='Also write logs to this file')
@click.pass_context
def cli(ctx, env_file, log_level, log_format, log_file):
    """Statify - record what a Spotify account is playing"""
    config = RecorderConfig.from_env(env_file)
    setup_logging(
        log_level=log_level or config.log_level,
        log_format=log_format or config.log_format,
        log_file=log_file or config.log_file,
    )
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.pass_context
def run(ctx):
    """Authorize if needed, then poll and record until interrupted"""
    config = ctx.obj['config']
    remote = _remote(config)
    token_file = TokenFile(config.token_cache) if config.token_cache else None

    try:
        seed = bootstrap(config.spotify, remote, token_file, echo=click.echo)
    except StatifyError as e:
        click.echo(f"Authorization failed: {e}", err=True)
        sys.exit(1)
    if seed is None:
        sys.exit(0 if not config.spotify.access_code else 1)

    scheduler = ApschedulerScheduler(workers=config.timings.scheduler_workers)
    event_log = EventLog(config.storage.database_url)
    agent = RecorderAgent(config, remote, event_log, scheduler, token_file)
    try:
        agent.start(seed)
    except StorageError as e:
        click.echo(f"Startup failed: {e}", err=True)
        event_log.dispose()
        sys.exit(1)
    agent.run_forever()


@cli.command('authorize-url')
@click.pass_context
def authorize_url(ctx):
    """Print the URL to open for the one-time authorization step"""
    config = ctx.obj['config']
    try:
        url = _remote(config).build_authorization_url()
    except StatifyError as e:
        click.echo(f"Couldn't build authorization URL: {e}", err=True)
        sys.exit(1)
    click.echo(url)


@cli.command()
@click.argument('code')
@click.pass_context
def exchange(ctx, code):
    """Exchange an authorization CODE for an access/refresh token pair"""
    config = ctx.obj['config']
    try:
        credential = _remote(config).exchange_authorization_code(code)
    except StatifyError as e:
        click.echo(f"Couldn't request tokens: {e}", err=True)
        sys.exit(1)

    if config.token_cache:
        TokenFile(config.token_cache).save(credential)
    click.echo(f"SPOTIFY_ACCESS_TOKEN={credential.access_token}")
    click.echo(f"SPOTIFY_REFRESH_TOKEN={credential.refresh_token}")
    click.echo(f"Expires in: {credential.expires_in_seconds} seconds")


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the event log schema if it does not exist"""
    config = ctx.obj['config']
    event_log = EventLog(config.storage.database_url)
    try:
        event_log.ensure_schema()
        click.echo("Event log schema ready")
    except StorageError as e:
        click.echo(f"Schema bootstrap failed: {e}", err=True)
        sys.exit(1)
    finally:
        event_log.dispose()


@cli.command()
@click.pass_context
def status(ctx):
    """Show effective configuration and stored event count"""
    config = ctx.obj['config']
    auth = config.spotify

    click.echo("Statify Recorder Status:")
    click.echo(f"  Client ID: {auth.client_id or '<unset>'}")
    click.echo(f"  Client secret: {mask_token(auth.client_secret)}")
    click.echo(f"  Redirect URI: {auth.redirect_uri}")
    click.echo(f"  Authorization code: {'set' if auth.access_code else 'unset'}")
    click.echo(f"  Access token: {mask_token(auth.access_token)}")
    click.echo(f"  Refresh token: {mask_token(auth.refresh_token)}")
    click.echo(f"  Token cache: {config.token_cache or 'disabled'}")
    click.echo(f"  Poll interval: {config.timings.poll_interval_s:.0f}s")
    click.echo(f"  Refresh retry: {config.timings.refresh_retry_s:.0f}s")
    click.echo(f"  Refresh margin: {config.timings.refresh_margin_ratio:.0%} of token lifetime")
    click.echo(f"  Database: {config.storage.database_url}")

    event_log = EventLog(config.storage.database_url)
    try:
        event_log.ensure_schema()
        click.echo(f"  Stored events: {event_log.count()}")
    except StorageError as e:
        click.echo(f"  Stored events: unavailable ({e})")
    finally:
        event_log.dispose()


if __name__ == '__main__':
    cli()
