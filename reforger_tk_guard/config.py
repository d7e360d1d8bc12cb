"""Configuration utilities for the teamkill guard.

This module loads application configuration from environment variables
and an optional ``.env`` file. It centralizes settings for the MySQL
connection, the two escalation trackers, the ban API and the optional
Discord webhook.

Examples
--------
>>> from reforger_tk_guard.config import load_config
>>> cfg = load_config()
>>> cfg.round_tracker.kick_limit
4
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv


_TRUTHY = {"1", "true", "yes"}
_FALSY = {"0", "false", "no"}
_DEFAULT_WARNING = "Watch your fire, Teamkilling will result in your removal from the server"


@dataclass
class DBConfig:
    """Database configuration.

    Attributes
    ----------
    host : str
        MySQL server hostname or IP address.
    port : int
        MySQL server port, typically ``3306``.
    user : str
        Username for authentication.
    password : str
        Password for authentication.
    database : str
        Default schema/database name to use.
    """
    host: str
    port: int
    user: str
    password: str
    database: str


@dataclass
class ServerConfig:
    """Game server identity and log ingestion settings.

    Attributes
    ----------
    server_id : str or None
        Identifier stored with every persisted record.
    server_name : str
        Display name used in notifications.
    log_path : str or None
        Default console log to follow.
    stats_interval_seconds : float
        Period of the dispatcher throughput summary.
    """
    server_id: str | None
    server_name: str
    log_path: str | None
    stats_interval_seconds: float


@dataclass
class RoundTrackerConfig:
    """Round-scoped escalation settings.

    Attributes
    ----------
    enabled : bool
        Whether the round tracker is wired at startup.
    kick_limit : int
        Qualifying teamkills in one round that trigger a kick.
    warn_every : bool
        Send a warning on every qualifying teamkill.
    warning_message : str
        Text of the in-game warning.
    log_kicks : bool
        Add a ban-API player note after every kick.
    log_kick_message : str
        Text of that note.
    enable_bans : bool
        Evaluate the ban threshold after every kick.
    ban_kick_threshold : int
        Kicks within ``ban_kick_limit_days`` that trigger a ban.
    ban_kick_limit_days : int
        Size of the rolling kick-history window, in days.
    ban_duration_hours : int
        Length of the requested ban.
    ban_reason : str
        Ban reason; ``{{duration}}`` is replaced by the ban length.
    ban_message : str
        Note attached to the ban.
    ban_auto_add : bool
        Ask the ban API to auto-add identifiers.
    ban_native : bool
        Ask the ban API to push a native game ban.
    ban_org_wide : bool
        Apply the ban organization-wide.
    """
    enabled: bool = True
    kick_limit: int = 4
    warn_every: bool = True
    warning_message: str = _DEFAULT_WARNING
    log_kicks: bool = True
    log_kick_message: str = "Player was kicked for teamkilling"
    enable_bans: bool = True
    ban_kick_threshold: int = 2
    ban_kick_limit_days: int = 14
    ban_duration_hours: int = 24
    ban_reason: str = "Intentional Teamkilling - banned for {{duration}}"
    ban_message: str = "Banned for Teamkilling. Automated system"
    ban_auto_add: bool = False
    ban_native: bool = False
    ban_org_wide: bool = True


@dataclass
class WindowTrackerConfig:
    """Sliding-window escalation settings."""
    enabled: bool = False
    limit: int = 5
    window_minutes: float = 20.0
    sweep_seconds: float = 60.0
    warning_message: str = _DEFAULT_WARNING


@dataclass
class BanApiConfig:
    """Ban API (BattleMetrics) settings.

    Attributes
    ----------
    token : str or None
        Bearer token; the client is not created without one.
    base_url : str
        API root URL.
    organization_id : str or None
        Organization owning the bans.
    ban_list_id : str or None
        Ban list the bans are added to.
    timeout_seconds : float
        Per-request timeout.
    """
    token: str | None
    base_url: str
    organization_id: str | None
    ban_list_id: str | None
    timeout_seconds: float


@dataclass
class DiscordConfig:
    """Discord notification settings.

    Attributes
    ----------
    webhook_url : str or None
        Webhook receiving kick/ban/friendly-fire embeds.
    """
    webhook_url: str | None


@dataclass
class AppConfig:
    """Aggregate application configuration."""
    db: DBConfig
    server: ServerConfig
    round_tracker: RoundTrackerConfig
    window_tracker: WindowTrackerConfig
    ban_api: BanApiConfig
    discord: DiscordConfig
    log_level: str
    log_json: bool


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name, "").strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return default


def _env_positive_int(name: str, default: int) -> int:
    """Read a positive integer, falling back to ``default`` otherwise."""
    value = os.getenv(name, "").strip()
    try:
        number = int(value)
    except ValueError:
        return default
    return number if number > 0 else default


def _env_positive_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    try:
        number = float(value)
    except ValueError:
        return default
    return number if number > 0 else default


def _env_text(name: str, default: str) -> str:
    value = (os.getenv(name) or "").strip()
    return value or default


def load_config() -> AppConfig:
    """Load configuration from environment variables and ``.env``.

    Returns
    -------
    AppConfig
        Fully populated configuration object.

    Notes
    -----
    Environment variables take precedence. If a ``.env`` file is present
    in the working directory, it will be loaded prior to reading the
    variables. Numeric options that are missing, unparsable or not
    positive keep their defaults.
    """
    load_dotenv()

    db_password = os.getenv("MYSQL_PASSWORD") or os.getenv("MYSQL_ROOT_PASSWORD", "")
    db = DBConfig(
        host=os.getenv("MYSQL_HOST", "127.0.0.1"),
        port=int(os.getenv("MYSQL_PORT", "3306")),
        user=os.getenv("MYSQL_USER", "root"),
        password=db_password,
        database=os.getenv("MYSQL_DATABASE", "reforger"),
    )

    server = ServerConfig(
        server_id=os.getenv("SERVER_ID") or None,
        server_name=_env_text("SERVER_NAME", "Arma Reforger"),
        log_path=os.getenv("LOG_PATH") or None,
        stats_interval_seconds=_env_positive_float("STATS_INTERVAL_SECONDS", 60.0),
    )

    round_tracker = RoundTrackerConfig(
        enabled=_env_bool("TK_ROUND_TRACKER_ENABLED", True),
        kick_limit=_env_positive_int("TK_KICK_LIMIT", 4),
        warn_every=_env_bool("TK_WARN_EVERY", True),
        warning_message=_env_text("TK_WARNING_MESSAGE", _DEFAULT_WARNING),
        log_kicks=_env_bool("TK_LOG_KICKS", True),
        log_kick_message=_env_text("TK_LOG_KICK_MESSAGE", "Player was kicked for teamkilling"),
        enable_bans=_env_bool("TK_ENABLE_BANS", True),
        ban_kick_threshold=_env_positive_int("TK_BAN_KICK_THRESHOLD", 2),
        ban_kick_limit_days=_env_positive_int("TK_BAN_KICK_LIMIT_DAYS", 14),
        ban_duration_hours=_env_positive_int("TK_BAN_DURATION_HOURS", 24),
        ban_reason=_env_text("TK_BAN_REASON", "Intentional Teamkilling - banned for {{duration}}"),
        ban_message=_env_text("TK_BAN_MESSAGE", "Banned for Teamkilling. Automated system"),
        ban_auto_add=_env_bool("TK_BAN_AUTO_ADD", False),
        ban_native=_env_bool("TK_BAN_NATIVE", False),
        ban_org_wide=_env_bool("TK_BAN_ORG_WIDE", True),
    )

    window_tracker = WindowTrackerConfig(
        enabled=_env_bool("TK_WINDOW_TRACKER_ENABLED", False),
        limit=_env_positive_int("TK_WINDOW_LIMIT", 5),
        window_minutes=_env_positive_float("TK_WINDOW_MINUTES", 20.0),
        sweep_seconds=_env_positive_float("TK_SWEEP_SECONDS", 60.0),
        warning_message=_env_text("TK_WINDOW_WARNING_MESSAGE", _DEFAULT_WARNING),
    )

    ban_api = BanApiConfig(
        token=os.getenv("BATTLEMETRICS_TOKEN") or None,
        base_url=_env_text("BATTLEMETRICS_URL", "https://api.battlemetrics.com"),
        organization_id=os.getenv("BATTLEMETRICS_ORG_ID") or None,
        ban_list_id=os.getenv("BATTLEMETRICS_BANLIST_ID") or None,
        timeout_seconds=_env_positive_float("BATTLEMETRICS_TIMEOUT_SECONDS", 10.0),
    )

    discord = DiscordConfig(webhook_url=os.getenv("DISCORD_WEBHOOK_URL") or None)

    return AppConfig(
        db=db,
        server=server,
        round_tracker=round_tracker,
        window_tracker=window_tracker,
        ban_api=ban_api,
        discord=discord,
        log_level=_env_text("LOG_LEVEL", "INFO"),
        log_json=_env_bool("LOG_JSON", False),
    )
