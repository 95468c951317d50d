"""Configuration module: frozen dataclasses loaded from YAML, env vars, and CLI args."""

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

import yaml

from error_sentinel.errors import ConfigurationError

logger = logging.getLogger(__name__)

MODE_LOCAL = "local"
MODE_REMOTE = "remote"
MODES = (MODE_LOCAL, MODE_REMOTE)

KIND_PREFIX = "prefix"
KIND_REGEX = "regex"
KIND_URL = "url"
RULE_KINDS = (KIND_PREFIX, KIND_REGEX, KIND_URL)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def infer_rule_kind(pattern: str) -> str:
    """Guess the kind of a routing pattern from its syntax."""
    if len(pattern) > 2 and pattern.startswith("/") and pattern.endswith("/"):
        return KIND_REGEX
    if pattern.startswith("http://") or pattern.startswith("https://"):
        return KIND_URL
    return KIND_PREFIX


@dataclass(frozen=True)
class RoutingRule:
    pattern: str
    team: str
    kind: str = ""

    def __post_init__(self):
        if not self.kind:
            object.__setattr__(self, "kind", infer_rule_kind(self.pattern))
        elif self.kind not in RULE_KINDS:
            raise ConfigurationError(
                f"Unknown rule kind {self.kind!r} for pattern {self.pattern!r}"
            )


def build_rules(mapping) -> tuple[RoutingRule, ...]:
    """Turn an ordered ``{pattern: team}`` mapping or a list of rule dicts into rules.

    Declaration order is preserved; it decides which rule wins.
    """
    if not mapping:
        return ()
    if isinstance(mapping, dict):
        return tuple(RoutingRule(str(p), str(t)) for p, t in mapping.items())

    rules = []
    for item in mapping:
        if isinstance(item, RoutingRule):
            rules.append(item)
        elif isinstance(item, dict):
            try:
                rules.append(
                    RoutingRule(
                        pattern=str(item["pattern"]),
                        team=str(item["team"]),
                        kind=item.get("kind", ""),
                    )
                )
            except KeyError as exc:
                raise ConfigurationError(f"Routing rule missing field {exc}") from exc
        else:
            pattern, team = item
            rules.append(RoutingRule(str(pattern), str(team)))
    return tuple(rules)


@dataclass(frozen=True)
class SentinelConfig:
    mode: str = MODE_LOCAL
    team_mapping: tuple = ()
    default_team: str = "unknown"
    enabled: bool = True
    batch_size: int = 50
    batch_interval_ms: int = 10000
    dedup_window_ms: int = 60000
    max_local_errors: int = 1000
    backend_url: Optional[str] = None
    api_key: Optional[str] = None
    capture_headers: tuple = ()
    get_user_name: Optional[Callable[[], Optional[str]]] = field(
        default=None, compare=False
    )
    db_path: str = "sentinel.db"
    durable: bool = True
    origin: Optional[str] = None
    request_timeout: float = 10.0
    show_ui: bool = False
    teams_channel_url: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "team_mapping", build_rules(self.team_mapping))
        object.__setattr__(self, "capture_headers", tuple(self.capture_headers or ()))
        if self.backend_url:
            object.__setattr__(self, "backend_url", self.backend_url.rstrip("/"))

        if self.mode not in MODES:
            raise ConfigurationError(
                f"mode must be one of {', '.join(MODES)}, got {self.mode!r}"
            )
        if self.mode == MODE_REMOTE and not (self.backend_url and self.api_key):
            raise ConfigurationError(
                "backend_url and api_key are required when mode is 'remote'"
            )
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if self.batch_interval_ms < 0:
            raise ConfigurationError("batch_interval_ms must not be negative")
        if self.dedup_window_ms < 0:
            raise ConfigurationError("dedup_window_ms must not be negative")
        if self.max_local_errors < 1:
            raise ConfigurationError("max_local_errors must be at least 1")

    @property
    def is_remote(self) -> bool:
        return self.mode == MODE_REMOTE


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


# env var -> (field name, converter)
_ENV_FIELDS = {
    "SENTINEL_MODE": ("mode", str),
    "SENTINEL_BACKEND_URL": ("backend_url", str),
    "SENTINEL_API_KEY": ("api_key", str),
    "SENTINEL_ENABLED": ("enabled", _parse_bool),
    "SENTINEL_DEFAULT_TEAM": ("default_team", str),
    "SENTINEL_BATCH_SIZE": ("batch_size", int),
    "SENTINEL_BATCH_INTERVAL_MS": ("batch_interval_ms", int),
    "SENTINEL_DEDUP_WINDOW_MS": ("dedup_window_ms", int),
    "SENTINEL_MAX_LOCAL_ERRORS": ("max_local_errors", int),
    "SENTINEL_DB_PATH": ("db_path", str),
    "SENTINEL_DURABLE": ("durable", _parse_bool),
    "SENTINEL_ORIGIN": ("origin", str),
    "SENTINEL_CAPTURE_HEADERS": ("capture_headers", _parse_list),
    "SENTINEL_TEAMS_CHANNEL_URL": ("teams_channel_url", str),
}

_YAML_FIELDS = {
    "mode", "team_mapping", "default_team", "enabled", "batch_size",
    "batch_interval_ms", "dedup_window_ms", "max_local_errors", "backend_url",
    "api_key", "capture_headers", "db_path", "durable", "origin",
    "request_timeout", "show_ui", "teams_channel_url",
}


def load_config(argv=None, environ=None) -> SentinelConfig:
    """Build SentinelConfig from defaults <- YAML file <- env vars <- CLI args.

    Pass argv/environ for testability; when None, argparse reads sys.argv and
    os.environ is used.
    """
    env = os.environ if environ is None else environ

    parser = argparse.ArgumentParser(description="API error sentinel", add_help=False)
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--mode", choices=MODES, default=None)
    parser.add_argument("--db-path", type=str, default=None)
    parser.add_argument("--max-local-errors", type=int, default=None)
    args, _ = parser.parse_known_args(argv)

    yaml_data = load_yaml_config(args.config or env.get("SENTINEL_CONFIG"))
    unknown = set(yaml_data) - _YAML_FIELDS
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
    kwargs = {k: v for k, v in yaml_data.items() if k in _YAML_FIELDS}

    for var, (name, convert) in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            kwargs[name] = convert(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from exc

    if args.mode is not None:
        kwargs["mode"] = args.mode
    if args.db_path is not None:
        kwargs["db_path"] = args.db_path
    if args.max_local_errors is not None:
        kwargs["max_local_errors"] = args.max_local_errors

    return SentinelConfig(**kwargs)
