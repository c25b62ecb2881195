"""
Configuration loading.

The file holds a ``from`` and a ``to`` server block plus the mailbox
selection rules::

    {
      "from": {"server": "imap.old.example:993", "username": "me", "password": "..."},
      "to":   {"server": "imap.new.example", "username": "me", "password": "..."},
      "mapping": {"Sent": "Archive/Sent"},
      "exclude": ["Drafts"],
      "include": [],
      "options": {"batch_size": 10, "schedule": "0 * * * *", "log_directory": "log"}
    }

JSON is valid YAML, so both ``config.json`` and ``config.yaml`` files load.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

import yaml

from mailcopy.errors import ConfigError

CONFIG_ENV_VAR = "CONFIG_FILE"
DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_BATCH_SIZE = 10


@dataclass(frozen=True)
class ServerConfig:
    server: str
    username: str
    password: str = field(repr=False)
    ssl: bool = True
    starttls: bool = False
    ssl_verify: bool = True

    @property
    def host(self) -> str:
        return self._split()[0]

    @property
    def port(self) -> int:
        port = self._split()[1]
        if port is not None:
            return port
        return 993 if self.ssl else 143

    def _split(self):
        # IPv6 literals need brackets when a port is given: [::1]:993
        if self.server.startswith("["):
            host, _, rest = self.server[1:].partition("]")
            port = rest[1:] if rest.startswith(":") else ""
            return host, int(port) if port.isdigit() else None
        if self.server.count(":") > 1:
            return self.server, None
        host, sep, port = self.server.rpartition(":")
        if sep and port.isdigit():
            return host, int(port)
        return self.server, None


@dataclass(frozen=True)
class MigrationConfig:
    source: ServerConfig
    destination: ServerConfig
    mapping: Dict[str, str] = field(default_factory=dict)
    exclude: FrozenSet[str] = frozenset()
    include: FrozenSet[str] = frozenset()
    batch_size: int = DEFAULT_BATCH_SIZE
    schedule: Optional[str] = None
    log_directory: Optional[str] = None


def config_path() -> str:
    """Path of the configuration file: $CONFIG_FILE, else ./config.json."""
    path = os.getenv(CONFIG_ENV_VAR)
    if not path:
        path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
    return path


def _server(raw: Any, key: str) -> ServerConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"missing '{key}' server block")
    try:
        return ServerConfig(
            server=str(raw["server"]),
            username=str(raw["username"]),
            password=str(raw.get("password", "")),
            ssl=bool(raw.get("ssl", True)),
            starttls=bool(raw.get("starttls", False)),
            ssl_verify=bool(raw.get("ssl_verify", True)),
        )
    except KeyError as e:
        raise ConfigError(f"'{key}' server block has no {e.args[0]!r}") from e


def _names(cfg: Dict[str, Any], key: str) -> FrozenSet[str]:
    names = cfg.get(key) or ()
    if not isinstance(names, (list, tuple, set)):
        raise ConfigError(f"'{key}' must be a list of mailbox names, got {names!r}")
    return frozenset(str(m) for m in names)


def parse_config(cfg: Dict[str, Any]) -> MigrationConfig:
    if not isinstance(cfg, dict):
        raise ConfigError("configuration must be a mapping")

    opts = cfg.get("options") or {}
    if not isinstance(opts, dict):
        raise ConfigError("'options' must be a mapping")
    try:
        batch_size = int(opts.get("batch_size", DEFAULT_BATCH_SIZE))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid batch_size: {opts.get('batch_size')!r}") from e
    if batch_size < 1:
        raise ConfigError(f"batch_size must be positive, got {batch_size}")

    mapping = cfg.get("mapping") or {}
    if not isinstance(mapping, dict):
        raise ConfigError("'mapping' must map mailbox names to mailbox names")

    return MigrationConfig(
        source=_server(cfg.get("from"), "from"),
        destination=_server(cfg.get("to"), "to"),
        mapping={str(k): str(v) for k, v in mapping.items()},
        exclude=_names(cfg, "exclude"),
        include=_names(cfg, "include"),
        batch_size=batch_size,
        schedule=opts.get("schedule"),
        log_directory=opts.get("log_directory"),
    )


def load_config(path: str) -> MigrationConfig:
    """Load and validate the configuration file at ``path``."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"malformed config file {path}: {e}") from e
    return parse_config(cfg)
