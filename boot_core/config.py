import logging
import os
import re
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

import yaml

from . import log as log_mod

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"


class ConfigError(ValueError):
    """Raised when the configuration file cannot be located, read or decoded."""


_INT_RE = re.compile(r"^[+-]?\d+$")


def _coerce_int(value: Any, key: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    raise ConfigError(f"{key}: expected an integer, got {value!r}")


def _coerce_str(value: Any, key: str) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ConfigError(f"{key}: expected a scalar, got {type(value).__name__}")
    return str(value)


_COERCERS = {int: _coerce_int, str: _coerce_str}


class _Section:
    """Mixin for config sections; YAML keys are the field names."""

    @classmethod
    def from_dict(cls, data: Any, section: str):
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"{section}: expected a mapping, got {type(data).__name__}")
        kwargs = {}
        for f in fields(cls):
            if f.name in data:
                kwargs[f.name] = _COERCERS[f.type](data[f.name], f"{section}.{f.name}")
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ServerConfig(_Section):
    port: int = 0


@dataclass(frozen=True)
class DatabaseConfig(_Section):
    type: str = ""
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    dbname: str = ""
    sslmode: str = ""

    def dsn(self) -> str:
        """Connection URL for handing the section to a database driver."""
        auth = ""
        if self.user:
            auth = quote(self.user, safe="")
            if self.password:
                auth += ":" + quote(self.password, safe="")
            auth += "@"
        netloc = self.host + (f":{self.port}" if self.port else "")
        url = f"{self.type}://{auth}{netloc}/{self.dbname}"
        if self.sslmode:
            url += f"?sslmode={self.sslmode}"
        return url


@dataclass(frozen=True)
class JWTConfig(_Section):
    secret: str = ""
    expiration_milliseconds: int = 0


@dataclass(frozen=True)
class RabbitMQConfig(_Section):
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""

    def url(self) -> str:
        return amqp_url(self.host, self.port, self.username, self.password)


@dataclass(frozen=True)
class SqliteConfig(_Section):
    tile_data_path: str = ""


@dataclass(frozen=True)
class LogConfig(_Section):
    level: str = ""
    format: str = ""
    file: str = ""


def amqp_url(host: str, port: int, username: str, password: str) -> str:
    """Broker connection string: ``amqp://{username}:{password}@{host}:{port}/``."""
    return f"amqp://{quote(username, safe='')}:{quote(password, safe='')}@{host}:{port}/"


@dataclass(frozen=True)
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    jwt: JWTConfig = field(default_factory=JWTConfig)
    rabbitmq: RabbitMQConfig = field(default_factory=RabbitMQConfig)
    sqlite: SqliteConfig = field(default_factory=SqliteConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Decode a parsed YAML document. Unknown keys are ignored."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"expected a mapping at top level, got {type(data).__name__}")
        sections = {}
        for f in fields(cls):
            section_cls = f.default_factory
            sections[f.name] = section_cls.from_dict(data.get(f.name), f.name)
        return cls(**sections)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {f.name: getattr(self, f.name).to_dict() for f in fields(self)}


def executable_dir() -> Path:
    """Directory of the running program.

    Bundled (frozen) builds report the binary itself; otherwise the main
    script, or the interpreter when there is none (REPL, stdin).
    """
    script = sys.argv[0] if sys.argv else ""
    if script not in ("", "-", "-c") and not getattr(sys, "frozen", False):
        return Path(script).resolve().parent
    if not sys.executable:
        raise ConfigError("failed to get executable path")
    return Path(sys.executable).resolve().parent


def default_search_paths() -> List[Path]:
    """``config.yaml`` beside the executable, then in the working directory."""
    return [executable_dir() / CONFIG_FILENAME, Path(CONFIG_FILENAME)]


def _resolve(candidates: Sequence[Path]) -> Path:
    # Only a missing file falls through to the next candidate; the last
    # candidate is returned unprobed and its read reports the failure.
    for path in candidates[:-1]:
        try:
            os.stat(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            raise ConfigError(f"failed to check config file existence: {e}") from e
        return path
    return candidates[-1]


def load_config(search_paths: Optional[Iterable[os.PathLike]] = None) -> Config:
    """Locate, read and decode the YAML configuration file.

    - Search order (first existing wins): ``search_paths`` if given, else
      ``default_search_paths()``.
    - Absent sections and keys decode to zero values; unknown keys are ignored.
    - Every call re-reads the file; nothing is cached.

    Raises ConfigError on any failure; no partial Config is ever returned.
    """
    candidates = [Path(p) for p in search_paths] if search_paths is not None else default_search_paths()
    if not candidates:
        raise ConfigError("no config file candidates given")

    path = _resolve(candidates)
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to unmarshal config from {path}: {e}") from e

    try:
        cfg = Config.from_dict(data)
    except ConfigError as e:
        raise ConfigError(f"failed to unmarshal config from {path}: {e}") from e

    logger.debug("Loaded config from %s", path)
    return cfg


def load_and_apply_logging(cfg: Optional[Config] = None, **kwargs) -> Config:
    """Load the config (unless given) and configure logging from its ``log`` section.

    Empty keys fall back to the BOOT_CORE_LOG_* env vars, then defaults.
    ``kwargs`` are passed to ``load_config`` when loading.
    """
    cfg = cfg or load_config(**kwargs)
    fmt = cfg.log.format
    json_format = None if not fmt else fmt.lower() == "json"
    log_mod.configure_logging(
        level=cfg.log.level or None,
        json_format=json_format,
        file=cfg.log.file or None,
    )
    return cfg
