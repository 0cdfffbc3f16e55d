from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from urllib.parse import unquote, urlparse

from ftpsync.exceptions import ConfigError


CONFIG_FILENAME = ".ftpsync.json"
STATE_FILENAME = ".ftpsync-state"
DEFAULT_PORT = 21
DEFAULT_TIMEOUT = 60.0


@dataclass(slots=True)
class SyncConfig:
    host: str
    local_root: str
    user: str = ""
    password: str = ""
    port: int = DEFAULT_PORT
    remote_root: str = "/"
    exclude: list[str] = field(default_factory=list)
    audit_exclude: list[str] = field(default_factory=list)
    timeout: float = DEFAULT_TIMEOUT

    @property
    def local_root_path(self) -> Path:
        return Path(self.local_root).resolve()

    @property
    def state_path(self) -> Path:
        return self.local_root_path / STATE_FILENAME


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def load_config(base_dir: Path | None = None) -> SyncConfig:
    path = config_path(base_dir)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}. Run `ftpsync init <host>` first.")

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if not isinstance(data, dict) or not data.get("host"):
        raise ConfigError(f"Config file {path} has no `host`.")

    try:
        return SyncConfig(
            host=str(data["host"]),
            local_root=str(data.get("local_root") or path.parent),
            user=str(data.get("user", "")),
            password=str(data.get("password", "")),
            port=int(data.get("port", DEFAULT_PORT)),
            remote_root=normalize_remote_root(str(data.get("remote_root", "/"))),
            exclude=[str(item) for item in data.get("exclude", [])],
            audit_exclude=[str(item) for item in data.get("audit_exclude", [])],
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in {path}: {exc}") from exc


def save_config(config: SyncConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    payload = asdict(config)
    payload["remote_root"] = normalize_remote_root(str(payload["remote_root"]))
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


def normalize_remote_root(path: str) -> str:
    value = (path or "").strip().replace("\\", "/")
    if not value:
        return "/"
    if not value.startswith("/"):
        value = "/" + value
    return value.rstrip("/") or "/"


def parse_host(value: str) -> dict[str, str | int]:
    """Split ``host``, ``host:port`` or ``ftp://user@host:port/root`` into config fields."""
    text = (value or "").strip()
    if not text:
        raise ConfigError("Host must not be empty.")

    if "://" not in text:
        text = f"ftp://{text}"

    parsed = urlparse(text)
    if parsed.scheme not in {"ftp", ""}:
        raise ConfigError(f"Unsupported scheme {parsed.scheme!r}; only ftp:// is supported.")
    if not parsed.hostname:
        raise ConfigError(f"Cannot parse host from {value!r}.")

    try:
        port = parsed.port or DEFAULT_PORT
    except ValueError as exc:
        raise ConfigError(f"Invalid port in {value!r}.") from exc

    fields: dict[str, str | int] = {"host": parsed.hostname, "port": port}
    if parsed.username:
        fields["user"] = unquote(parsed.username)
    if parsed.password:
        fields["password"] = unquote(parsed.password)
    if parsed.path and parsed.path != "/":
        fields["remote_root"] = normalize_remote_root(unquote(parsed.path))
    return fields
