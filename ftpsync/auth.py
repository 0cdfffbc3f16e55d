from __future__ import annotations

import logging
import netrc
import os
from pathlib import Path

from ftpsync.config import SyncConfig


logger = logging.getLogger(__name__)

PASSWORD_ENV_VARS = ("FTPSYNC_PASSWORD",)
ANONYMOUS_USER = "anonymous"


def resolve_password(config: SyncConfig, netrc_path: Path | None = None) -> str:
    """Resolve the FTP password from env, config, or the user's netrc file."""
    for env_name in PASSWORD_ENV_VARS:
        value = os.getenv(env_name, "").strip()
        if value:
            return value

    if config.password:
        return config.password

    entry = _netrc_entry(config.host, netrc_path)
    if entry is not None:
        login, password = entry
        if not config.user or login == config.user:
            return password

    return ""


def resolve_user(config: SyncConfig, netrc_path: Path | None = None) -> str:
    if config.user:
        return config.user
    entry = _netrc_entry(config.host, netrc_path)
    if entry is not None and entry[0]:
        return entry[0]
    return ANONYMOUS_USER


def _netrc_entry(host: str, netrc_path: Path | None = None) -> tuple[str, str] | None:
    path = netrc_path or Path(os.getenv("NETRC", "") or Path.home() / ".netrc")
    if not path.exists():
        return None
    try:
        auth = netrc.netrc(str(path)).authenticators(host)
    except (OSError, netrc.NetrcParseError) as exc:
        logger.warning("Ignoring unreadable netrc file %s: %s", path, exc)
        return None
    if auth is None:
        return None
    login, _account, password = auth
    return login or "", password or ""
