"""JSON file-based config adapter."""

import json
import logging
import os
import sys

from radioshelf.config import (
    CATALOG_SERVERS,
    CATALOG_TIMEOUT_SECONDS,
    DATA_FILE,
    DEFAULT_VOLUME,
    LISTENING_TICK_MS,
    SHARE_BASE_URL,
    STARTER_PACK_BASE_URL,
)
from radioshelf.domain.ports import ConfigPort

logger = logging.getLogger("radioshelf.config")

CONFIG_FILE_ENV = "RADIOSHELF_CONFIG_FILE"

_DEFAULTS = {
    "data_file": DATA_FILE,
    "username": "",
    "prefer_https": True,
    "catalog_servers": list(CATALOG_SERVERS),
    "catalog_timeout": CATALOG_TIMEOUT_SECONDS,
    "shortener_url": "",
    "share_base_url": SHARE_BASE_URL,
    "starter_pack_base_url": STARTER_PACK_BASE_URL,
    "listening_tick_seconds": LISTENING_TICK_MS // 1000,
    "default_volume": DEFAULT_VOLUME,
}


def _config_dir() -> str:
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.getcwd()


def default_config_path() -> str:
    return os.environ.get(CONFIG_FILE_ENV) or os.path.join(_config_dir(), "config.json")


class JsonConfigAdapter(ConfigPort):

    def __init__(self, path: str | None = None):
        self.path = path or default_config_path()

    def load(self) -> dict:
        cfg = dict(_DEFAULTS)
        cfg["catalog_servers"] = list(_DEFAULTS["catalog_servers"])
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                stored = json.load(f)
            if isinstance(stored, dict):
                cfg.update(stored)
            else:
                logger.warning("Ignoring config file %s: top-level value is not an object", self.path)
        return cfg

    def save(self, cfg: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(cfg, f, indent=2)

    def is_configured(self) -> bool:
        return bool(self.load().get("username"))
