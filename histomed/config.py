# histomed/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_STORAGE_QUOTA = 5 * 1024 * 1024  # ~ localStorage de um navegador


def _get_env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _get_int_env(name: str, default: int) -> int:
    raw = _get_env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[CONFIG] %s=%r não é um inteiro, usando %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_MODEL
    gemini_vision_model: str = DEFAULT_MODEL
    supabase_url: str = ""
    supabase_anon_key: str = ""
    admin_password: str = DEFAULT_ADMIN_PASSWORD
    data_dir: str = str(Path.home() / ".histomed_atlas")
    storage_quota_bytes: int = DEFAULT_STORAGE_QUOTA
    log_level: str = "INFO"

    @staticmethod
    def from_env(dotenv: bool = True) -> "Settings":
        """
        Lê a configuração do ambiente (e do .env, se existir).
        """
        if dotenv:
            load_dotenv()
        return Settings(
            gemini_api_key=_get_env("GEMINI_API_KEY"),
            gemini_model=_get_env("GEMINI_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
            gemini_vision_model=_get_env("GEMINI_VISION_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
            supabase_url=_get_env("SUPABASE_URL"),
            supabase_anon_key=_get_env("SUPABASE_ANON_KEY"),
            admin_password=_get_env("HISTOMED_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD) or DEFAULT_ADMIN_PASSWORD,
            data_dir=_get_env("HISTOMED_DATA_DIR") or str(Path.home() / ".histomed_atlas"),
            storage_quota_bytes=_get_int_env("HISTOMED_STORAGE_QUOTA", DEFAULT_STORAGE_QUOTA),
            log_level=(_get_env("HISTOMED_LOG_LEVEL", "INFO") or "INFO").upper(),
        )

    @property
    def has_gemini(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
