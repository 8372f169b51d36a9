from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    max_players: int = 6
    max_bots: int = 3
    bot_delay: float = 0.8
    ready_delay: float = 2.0
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    defaults = Settings()
    return Settings(
        max_players=int(env.get("OBLECH_MAX_PLAYERS", defaults.max_players)),
        max_bots=int(env.get("OBLECH_MAX_BOTS", defaults.max_bots)),
        bot_delay=float(env.get("OBLECH_BOT_DELAY", defaults.bot_delay)),
        ready_delay=float(env.get("OBLECH_READY_DELAY", defaults.ready_delay)),
        log_level=env.get("OBLECH_LOG_LEVEL", defaults.log_level).upper(),
        host=env.get("OBLECH_HOST", defaults.host),
        port=int(env.get("OBLECH_PORT", defaults.port)),
    )
