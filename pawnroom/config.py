import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 4000
    # join on an unknown room code silently starts a new game when enabled
    join_creates_room: bool = False
    reset_requires_participant: bool = True
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Read settings from environment variables, falling back to defaults."""
        env = os.environ if env is None else env
        origins = env.get("PAWNROOM_CORS_ORIGINS", "*")
        return cls(
            host=env.get("PAWNROOM_HOST", cls.host),
            port=int(env.get("PORT", cls.port)),
            join_creates_room=_env_flag(env, "PAWNROOM_JOIN_CREATES_ROOM", False),
            reset_requires_participant=_env_flag(
                env, "PAWNROOM_RESET_REQUIRES_PARTICIPANT", True
            ),
            log_level=env.get("PAWNROOM_LOG_LEVEL", cls.log_level).upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
