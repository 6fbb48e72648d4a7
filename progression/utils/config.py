import os
from dataclasses import dataclass

from progression.utils.constants import XP_PER_LEVEL


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return float(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class Settings:
    '''Runtime knobs for the engine and its Postgres adapter.'''

    xp_per_level: int = XP_PER_LEVEL
    max_save_attempts: int = 5
    cascade_unlocks: bool = False
    db_statement_timeout_ms: int = 5000
    db_pool_timeout_s: float = 5.0
    db_pool_max_size: int = 10

    def __post_init__(self) -> None:
        if self.xp_per_level <= 0:
            raise ValueError('xp_per_level must be positive')
        if self.max_save_attempts < 1:
            raise ValueError('max_save_attempts must be at least 1')

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            xp_per_level=_env_int('PROGRESSION_XP_PER_LEVEL', XP_PER_LEVEL),
            max_save_attempts=_env_int('PROGRESSION_MAX_SAVE_ATTEMPTS', 5),
            cascade_unlocks=_env_bool('PROGRESSION_CASCADE_UNLOCKS', False),
            db_statement_timeout_ms=_env_int('DB_STATEMENT_TIMEOUT_MS', 5000),
            db_pool_timeout_s=_env_float('DB_POOL_TIMEOUT_S', 5.0),
            db_pool_max_size=_env_int('DB_POOL_MAX_SIZE', 10),
        )
