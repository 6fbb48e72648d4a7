import logging
import os
import sys


def resolve_level(default: int = logging.INFO) -> int:
    name = (os.getenv('LOG_LEVEL') or '').strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_logging(level: int | None = None):
    '''Configure root logger for the entire codebase.'''
    logging.basicConfig(
        level=level if level is not None else resolve_level(),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # discord.py is chatty at INFO
    logging.getLogger('discord').setLevel(logging.WARNING)
