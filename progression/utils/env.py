import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ROOT_MARKERS = ('pyproject.toml', '.git')

ENV_FILES = {
    'prod': '.env.prod',
    'production': '.env.prod',
    'test': '.env.test',
}


def find_project_root(start: Optional[Path] = None) -> Path:
    here = (start or Path(__file__)).resolve()
    current = here if here.is_dir() else here.parent
    for candidate in (current, *current.parents):
        if any((candidate / m).exists() for m in ROOT_MARKERS):
            return candidate
    return current


def env_filename() -> str:
    explicit = os.getenv('ENV_FILE')
    if explicit:
        return explicit
    env = (os.getenv('ENV') or os.getenv('PYTHON_ENV') or 'local').lower()
    return ENV_FILES.get(env, '.env.local')


def load_env(override: bool = False, root: Optional[Path] = None) -> Optional[Path]:
    '''Load the env file for the current ENV, falling back to plain .env.

    Returns the file that was loaded, or None when nothing was found.
    '''
    base = root or find_project_root()
    target = Path(env_filename())
    if not target.is_absolute():
        target = base / target

    for path in (target, base / '.env'):
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
            logger.debug(f'Loaded environment from {path}')
            return path

    logger.debug(f'No env file found under {base}')
    return None
