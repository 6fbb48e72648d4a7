import importlib.util
import logging
import os

from progression.achievements.definitions import ACHIEVEMENTS
from progression.database.db_manager import DBManager
from progression.database.init_schema import init_schema
from progression.models.achievement import Achievement

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), 'migrations'
)


def pending_migrations(
    applied: set[str], migrations_dir: str = MIGRATIONS_DIR
) -> list[str]:
    '''Migration files not yet applied, in filename (timestamp) order.'''
    if not os.path.isdir(migrations_dir):
        return []
    return sorted(
        f
        for f in os.listdir(migrations_dir)
        if f.endswith('.py') and not f.startswith('__') and f not in applied
    )


def run_migrations(db: DBManager, migrations_dir: str = MIGRATIONS_DIR) -> list[str]:
    rows = db.fetchall('SELECT filename FROM migrations')
    applied = {row['filename'] for row in rows}
    ran: list[str] = []
    for filename in pending_migrations(applied, migrations_dir):
        filepath = os.path.join(migrations_dir, filename)
        module_name = f'migration_{filename.replace(".py", "")}'
        try:
            spec = importlib.util.spec_from_file_location(module_name, filepath)
            if spec is None or spec.loader is None:
                raise ImportError(f'Could not load migration module: {filename}')
            migration = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(migration)
            if not hasattr(migration, 'up'):
                logger.error(f'Skipping {filename}: no `up()` function found.')
                continue
            logger.info(f'Running migration: {filename}')
            migration.up(db)
            db.execute('INSERT INTO migrations (filename) VALUES (%s)', (filename,))
            ran.append(filename)
        except Exception:
            logger.error(f'Error running migration {filename}', exc_info=True)
            raise
    return ran


def seed_achievements(db: DBManager) -> int:
    '''Mirror the static catalog into the achievements table (idempotent).'''
    for definition in ACHIEVEMENTS:
        Achievement.upsert_definition(definition, db=db)
    return len(ACHIEVEMENTS)


def run(db: DBManager):
    '''Run full DB setup: schema, migrations, catalog seed.'''
    init_schema(db)
    logger.info('Database tables created/verified.')
    ran = run_migrations(db)
    logger.info(f'Migrations complete ({len(ran)} applied).')
    seeded = seed_achievements(db)
    logger.info(f'Seeded {seeded} static achievements.')


if __name__ == '__main__':
    from progression.utils.env import load_env
    from progression.utils.logs import setup_logging

    setup_logging()
    load_env()
    with DBManager() as _db:
        run(_db)
