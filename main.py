import asyncio

from progression.bot import main as run
from progression.database import start_db
from progression.database.db_manager import DBManager
from progression.utils.config import Settings
from progression.utils.env import load_env
from progression.utils.logs import setup_logging

if __name__ == '__main__':
    load_env()
    setup_logging()
    DBManager.configure(Settings.from_env())

    with DBManager() as db:
        # Schema, migrations and static achievement rows
        start_db.run(db)

    asyncio.run(run())
