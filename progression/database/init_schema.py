import logging

from progression.database.db_manager import DBManager

logger = logging.getLogger(__name__)


def init_schema(db: DBManager):
    '''Create the database schema if it doesn't already exist.'''

    # --- USER PROGRESS TABLE (one row per user) ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id TEXT PRIMARY KEY,
            total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
            category_progress JSONB NOT NULL DEFAULT '{}'::jsonb,
            unlocked_achievement_ids JSONB NOT NULL DEFAULT '[]'::jsonb,
            last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        '''
    )

    # --- XP LEDGER (append-only) ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES user_progress(user_id) ON DELETE CASCADE,
            amount INTEGER NOT NULL CHECK (amount >= 0),
            source TEXT NOT NULL,
            category TEXT CHECK (category IN ('core', 'push', 'pull', 'legs')),
            description TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        '''
    )

    # --- ACHIEVEMENTS (seeded static rows + dynamic definitions) ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS achievements (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL UNIQUE,
            description TEXT NOT NULL DEFAULT '',
            type TEXT NOT NULL DEFAULT 'milestone',
            icon TEXT NOT NULL DEFAULT 'award',
            badge_color TEXT,
            requirements JSONB NOT NULL DEFAULT '{}'::jsonb,
            xp_reward INTEGER NOT NULL DEFAULT 0 CHECK (xp_reward >= 0),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        '''
    )

    # --- MIGRATIONS TABLE ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS migrations (
            id SERIAL PRIMARY KEY,
            filename TEXT NOT NULL UNIQUE,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        '''
    )

    # --- INDEXES ---
    db.execute(
        'CREATE INDEX IF NOT EXISTS idx_xp_transactions_user_id '
        'ON xp_transactions(user_id, id);'
    )
    logger.debug('Schema verified')
