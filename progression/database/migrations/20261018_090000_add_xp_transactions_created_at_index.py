def up(db):
    # history-by-day views scan the ledger by time
    db.execute(
        'CREATE INDEX IF NOT EXISTS idx_xp_transactions_created_at '
        'ON xp_transactions(user_id, created_at);'
    )
