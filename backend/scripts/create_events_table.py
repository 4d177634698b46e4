from settings import settings
import psycopg

DDL = '''
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    amount_oz NUMERIC,
    created_at BIGINT NOT NULL,
    user_agent TEXT,
    source TEXT,
    note TEXT
);

CREATE INDEX IF NOT EXISTS idx_events_created_at ON events (created_at);
CREATE INDEX IF NOT EXISTS idx_events_type ON events (type);
CREATE INDEX IF NOT EXISTS idx_events_type_created_at ON events (type, created_at);

CREATE TABLE IF NOT EXISTS rate_limits (
    ip TEXT NOT NULL,
    window_start BIGINT NOT NULL,
    request_count INTEGER NOT NULL DEFAULT 1,
    PRIMARY KEY (ip, window_start)
);

CREATE TABLE IF NOT EXISTS idempotency_keys (
    key_hash TEXT PRIMARY KEY,
    created_at BIGINT NOT NULL
);
'''

print('Connecting to', settings.db_url)
with psycopg.connect(settings.db_url, connect_timeout=5) as conn:
    with conn.cursor() as cur:
        cur.execute(DDL)
    conn.commit()
print('DDL applied')
