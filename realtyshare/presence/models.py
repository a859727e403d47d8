presence_sql = """
CREATE TYPE presence_state AS ENUM ('online', 'away', 'offline');

CREATE TABLE presence (
    id TEXT PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
    state presence_state NOT NULL DEFAULT 'offline',
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""
