media_sql = """
CREATE TYPE media_type AS ENUM ('image', 'video', 'other');

CREATE TABLE media (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    media_url TEXT NOT NULL,
    media_type media_type NOT NULL DEFAULT 'image',
    file_name TEXT NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now(),

    likes TEXT[] NOT NULL DEFAULT '{}',
    likes_count INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX media_timestamp ON media (timestamp DESC);
"""
