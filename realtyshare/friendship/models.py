relationships_sql = """
CREATE TYPE relationship_status AS ENUM ('pending', 'friends');

CREATE TABLE relationships (
    -- sorted participant ids joined with '_'
    id TEXT PRIMARY KEY,

    participants TEXT[] NOT NULL,
    requester TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    addressee TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,

    status relationship_status NOT NULL,

    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),

    -- Prevent a user from sending a request to themselves
    CONSTRAINT prevent_self_request CHECK (requester <> addressee)
);

CREATE INDEX relationships_participants ON relationships USING GIN (participants);
"""
