chat_rooms_sql = """
CREATE TABLE chat_rooms (
    -- sorted participant ids joined with '_'
    id TEXT PRIMARY KEY,

    participants TEXT[] NOT NULL,

    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    last_message_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    last_message_text TEXT NOT NULL DEFAULT '',

    -- Exactly two participants per room
    CONSTRAINT two_participants CHECK (cardinality(participants) = 2)
);
"""

messages_sql = """
CREATE TABLE messages (
    id TEXT PRIMARY KEY,
    room_id TEXT NOT NULL REFERENCES chat_rooms(id) ON DELETE CASCADE,

    sender_id TEXT NOT NULL,
    receiver_id TEXT NOT NULL,

    text TEXT NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now(),

    CONSTRAINT message_not_blank CHECK (length(btrim(text)) > 0)
);

CREATE INDEX messages_room_timestamp ON messages (room_id, timestamp);
"""
