profiles_sql = """
CREATE TYPE user_role AS ENUM ('user', 'admin');

CREATE TABLE profiles (
    -- auth.users id
    id TEXT PRIMARY KEY,

    email TEXT NOT NULL,
    display_name TEXT,
    bio TEXT,
    is_private BOOLEAN DEFAULT FALSE,
    profile_picture_url TEXT,
    role user_role NOT NULL DEFAULT 'user',

    chat_rooms TEXT[] NOT NULL DEFAULT '{}',

    created_at TIMESTAMPTZ DEFAULT now()
);
"""
