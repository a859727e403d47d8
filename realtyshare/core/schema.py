"""
Postgres DDL for the supabase backend, in dependency order. Every
collection the services write to is a table with a TEXT ``id`` primary key.
"""
from realtyshare.chat.models import chat_rooms_sql, messages_sql
from realtyshare.friendship.models import relationships_sql
from realtyshare.media.models import media_sql
from realtyshare.presence.models import presence_sql
from realtyshare.profiles.models import profiles_sql


TABLES = ("profiles", "relationships", "chat_rooms", "messages", "presence", "media")

server_now_sql = """
-- Commit timestamps come from the database clock, not the app servers'.
CREATE FUNCTION server_now() RETURNS TIMESTAMPTZ
LANGUAGE sql STABLE AS $$ SELECT clock_timestamp() $$;
"""

# Old rows must be published in full so live filters can see what a row left.
realtime_sql = "\n".join(
    f"ALTER TABLE {table} REPLICA IDENTITY FULL;\n"
    f"ALTER PUBLICATION supabase_realtime ADD TABLE {table};"
    for table in TABLES
)

SCHEMA_SQL = "\n".join(
    [
        profiles_sql,
        relationships_sql,
        chat_rooms_sql,
        messages_sql,
        presence_sql,
        media_sql,
        server_now_sql,
        realtime_sql,
    ]
)
