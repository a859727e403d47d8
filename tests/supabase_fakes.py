"""
In-process stand-ins for the parts of the supabase clients the backends use:
the synchronous PostgREST query builder, ``rpc`` and ``auth``, plus the async
Realtime channel surface.
"""
import copy
import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from postgrest.exceptions import APIError
from supabase import AuthApiError

from realtyshare.core.supabase_store import pg_array_literal


EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Mirrors the ON DELETE CASCADE foreign keys in the DDL.
PROFILE_CASCADES = {
    "profiles": [
        ("relationships", "requester"),
        ("relationships", "addressee"),
        ("presence", "id"),
        ("media", "owner_id"),
    ],
}


def api_error(message, code):
    return APIError({"message": message, "code": code, "hint": None, "details": None})


def _matches(row, filters):
    for operator, column, value in filters:
        stored = row.get(column)
        if operator == "eq":
            if isinstance(stored, list):
                stored = pg_array_literal(stored)
            if stored != value:
                return False
        elif operator == "is":
            if stored is not None:
                return False
        elif operator == "cs":
            if not set(value) <= set(stored or []):
                return False
    return True


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, database, table):
        self.database = database
        self.table = table
        self.action = "select"
        self.row = None
        self.filters = []
        self.order_by = None
        self.descending = False
        self.row_limit = None

    def select(self, *columns):
        self.action = "select"
        return self

    def insert(self, row):
        self.action, self.row = "insert", row
        return self

    def upsert(self, row):
        self.action, self.row = "upsert", row
        return self

    def update(self, row):
        self.action, self.row = "update", row
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def is_(self, column, value):
        self.filters.append(("is", column, value))
        return self

    def contains(self, column, values):
        self.filters.append(("cs", column, values))
        return self

    def order(self, column, desc=False):
        self.order_by, self.descending = column, desc
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def execute(self):
        return FakeResponse(self.database.run(self))


class FakeRpc:
    def __init__(self, database, function):
        self.database = database
        self.function = function

    def execute(self):
        if self.function != "server_now":
            raise api_error(f"function {self.function}() does not exist", "42883")
        return FakeResponse(self.database.now())


class FakeSupabase:
    """
    Tables are dicts keyed by ``id``. ``before_update`` holds one-shot hooks
    that run against the raw tables just before the next UPDATE, which is how
    tests stage a concurrent writer. ``failures`` maps a table to an error
    raised on any access.
    """

    def __init__(self, cascades=None):
        self.tables = {}
        self.cascades = cascades or {}
        self.before_update = []
        self.failures = {}
        self.rpc_calls = []
        self.auth = None
        self._lock = threading.Lock()
        self._tick = 0

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, function, params=None):
        self.rpc_calls.append(function)
        return FakeRpc(self, function)

    def now(self):
        with self._lock:
            self._tick += 1
            return (EPOCH + timedelta(seconds=self._tick)).isoformat()

    def run(self, query):
        with self._lock:
            if query.table in self.failures:
                raise self.failures[query.table]

            rows = self.tables.setdefault(query.table, {})

            if query.action == "insert":
                if query.row["id"] in rows:
                    raise api_error("duplicate key value violates unique constraint", "23505")
                rows[query.row["id"]] = copy.deepcopy(query.row)
                return [copy.deepcopy(query.row)]

            if query.action == "upsert":
                rows[query.row["id"]] = copy.deepcopy(query.row)
                return [copy.deepcopy(query.row)]

            if query.action == "update" and self.before_update:
                self.before_update.pop(0)(self.tables)

            selected = [row for row in rows.values() if _matches(row, query.filters)]

            if query.action == "select":
                if query.order_by:
                    selected.sort(
                        key=lambda row: (row.get(query.order_by) is None, row.get(query.order_by)),
                        reverse=query.descending,
                    )
                if query.row_limit is not None:
                    selected = selected[: query.row_limit]
                return copy.deepcopy(selected)

            if query.action == "update":
                for row in selected:
                    row.update(copy.deepcopy(query.row))
                return copy.deepcopy(selected)

            if query.action == "delete":
                for row in selected:
                    del rows[row["id"]]
                    self._cascade(query.table, row["id"])
                return copy.deepcopy(selected)

            raise ValueError(f"Unsupported action {query.action!r}")

    def _cascade(self, table, doc_id):
        for child, column in self.cascades.get(table, []):
            rows = self.tables.get(child, {})
            for key in [key for key, row in rows.items() if row.get(column) == doc_id]:
                del rows[key]


class FakeAuth:
    """The ``client.auth`` calls SupabaseIdentityProvider makes."""

    def __init__(self):
        self.users = {}
        self.signed_out = 0
        self.deleted = []
        self.admin = SimpleNamespace(delete_user=self._delete_user)

    def _response(self, user_id, email):
        return SimpleNamespace(
            user=SimpleNamespace(id=user_id, email=email),
            session=SimpleNamespace(
                access_token=f"access-{user_id}",
                refresh_token=f"refresh-{user_id}",
                expires_in=3600,
            ),
        )

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.users:
            raise self.error("User already registered", 422, "user_already_exists")
        self.users[email] = (f"uid-{len(self.users) + 1}", credentials["password"])
        return self._response(self.users[email][0], email)

    def sign_in_with_password(self, credentials):
        user_id, password = self.users.get(credentials["email"], (None, None))
        if user_id is None or password != credentials["password"]:
            raise self.error("Invalid login credentials", 400, "invalid_credentials")
        return self._response(user_id, credentials["email"])

    def refresh_session(self, refresh_token):
        for email, (user_id, _) in self.users.items():
            if refresh_token == f"refresh-{user_id}":
                return self._response(user_id, email)
        raise self.error("Invalid Refresh Token", 400, "refresh_token_not_found")

    def sign_out(self):
        self.signed_out += 1

    def _delete_user(self, user_id):
        self.deleted.append(user_id)
        for email, (uid, _) in list(self.users.items()):
            if uid == user_id:
                del self.users[email]

    @staticmethod
    def error(message, status, code):
        return AuthApiError(message, status, code)


class FakeChannel:
    def __init__(self, name):
        self.name = name
        self.callbacks = {}
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.callbacks[table] = callback
        return self

    async def subscribe(self, callback=None):
        self.subscribed = True
        return self


class FakeRealtimeClient:
    def __init__(self):
        self.channels = []
        self.removed = []

    def channel(self, name):
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel):
        self.removed.append(channel)


def postgres_change(kind, table, record=None, old_record=None):
    """A ``postgres_changes`` payload as Supabase Realtime delivers it."""
    return {
        "data": {
            "type": kind,
            "schema": "public",
            "table": table,
            "commit_timestamp": "2024-01-01T00:00:00Z",
            "record": record,
            "old_record": old_record,
            "columns": [],
            "errors": None,
        },
        "ids": [1],
    }
