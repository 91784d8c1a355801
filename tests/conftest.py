"""Pytest fixtures: an in-memory stand-in for the Supabase client.

Covers the slice of the SDK the services use: auth (including the admin
API), table queries, rpc and storage buckets. Like PostgREST it rejects
non-uuid values for uuid columns, and the profile functions raise when the
profile row is missing. Failures can be injected per rpc name, per insert
table, or for every execute.
"""

import copy
import uuid
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError
from supabase import AuthError as SupabaseAuthError

from garden_backend.modules.gardens.service import GardenRepository
from garden_backend.modules.session.service import SessionManager
from garden_backend.modules.session.storage import SupabaseImageStorage

UUID_COLUMNS = {("gardens", "id"), ("users", "id")}


def api_error(message: str, code: str) -> APIError:
    return APIError({"message": message, "code": code, "hint": None, "details": None})


def check_uuid(table: str, column: str, value) -> None:
    if (table, column) not in UUID_COLUMNS:
        return
    try:
        uuid.UUID(str(value))
    except ValueError:
        raise api_error(f'invalid input syntax for type uuid: "{value}"', "22P02")


class FakeAuthApiError(SupabaseAuthError):
    def __init__(self, message: str, code: str, status: int = 400):
        Exception.__init__(self, message)
        self.message = message
        self.code = code
        self.status = status


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client, table: str):
        self.client = client
        self.table_name = table
        self.operation = None
        self.payload = None
        self.filters = []
        self.single = False
        self.row_limit = None

    def select(self, columns: str = "*"):
        self.operation = self.operation or "select"
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = data
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, column, value):
        check_uuid(self.table_name, column, value)
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        for value in values:
            check_uuid(self.table_name, column, value)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def limit(self, count: int):
        self.row_limit = count
        return self

    def maybe_single(self):
        self.single = True
        return self

    def execute(self):
        self.client.maybe_fail()
        rows = self.client.tables.setdefault(self.table_name, [])
        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.operation == "insert":
            if self.table_name in self.client.fail_insert:
                raise self.client.fail_insert[self.table_name]
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in items:
                row = copy.deepcopy(item)
                row.setdefault("id", str(uuid.uuid4()))
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)
        if self.operation == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matched))
        if self.operation == "delete":
            self.client.tables[self.table_name] = [row for row in rows if row not in matched]
            return FakeResponse(copy.deepcopy(matched))

        if self.row_limit is not None:
            matched = matched[:self.row_limit]
        if self.single:
            # Recent postgrest clients return None instead of an empty response
            return FakeResponse(copy.deepcopy(matched[0])) if matched else None
        return FakeResponse(copy.deepcopy(matched))


class FakeRpc:
    def __init__(self, client, name: str, params: dict):
        self.client = client
        self.name = name
        self.params = params

    def execute(self):
        self.client.maybe_fail()
        self.client.rpc_calls.append((self.name, dict(self.params)))
        if self.name in self.client.fail_rpc:
            raise self.client.fail_rpc[self.name]
        if self.name == "profile_email_exists":
            email = self.params["p_email"].lower()
            return FakeResponse(any(u["email"].lower() == email for u in self.client.tables.get("users", [])))

        users = [u for u in self.client.tables.get("users", []) if u["id"] == self.params["p_user_id"]]
        if not users:
            raise api_error(f"profile {self.params['p_user_id']} not found", "P0002")
        garden_id = self.params["p_garden_id"]
        for user in users:
            if self.name == "add_user_garden" and garden_id not in user["gardens"]:
                user["gardens"].append(garden_id)
            elif self.name == "remove_user_garden":
                user["gardens"] = [g for g in user["gardens"] if g != garden_id]
        return FakeResponse(None)


class FakeSubscription:
    def __init__(self, listeners: list, callback):
        self.listeners = listeners
        self.callback = callback

    def unsubscribe(self):
        if self.callback in self.listeners:
            self.listeners.remove(self.callback)


class FakeAdmin:
    def __init__(self, auth):
        self.auth = auth
        self.updates = []
        self.revoked = []
        self.deleted = []

    def update_user_by_id(self, uid, attributes):
        account = next(a for a in self.auth.accounts.values() if a["id"] == uid)
        self.updates.append((uid, attributes["email"]))
        account["email"] = attributes["email"]
        return SimpleNamespace(user=self.auth._user(account))

    def sign_out(self, jwt, scope="global"):
        self.revoked.append(jwt)
        self.auth.tokens.pop(jwt, None)

    def delete_user(self, uid, should_soft_delete=False):
        self.deleted.append(uid)
        self.auth.accounts = {e: a for e, a in self.auth.accounts.items() if a["id"] != uid}


class FakeAuth:
    def __init__(self, obfuscate_duplicates: bool = False):
        self.accounts = {}
        self.tokens = {}
        self.listeners = []
        self.current_user = None
        self.obfuscate_duplicates = obfuscate_duplicates
        self.reset_requests = []
        self.email_change_requests = []
        self.admin = FakeAdmin(self)

    def _user(self, account, identities=None):
        if identities is None:
            identities = [SimpleNamespace(provider="email")]
        return SimpleNamespace(id=account["id"], email=account["email"], identities=identities)

    def _signed_in(self, account):
        user = self._user(account)
        token = f"token-{account['id']}"
        self.tokens[token] = account
        self.current_user = account
        session = SimpleNamespace(access_token=token, user=user)
        for listener in list(self.listeners):
            listener("SIGNED_IN", session)
        return SimpleNamespace(user=user, session=session)

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.accounts:
            if self.obfuscate_duplicates:
                fake = {"id": str(uuid.uuid4()), "email": email}
                return SimpleNamespace(user=self._user(fake, identities=[]), session=None)
            raise FakeAuthApiError("User already registered", code="user_already_exists")
        if len(credentials["password"]) < 6:
            raise FakeAuthApiError("Password should be at least 6 characters", code="weak_password", status=422)
        account = {"id": str(uuid.uuid4()), "email": email, "password": credentials["password"]}
        self.accounts[email] = account
        return self._signed_in(account)

    def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            raise FakeAuthApiError("Invalid login credentials", code="invalid_credentials")
        return self._signed_in(account)

    def get_user(self, jwt=None):
        account = self.tokens.get(jwt)
        if account is None:
            raise FakeAuthApiError("invalid JWT", code="bad_jwt", status=401)
        return SimpleNamespace(user=self._user(account))

    def sign_out(self):
        self.current_user = None
        for listener in list(self.listeners):
            listener("SIGNED_OUT", None)

    def reset_password_for_email(self, email, options=None):
        self.reset_requests.append(email)

    def update_user(self, attributes):
        if self.current_user is None:
            raise FakeAuthApiError("Auth session missing!", code="session_not_found", status=401)
        self.email_change_requests.append((self.current_user["id"], attributes["email"]))
        # The address only changes once the user confirms it
        return SimpleNamespace(user=self._user(self.current_user))

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return FakeSubscription(self.listeners, callback)


class FakeBucket:
    def __init__(self, storage, name: str):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        upsert = (file_options or {}).get("upsert") == "true"
        if (self.name, path) in self.storage.objects and not upsert:
            raise Exception({"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"})
        self.storage.objects[(self.name, path)] = file
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return []


class FakeStorage:
    def __init__(self):
        self.objects = {}

    def from_(self, bucket: str):
        return FakeBucket(self, bucket)


class FakePostgrest:
    def __init__(self):
        self.tokens = []

    def auth(self, token):
        self.tokens.append(token)
        return self


class FakeSupabase:
    def __init__(self, obfuscate_duplicates: bool = False):
        self.auth = FakeAuth(obfuscate_duplicates)
        self.storage = FakeStorage()
        self.postgrest = FakePostgrest()
        self.tables = {"users": [], "gardens": []}
        self.rpc_calls = []
        self.fail_rpc = {}
        self.fail_insert = {}
        self.fail_execute = None

    def table(self, name: str):
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict):
        return FakeRpc(self, name, params)

    def maybe_fail(self):
        if self.fail_execute is not None:
            raise self.fail_execute


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def image_storage(supabase):
    return SupabaseImageStorage(supabase, bucket_name="profile-images")


@pytest.fixture
def manager(supabase, image_storage):
    return SessionManager(supabase, image_storage=image_storage)


@pytest.fixture
def session(manager):
    return manager.register("gardener@example.com", "s3cret-pass")


@pytest.fixture
def repository(supabase, session):
    return GardenRepository(supabase, session)
