import os
from collections import Counter

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("GOOGLE_SHEET_ID", "test-sheet")

from tradeboard.config import settings
from tradeboard.context import assemble
from tradeboard.errors import EmptyRangeError, InvalidTokenError
from tradeboard.main import create_app

ALICE = {
    "uid": "uid-alice",
    "email": "alice@example.com",
    "name": "Alice Trader",
    "phone_number": "+15550100",
}
BOB = {"uid": "uid-bob", "email": "bob@example.com"}


class FakeSheets:
    def __init__(self, ranges=None):
        self.ranges = {k: [list(r) for r in v] for k, v in (ranges or {}).items()}
        self.reads = Counter()
        self.appended = []
        self.fail = None

    async def read_range(self, rng, value_render="UNFORMATTED_VALUE", datetime_render=None):
        self.reads[rng] += 1
        if self.fail is not None:
            raise self.fail
        rows = self.ranges.get(rng) or []
        if not rows:
            raise EmptyRangeError(detail=f"no rows in {rng}")
        return [list(r) for r in rows]

    async def append_row(self, rng, row):
        self.ranges.setdefault(rng, []).append(list(row))
        self.appended.append((rng, list(row)))
        return {"updates": {"updatedRange": rng, "updatedRows": 1}}


class FakeIdentity:
    def __init__(self, tokens=None):
        self.tokens = dict(tokens or {})
        self.minted = []

    async def verify_id_token(self, token):
        if token not in self.tokens:
            raise InvalidTokenError()
        return dict(self.tokens[token])

    async def create_custom_token(self, uid):
        self.minted.append(uid)
        return f"custom-{uid}"


def auth(token="alice-token"):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sheets():
    return FakeSheets()


@pytest.fixture
def identity():
    return FakeIdentity({"alice-token": ALICE, "bob-token": BOB})


@pytest.fixture
def make_client(sheets, identity):
    clients = []

    def _make(**overrides):
        cfg = settings.model_copy(update=overrides)
        ctx = assemble(cfg, sheets, identity)
        client = TestClient(create_app(ctx), raise_server_exceptions=False)
        clients.append(client)
        return client, ctx

    yield _make
    for client in clients:
        client.close()
