import copy

import pytest
from fastapi.testclient import TestClient

from config import firebase_config, settings
from groups import create_group
from members import add_member


# =============================================================================
# In-memory Firestore
# =============================================================================

class FakeDocumentSnapshot:
    """Snapshot returned by FakeDocumentReference.get() and stream()."""

    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, documents, path):
        self._documents = documents
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    def collection(self, name):
        return FakeCollectionReference(self._documents, self._path + (name,))

    def set(self, data):
        self._documents[self._path] = copy.deepcopy(data)

    def update(self, changes):
        if self._path not in self._documents:
            raise KeyError(f"No document to update: {'/'.join(self._path)}")
        self._documents[self._path].update(copy.deepcopy(changes))

    def delete(self):
        self._documents.pop(self._path, None)

    def get(self):
        return FakeDocumentSnapshot(self.id, self._documents.get(self._path))


class FakeCollectionReference:
    def __init__(self, documents, path):
        self._documents = documents
        self._path = path

    def document(self, doc_id):
        return FakeDocumentReference(self._documents, self._path + (doc_id,))

    def stream(self):
        depth = len(self._path) + 1
        matches = [
            (path, data) for path, data in self._documents.items()
            if len(path) == depth and path[:-1] == self._path
        ]
        for path, data in sorted(matches):
            yield FakeDocumentSnapshot(path[-1], copy.deepcopy(data))


class FakeWriteBatch:
    """Collects writes and applies them together on commit()."""

    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data):
        self._ops.append(("set", ref, data))

    def update(self, ref, changes):
        self._ops.append(("update", ref, changes))

    def delete(self, ref):
        self._ops.append(("delete", ref, None))

    def commit(self):
        self._db.commits += 1
        for op, ref, data in self._ops:
            if op == "delete":
                ref.delete()
            else:
                getattr(ref, op)(data)
        self._ops = []


class FakeFirestore:
    def __init__(self):
        self.documents = {}
        self.commits = 0

    def collection(self, name):
        return FakeCollectionReference(self.documents, (name,))

    def batch(self):
        return FakeWriteBatch(self)

    def paths(self, *prefix):
        """Return stored document paths under a prefix, as strings."""
        return sorted(
            "/".join(path) for path in self.documents
            if path[:len(prefix)] == prefix
        )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def db(monkeypatch):
    """Install an in-memory Firestore as the client returned by get_db()."""
    fake = FakeFirestore()
    monkeypatch.setattr(firebase_config, "_client", fake)
    return fake


@pytest.fixture
def no_db(monkeypatch, tmp_path):
    """Make get_db() return None (credentials file missing)."""
    monkeypatch.setattr(firebase_config, "_client", None)
    monkeypatch.setattr(settings, "FIREBASE_CREDENTIALS", str(tmp_path / "missing.json"))


@pytest.fixture
def group(db):
    """Create and return a test group."""
    return create_group(name="Goa Trip", description="Beach weekend", created_by="alice@example.com")


@pytest.fixture
def alice(group):
    return add_member(group.group_id, "Alice", "alice@example.com")


@pytest.fixture
def bob(group, alice):
    return add_member(group.group_id, "Bob", "bob@example.com")


@pytest.fixture
def carol(group, bob):
    return add_member(group.group_id, "Carol", "carol@example.com")


@pytest.fixture
def members(alice, bob, carol):
    """Three members of the test group: M001, M002, M003."""
    return [alice, bob, carol]


@pytest.fixture
def api_client(db):
    """Return an API client backed by the in-memory Firestore."""
    from main import app
    return TestClient(app)
