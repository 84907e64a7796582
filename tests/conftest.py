import pytest
from fastapi.testclient import TestClient

from filevault.core.config import Settings
from filevault.main import create_app
from filevault.models.database import make_engine
from filevault.services.blobs import BlobManager, LocalBlobBackend
from filevault.services.identity import IdentityManager, PasswordVerifier
from filevault.services.metadata import MetadataStore
from filevault.services.namespace import Namespace

# Real hashing is deliberately slow, tests do not need that
FAST_HASH = "pbkdf2:sha256:1000"


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, password_hash_method=FAST_HASH, secret_key="unittest")


@pytest.fixture
def store(settings):
    return MetadataStore(make_engine(settings.database_url))


@pytest.fixture
def blobs(settings):
    return BlobManager(LocalBlobBackend(settings.blob_dir), settings.max_upload_bytes, settings.allowed_extensions)


@pytest.fixture
def identity(store):
    return IdentityManager(store, PasswordVerifier(FAST_HASH))


@pytest.fixture
def namespace(store, blobs):
    return Namespace(store, blobs)


@pytest.fixture
def alice(identity):
    return identity.register("alice@example.com", "alice", "pw123")


@pytest.fixture
def bob(identity):
    return identity.register("bob@example.com", "bob", "hunter2")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as client:
        yield client
