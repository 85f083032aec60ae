import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GOOGLE_PLACES_API_KEY"] = ""
os.environ["RETRY_BASE_DELAY"] = "0"
os.environ["RETRY_MAX_DELAY"] = "0"
os.environ["IMAGE_BASE_URL"] = "https://cdn.example.com/business-images"
os.environ["SYNC_QUERY_DELAY"] = "0"

import ftplib
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from database import Base
from progress import ProgressTracker
from repository import BusinessRepository
from schemas import BusinessRecord
from sources.base import PhotoBundle, PhotoSource


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return BusinessRepository(db)


@pytest.fixture
def tracker():
    return ProgressTracker()


def make_business(business_id: str, name: Optional[str] = None, **fields) -> BusinessRecord:
    return BusinessRecord(id=business_id, name=name or f"Business {business_id}", **fields)


@pytest.fixture
def add_businesses(repo):
    def _add(*records: BusinessRecord):
        for record in records:
            repo.save_business(record)
        repo.commit()
    return _add


class FakeFTP:
    """In-memory stand-in for ftplib.FTP."""

    def __init__(self, server: "FakeFTPServer"):
        self.server = server
        self.path: List[str] = []

    def connect(self, host, port, timeout=None):
        self.server.connections += 1

    def login(self, user, password):
        pass

    def cwd(self, part):
        if part == "/":
            self.path = []
            return
        target = "/".join(self.path + [part])
        if target not in self.server.dirs:
            raise ftplib.error_perm(f"550 {part}: No such directory")
        self.path.append(part)

    def mkd(self, part):
        self.server.dirs.add("/".join(self.path + [part]))

    def storbinary(self, command, handle):
        if self.server.fail_next:
            error = self.server.fail_next.pop(0)
            raise error
        filename = command.split(" ", 1)[1]
        self.server.files["/".join(self.path + [filename])] = handle.read()

    def nlst(self):
        prefix = "/".join(self.path)
        return [p for p in self.server.files if p.startswith(prefix)]

    def pwd(self):
        return "/" + "/".join(self.path)

    def quit(self):
        pass

    def close(self):
        pass


class FakeFTPServer:
    def __init__(self):
        self.dirs = set()
        self.files: Dict[str, bytes] = {}
        self.connections = 0
        self.fail_next: List[Exception] = []

    def factory(self):
        return FakeFTP(self)


@pytest.fixture
def ftp_server():
    return FakeFTPServer()


class FakeUploader:
    """Records uploads and returns predictable URLs."""

    base_url = "https://cdn.example.com/business-images"

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.uploads: List[str] = []

    def _url(self, business_id, path):
        if business_id in self.fail_for:
            raise ConnectionError("FTP connection refused")
        self.uploads.append(path)
        return f"{self.base_url}/{path}"

    def upload_logo(self, business_id, data):
        return self._url(business_id, f"logos/logo-{business_id}.jpg")

    def upload_photo(self, business_id, index, data):
        return self._url(business_id, f"photos/photo-{business_id}-{index}.jpg")

    def test_connection(self):
        return {"host": "ftp.example.com", "user": "u", "remoteDir": "/public_html/business-images", "entries": 0, "baseUrl": self.base_url}


class FakePhotoSource(PhotoSource):
    """Returns one logo and a fixed number of photos, or raises for chosen ids."""

    name = "fake"

    def __init__(self, photos: int = 2, errors: Optional[Dict[str, Exception]] = None):
        super().__init__()
        self.photos = photos
        self.errors = errors or {}
        self.calls: List[str] = []

    def fetch(self, business):
        self.calls.append(business.id)
        if business.id in self.errors:
            raise self.errors[business.id]
        return PhotoBundle(logo=b"logo", photos=[b"photo"] * self.photos, method=self.name)
