"""
PyTest configuration and fixtures.
"""

import asyncio
import copy
import time

import pytest
from fastapi.testclient import TestClient

from badminton_api.config import load_settings
from badminton_api.engines import MOCK_RESULTS
from badminton_api.main import create_app
from badminton_api.storage import StorageManager
from badminton_api.tasks import AnalysisTracker


class FakeEngine:
    """Analysis engine double: returns `results`, raises `error`, or waits on `gate`."""

    name = "fake"

    def __init__(self, results=None, error=None, delay_s=0.0):
        self.results = copy.deepcopy(MOCK_RESULTS) if results is None else results
        self.error = error
        self.delay_s = delay_s
        self.gate = None
        self.calls = []
        self.closed = False

    async def analyze(self, artifact_location):
        self.calls.append(artifact_location)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.results

    async def close(self):
        self.closed = True


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def storage(data_dir):
    return StorageManager(data_dir)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def make_tracker(storage, engine):
    """Build a tracker inside the running test loop."""

    def _make(timeout_s=5.0, worker_count=0, max_concurrent=4, engine_override=None):
        return AnalysisTracker(
            storage,
            engine_override or engine,
            timeout_s=timeout_s,
            worker_count=worker_count,
            max_concurrent=max_concurrent,
        )

    return _make


@pytest.fixture
def make_record(storage):
    """Store a small artifact and create a pending record for it."""

    def _make(owner_id="u1", tenant_id="s1"):
        artifact_id, path = storage.save_artifact(b"\x00\x00\x00\x18ftypmp42", "rally.mp4")
        return storage.create_record(
            record_id=storage.generate_record_id(),
            owner_id=owner_id,
            tenant_id=tenant_id,
            artifact_id=artifact_id,
            artifact_location=path,
            mime_type="video/mp4",
        )

    return _make


def build_settings(data_dir, **overrides):
    values = dict(
        data_dir=data_dir,
        analysis_delay_s=0.0,
        analysis_timeout_s=5.0,
        public_base_url="http://testserver",
        worker_count=1,
    )
    values.update(overrides)
    return load_settings(environ={}, **values)


@pytest.fixture
def settings(data_dir):
    return build_settings(data_dir)


@pytest.fixture
def client(settings, engine):
    """Test client with a running tracker and the fake engine."""
    app = create_app(settings, engine=engine)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def idle_client(data_dir, engine):
    """Test client whose tracker has no workers, so uploads stay pending."""
    app = create_app(build_settings(data_dir, worker_count=0), engine=engine)
    with TestClient(app) as test_client:
        yield test_client


def upload(client, content=b"\x00" * 1024, mime_type="video/mp4", filename="rally.mp4",
           user_id="u1", shop_id="s1"):
    files = {"video": (filename, content, mime_type)}
    data = {}
    if user_id is not None:
        data["userId"] = user_id
    if shop_id is not None:
        data["shopId"] = shop_id
    return client.post("/api/upload-video", files=files, data=data)


def wait_for_terminal(client, video_id, timeout_s=5.0):
    """Poll the analysis endpoint until completed/failed; returns the list of observed states."""
    deadline = time.monotonic() + timeout_s
    observed = []
    while time.monotonic() < deadline:
        body = client.get(f"/api/analysis/{video_id}").json()
        observed.append(body["analysis"]["status"])
        if observed[-1] in ("completed", "failed"):
            return observed, body
        time.sleep(0.02)
    raise AssertionError(f"analysis {video_id} did not finish; saw {observed}")
