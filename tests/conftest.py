import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

from storage.migrate import migrate
from config.settings import settings
from config.registry import TEXT_GEN_KEY, bind_model, unbind_model
from services.runtime import reset_runtime


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    reset_runtime()
    try:
        yield db_path
    finally:
        reset_runtime()
        unbind_model(TEXT_GEN_KEY)
        td.cleanup()


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_text_gen():
    """Bind a scripted text generator; append replies to ``replies`` and inspect ``calls``."""

    replies = []
    calls = []

    def generate(prompt, **kwargs):
        calls.append({"prompt": prompt, **kwargs})
        return replies.pop(0) if replies else "{}"

    bind_model(TEXT_GEN_KEY, generate)
    generate.replies = replies
    generate.calls = calls
    return generate
