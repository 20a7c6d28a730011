"""
Shared fixtures: a run context over a temporary storage directory.
"""

import pytest

from app.config import ScraperInput, Settings
from core.run_state import RunContext
from core.storage import Dataset, KeyValueStore
from pipeline.snapshot import DiagnosticsRecorder


@pytest.fixture
def make_context(tmp_path):
    def factory(**input_fields):
        input_fields.setdefault("searchQuery", "nurse")
        store = KeyValueStore(tmp_path)
        return RunContext(
            input=ScraperInput(**input_fields),
            settings=Settings(storage_dir=str(tmp_path)),
            dataset=Dataset(tmp_path),
            store=store,
            diagnostics=DiagnosticsRecorder(store),
        )
    return factory
