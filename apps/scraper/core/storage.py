"""
Filesystem storage for run output.

Two stores live under one base directory:
1. Dataset - append-only JSON lines of job records
2. Key-value store - debug dumps, screenshots and the run summary
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r'[^A-Za-z0-9_.-]')

_EXTENSIONS = {
    "application/json": ".json",
    "text/html": ".html",
    "text/plain": ".txt",
    "image/png": ".png",
}


class Dataset:
    """Append-only sequence of records stored as JSON lines."""

    def __init__(self, base_path: Union[str, Path], name: str = "default"):
        self.base_path = Path(base_path) / "datasets"
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.file_path = self.base_path / f"{name}.jsonl"
        logger.info(f"Dataset initialized: {self.file_path}")

    def push_data(self, records: Iterable[Dict[str, Any]]) -> int:
        """Append one batch of records. Returns the number written."""
        rows = list(records)
        if not rows:
            return 0
        with open(self.file_path, 'a', encoding='utf-8') as f:
            for row in rows:
                f.write(json.dumps(row, ensure_ascii=False) + "\n")
        logger.debug(f"Pushed {len(rows)} record(s) to {self.file_path}")
        return len(rows)

    def read_all(self) -> List[Dict[str, Any]]:
        if not self.file_path.exists():
            return []
        with open(self.file_path, 'r', encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]


class KeyValueStore:
    """Key-value store backed by one file per key."""

    def __init__(self, base_path: Union[str, Path], name: str = "default"):
        self.base_path = Path(base_path) / "key_value_stores" / name
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Key-value store initialized: {self.base_path}")

    def _path(self, key: str, content_type: str) -> Path:
        safe_key = _KEY_RE.sub('_', key)
        return self.base_path / f"{safe_key}{_EXTENSIONS.get(content_type, '.bin')}"

    def set_value(self, key: str, value: Any, content_type: str = "application/json") -> Optional[Path]:
        """
        Store a value.

        JSON content is serialized; text is written as UTF-8; bytes as-is.

        Returns:
            Path written, or None on failure
        """
        path = self._path(key, content_type)
        try:
            if content_type == "application/json":
                path.write_text(json.dumps(value, indent=2, ensure_ascii=False, default=str), encoding='utf-8')
            elif isinstance(value, bytes):
                path.write_bytes(value)
            else:
                path.write_text(str(value), encoding='utf-8')
            logger.debug(f"Stored {key} at {path}")
            return path
        except OSError as e:
            logger.error(f"Error storing {key}: {e}")
            return None

    def get_value(self, key: str, content_type: str = "application/json") -> Optional[Any]:
        path = self._path(key, content_type)
        if not path.exists():
            return None
        if content_type == "application/json":
            return json.loads(path.read_text(encoding='utf-8'))
        if content_type.startswith("text/"):
            return path.read_text(encoding='utf-8')
        return path.read_bytes()
