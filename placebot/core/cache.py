"""JSON file cache for upstream responses.

One file per key under `<base_dir>/<namespace>/<key>.json`. The cache is an
optimization only: a failed save is logged and the computed value is still
returned, and an unreadable entry is treated as a miss. A computed `None`
means "nothing found" and is not stored. There is no TTL,
callers pass `force_refresh=True` when they want fresh data.

Usage:
------
cache = SourceCache(Path(".cache"), "wikipedia")
page = await cache.load_or_fetch("fr_Lac_d_Annecy", lambda: client.fetch_page(...))
"""

import asyncio
import hashlib
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Tuple

from placebot.utils.logger import LoggerManager


CACHE_SUFFIX = ".json"

_UNSAFE_KEY_CHARS = re.compile(r"[^\w.\-]+")


class SourceCache:
    """Persisted key/value store with load-or-compute semantics.

    Attributes:
        directory: Folder holding this namespace's entries
    """

    def __init__(self, base_dir: Path, namespace: str):
        self.directory = Path(base_dir) / namespace
        self.namespace = namespace
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = LoggerManager.get_logger(__name__)

    def path_for(self, key: str) -> Path:
        """File backing `key`. Keys that are not filename-safe get a hash suffix."""
        safe = _UNSAFE_KEY_CHARS.sub("_", key).strip("._") or "_"
        if safe != key:
            digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:10]
            safe = f"{safe}-{digest}"
        return self.directory / f"{safe}{CACHE_SUFFIX}"

    async def load_or_fetch(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
    ) -> Any:
        """Return the stored value for `key`, computing and storing it on a miss.

        Args:
            key: Cache key
            compute: Zero-argument coroutine factory producing a JSON-serializable value
            force_refresh: Skip the lookup and overwrite the entry

        Returns:
            The cached or freshly computed value
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if not force_refresh:
                hit, value = self._load(key)
                if hit:
                    self.logger.debug(
                        "cache.hit",
                        extra={"extra_data": {"namespace": self.namespace, "key": key}},
                    )
                    return value

            value = await compute()
            if value is not None:
                self._save(key, value)
            return value

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    def clear(self) -> int:
        """Remove every entry in this namespace. Returns how many files were removed."""
        if not self.directory.exists():
            return 0
        removed = 0
        for path in self.directory.glob(f"*{CACHE_SUFFIX}"):
            path.unlink()
            removed += 1
        self.logger.info(
            "cache.cleared",
            extra={"extra_data": {"namespace": self.namespace, "removed": removed}},
        )
        return removed

    def _load(self, key: str) -> Tuple[bool, Any]:
        path = self.path_for(key)
        if not path.exists():
            return False, None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return True, json.load(f)
        except Exception as e:
            self.logger.warning(
                "cache.load.fail",
                extra={"extra_data": {"path": str(path), "error": str(e)}},
            )
            return False, None

    def _save(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=".tmp-", suffix=CACHE_SUFFIX
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
            tmp_name = None
        except Exception as e:
            self.logger.warning(
                "cache.save.fail",
                extra={"extra_data": {"path": str(path), "error": str(e)}},
            )
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
