import yaml
from pathlib import Path
from typing import Any

from placebot.utils.logger import LoggerManager


class ConfigLoader:
    """
    Loads a YAML configuration file and exposes it with dot-notation access.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.config = self._load()

    def _load(self) -> dict:
        log = LoggerManager.get_logger(__name__)
        path = self.path
        if not path.exists():
            log.error("config.missing", extra={"extra_data": {"path": str(path)}})
            raise FileNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                log.error("config.invalid_type", extra={"extra_data": {"path": str(path)}})
                raise ValueError(f"Invalid config (expected mapping) at {path}")
            log.info("config.loaded", extra={"extra_data": {"path": str(path)}})
            return data
        except Exception as e:
            log.error(
                "config.load.fail",
                extra={"extra_data": {"path": str(path), "error": str(e)}},
                exc_info=True,
            )
            raise

    def get(self, key: str, default: Any = None) -> Any:
        """Supports dot notation for nested access."""
        val = self.config
        for part in key.split("."):
            if isinstance(val, dict) and part in val:
                val = val[part]
            else:
                return default
        return val

    def as_dict(self) -> dict:
        return self.config
