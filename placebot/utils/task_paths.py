from pathlib import Path
from typing import Optional


class TaskPaths:
    """
    Resolves where log files go.

    Layout:
    - Long-lived logs: logs/<name>.log
    - Per-run logs: logs/runs/<run_id>/<name>.log
    """

    def __init__(self, logs_root: str = "logs", base_dir: Optional[Path] = None):
        """
        Args:
            logs_root: Name of the logs directory (default: "logs")
            base_dir: Directory the logs directory is created under
        """
        if base_dir:
            self.logs_root = Path(base_dir) / logs_root
        else:
            self.logs_root = Path(logs_root)

    def get_log_path(self, run_id: str | None = None, name: str = "placebot") -> str:
        """
        Get the log file path for a logger name, creating its directory.

        Args:
            run_id: Optional run identifier for per-run logging
            name: Log file name (without .log extension)

        Returns:
            Full path to the log file as string
        """
        if run_id:
            p = self.logs_root / "runs" / run_id / f"{name}.log"
        else:
            p = self.logs_root / f"{name}.log"
        p.parent.mkdir(parents=True, exist_ok=True)
        return str(p)
