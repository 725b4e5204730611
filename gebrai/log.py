import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

from loguru import logger

LogDestinations = Literal["stdout", "stderr", "file", "both"]


class LogSetup:
    """
    Configures loguru sinks once per process.

    The MCP stdio server must never write logs to stdout, so it uses "stderr" or "file".
    """
    _configured: bool = False
    log_path: Optional[Path] = None

    @classmethod
    def configure(cls, log_dir: Path, level: str = "INFO", destination: LogDestinations = "both") -> Optional[Path]:
        if cls._configured:
            return cls.log_path
        logger.remove()
        if destination in ("stdout", "both"):
            logger.add(sys.stdout, level=level)
        if destination == "stderr":
            logger.add(sys.stderr, level=level)
        if destination in ("file", "both"):
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            cls.log_path = log_dir / f"{timestamp}_{uuid.uuid4().hex[:4]}.log"
            logger.add(cls.log_path, level=level, rotation="10 MB", enqueue=True)
        cls._configured = True
        logger.debug("Logging configured", destination=destination, level=level)
        return cls.log_path

    @classmethod
    def reset(cls) -> None:
        cls._configured = False
        cls.log_path = None
