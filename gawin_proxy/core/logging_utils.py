import logging
import collections
from datetime import datetime
from typing import Optional


class MemoryLogHandler(logging.Handler):
    """
    Keeps the most recent log records in memory so the admin API can show them
    without shell access to the host.
    """
    def __init__(self, capacity=1000):
        super().__init__()
        self.log_buffer = collections.deque(maxlen=capacity)
        self.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    def emit(self, record):
        try:
            msg = self.format(record)
            self.log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "levelno": record.levelno,
                "name": record.name,
                "message": record.getMessage(),
                "formatted": msg
            })
        except Exception:
            self.handleError(record)

    def get_logs(self, limit: int = 100, level: Optional[str] = None):
        """Most recent entries, oldest first. ``level`` is a minimum level name."""
        entries = list(self.log_buffer)
        if level:
            min_level = logging.getLevelName(level.upper())
            if isinstance(min_level, int):
                entries = [e for e in entries if e["levelno"] >= min_level]
        if limit <= 0:
            return []
        return [{k: v for k, v in e.items() if k != "levelno"} for e in entries[-limit:]]

    def clear(self):
        self.log_buffer.clear()


memory_log_handler = MemoryLogHandler()


def configure_logging(level_name: str) -> None:
    numeric_log_level = getattr(logging, level_name.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_log_level)

    if not any(getattr(h, "_gawin_console", False) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)-8s [%(name)s:%(module)s:%(lineno)d] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        console_handler._gawin_console = True
        root_logger.addHandler(console_handler)

    if memory_log_handler not in root_logger.handlers:
        root_logger.addHandler(memory_log_handler)

    for lib_logger_name in ["httpx", "httpcore", "uvicorn.access", "watchfiles", "aiosqlite", "asyncio"]:
        logging.getLogger(lib_logger_name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
