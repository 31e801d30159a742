"""
Run the scanner web service: ``python -m regscan.web``.
"""

import logging
import os

from regscan.config import config


def setup_logging() -> None:
    """Configure console logging, plus a log file if enabled."""
    logging.basicConfig(
        level=getattr(logging, str(config.get("logging.level", "INFO")).upper(), logging.INFO),
        format=config.get("logging.format"),
        handlers=[logging.StreamHandler()],
    )
    if config.get("logging.file_enabled", True):
        log_file = config.logs_dir / "regscan.log"
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(config.get("logging.format")))
        logging.getLogger().addHandler(file_handler)


def main() -> None:
    import uvicorn

    setup_logging()
    host = os.environ.get("REGSCAN_HOST", "127.0.0.1")
    port = int(os.environ.get("REGSCAN_PORT", "8000"))
    uvicorn.run("regscan.web.main:app", host=host, port=port)


if __name__ == "__main__":
    main()
