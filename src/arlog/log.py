import logging
import sys
from pathlib import Path

from arlog.settings import settings

FORMAT = '%(asctime)s  %(levelname)-8s  %(name)s: %(message)s'
DATE_FORMAT = '%H:%M:%S'


def setup_logging(level: str | None = None, log_file: str | Path | None = None) -> None:
    """Configure the root logger; `level` defaults to `settings.log_level`."""
    level = level or settings.log_level
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format=FORMAT, datefmt=DATE_FORMAT, handlers=handlers)
