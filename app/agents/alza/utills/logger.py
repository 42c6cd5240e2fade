import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str = 'app.agents.alza', level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """
    Setup logging for the alza package.

    Console output goes to stderr so that command output on stdout (text or
    JSON) stays clean. A file handler is added when ``log_file`` is set.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, (level or 'INFO').upper(), logging.INFO))

    # Reconfigure from scratch; the CLI calls this once per run
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
