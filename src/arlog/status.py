import logging

import psutil

logger = logging.getLogger(__name__)

_process: psutil.Process | None = None


def _current_process() -> psutil.Process:
    global _process
    if _process is None:
        _process = psutil.Process()
        # first call primes the counter and always reports 0.0
        _process.cpu_percent(interval=None)
    return _process


def cpu_usage() -> float:
    """CPU usage of this process in percent since the previous call."""
    try:
        return float(_current_process().cpu_percent(interval=None))
    except psutil.Error as e:
        logger.debug('cpu usage unavailable: %s', e)
        return -1.0


def memory_usage() -> float:
    """Resident set size of this process in MB."""
    try:
        return _current_process().memory_info().rss / (1024 * 1024)
    except psutil.Error as e:
        logger.debug('memory usage unavailable: %s', e)
        return -1.0


def get_status() -> str:
    return f'{cpu_usage()} {memory_usage()}'
