from datetime import datetime

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def to_string(dt: datetime) -> str:
    """`yyyy-MM-dd HH:mm:ss.SSS` in the datetime's own timezone."""
    return f'{dt.strftime(DATE_FORMAT)}.{dt.microsecond // 1_000:03d}'


def to_base_name(dt: datetime) -> str:
    # 'HH:mm:ss.SSS' -> 'HHmmssSSS'
    short = to_string(dt)[-12:]
    return short.replace(':', '').replace('.', '')


def to_folder_name(dt: datetime) -> str:
    # 'yyyy-MM-dd HH:mm:ss' -> 'yyyy-MM-dd HHmmss', sorts chronologically
    return to_string(dt)[:-4].replace(':', '')


def elapsed_seconds(start: datetime, now: datetime) -> float:
    return (now - start).total_seconds()
