"""사람이 읽기 쉬운 크기/경과 시간 포맷."""

from datetime import datetime

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(num_bytes: int) -> str:
    """
    바이트 → "1.2 MB" 형식.

    Args:
        num_bytes: 크기 (bytes)

    Returns:
        포맷된 문자열 (0 → "0 B")
    """
    if num_bytes <= 0:
        return "0 B"

    value = float(num_bytes)
    unit_index = 0
    while value >= 1024 and unit_index < len(SIZE_UNITS) - 1:
        value /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(value)} B"
    return f"{round(value, 2):g} {SIZE_UNITS[unit_index]}"


def format_age(since: datetime, now: datetime) -> str:
    """
    경과 시간 → "5 minutes ago" 형식.

    분 단위 미만은 "0 minutes ago".
    """
    seconds = max(0.0, (now - since).total_seconds())
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    return f"{days} day{'s' if days != 1 else ''} ago"
