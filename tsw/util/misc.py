from datetime import datetime

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE


# Simply returns the current local time as an ISO8601 string with timezone offset.
def now_iso():
    return datetime.now().astimezone().isoformat()


# Formats milliseconds as HH:MM:SS.cc (cc being hundredths). Hours are never wrapped at 24, and negative values
# clamp to zero.
def format_ms(ms):
    ms = max(0, int(ms))
    hours, rem = divmod(ms, MS_PER_HOUR)
    minutes, rem = divmod(rem, MS_PER_MINUTE)
    seconds, millis = divmod(rem, MS_PER_SECOND)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis // 10:02d}"


# Builds a millisecond duration out of hours, minutes and seconds.
def compose_ms(hours, minutes, seconds):
    return hours * MS_PER_HOUR + minutes * MS_PER_MINUTE + seconds * MS_PER_SECOND


# Splits a millisecond duration back into whole (hours, minutes, seconds), dropping the sub-second part.
def split_ms(ms):
    ms = max(0, int(ms))
    hours, rem = divmod(ms, MS_PER_HOUR)
    minutes, rem = divmod(rem, MS_PER_MINUTE)
    return hours, minutes, rem // MS_PER_SECOND


def clamp(value, low, high):
    return max(low, min(high, value))
