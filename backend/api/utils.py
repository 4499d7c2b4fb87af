import secrets
import string

UID_ALPHABET = string.ascii_lowercase + string.digits
UID_LENGTH = 15


def generate_uid():
    """Random public identifier used in URLs instead of database ids."""
    return ''.join(secrets.choice(UID_ALPHABET) for _ in range(UID_LENGTH))


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def parse_int(value, default=None, minimum=0, maximum=None):
    """Query parameter as int; `default` when missing, malformed or below `minimum`."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number
