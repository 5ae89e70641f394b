import re
import secrets

RANDOM_STRING_SOURCE = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ1234567890_+"

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


def random_string(length: int) -> str:
    """Return ``length`` characters drawn from RANDOM_STRING_SOURCE with the OS CSPRNG."""
    if length < 0:
        raise ValueError("length must not be negative")
    return "".join(secrets.choice(RANDOM_STRING_SOURCE) for _ in range(length))


def slugify(value: str) -> str:
    if value == "":
        raise ValueError("empty string not permitted")

    slug = _SLUG_SEPARATORS.sub("-", value.lower()).strip("-")
    if not slug:
        raise ValueError("after removing characters, slug is zero length")
    return slug
