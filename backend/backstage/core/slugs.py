import re
import unicodedata

_NON_SLUG = re.compile(r"[^a-z0-9]+")

# Norwegian letters that NFKD does not decompose
_TRANSLIT = str.maketrans({"æ": "ae", "ø": "o", "å": "a", "ß": "ss"})


def slugify(value: str, max_length: int = 100) -> str:
    v = (value or "").strip().lower().translate(_TRANSLIT)
    v = unicodedata.normalize("NFKD", v).encode("ascii", "ignore").decode("ascii")
    v = _NON_SLUG.sub("-", v).strip("-")
    return v[:max_length].rstrip("-")


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))
