import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[-\s_]+")


def slugify(value: str) -> str:
    """'Data Science & ML' -> 'data-science-ml'"""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = _NON_WORD.sub("", value.lower())
    return _SEPARATORS.sub("-", value).strip("-")


def exact_ci(value: str) -> dict:
    """Case-insensitive exact match for a Mongo query"""
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


def contains_ci(value: str) -> dict:
    return {"$regex": re.escape(value), "$options": "i"}
