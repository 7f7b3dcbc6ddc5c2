import hashlib


def sha1_text(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def fingerprint(b: bytes) -> str:
    """Content fingerprint of raw upload bytes, used as the cache key."""
    return hashlib.md5(b, usedforsecurity=False).hexdigest()
