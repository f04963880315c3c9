from __future__ import annotations

import re
import unicodedata
from urllib.parse import urlparse, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset({"gclid", "fbclid", "igshid", "mc_cid", "mc_eid"})

# English + Spanish; tokens of length <= 2 are dropped before this check.
STOP_WORDS = frozenset(
    {
        # English
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
        "had", "her", "was", "one", "our", "out", "has", "have", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "who", "did",
        "does", "get", "let", "say", "she", "too", "use", "that", "this",
        "with", "from", "they", "them", "then", "than", "there", "their",
        "these", "those", "what", "when", "where", "which", "while", "will",
        "would", "could", "should", "about", "into", "over", "also", "been",
        "being", "were", "more", "most", "some", "such", "only", "other",
        "very", "just", "your", "yours", "after", "before", "between", "during",
        "each", "here", "why", "because", "both", "same", "own",
        # Spanish
        "los", "las", "del", "una", "uno", "unos", "unas", "por", "para", "con",
        "sin", "que", "como", "mas", "pero", "sus", "son", "fue", "han", "hay",
        "este", "esta", "estos", "estas", "ese", "esa", "esos", "esas", "entre",
        "sobre", "tras", "desde", "hasta", "cual", "cuales", "cuando", "donde",
        "quien", "quienes", "porque", "tambien", "muy", "sea", "ser", "era",
        "eran", "todo", "todos", "toda", "todas", "otro", "otra", "otros",
        "otras", "ante", "bajo", "segun", "ella", "ellos", "ellas", "nos",
        "les", "esto", "eso", "aqui", "alli", "ahi", "cada", "mismo", "misma",
    }
)

_NON_TOKEN_RE = re.compile(r"[^a-z0-9 ]+")


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def _strip_www(host: str) -> str:
    while host.startswith("www."):
        host = host[4:]
    return host


def extract_host(url: str) -> str:
    """Lowercased host without a leading ``www.``; empty string when unparseable."""
    try:
        host = (urlsplit((url or "").strip()).hostname or "").lower()
    except ValueError:
        return ""
    return _strip_www(host)


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith("utm_") or lowered in TRACKING_PARAMS


def canonicalize_url(url: str) -> str:
    """Normalize a URL for dedup and cache keys.

    Lowercases the host, drops ``www.``, the fragment, tracking parameters and
    trailing slashes. Remaining query parameters keep their original order and
    encoding. Unparseable input falls back to ``url.strip().lower()``.
    """
    raw = (url or "").strip()
    try:
        parsed = urlsplit(raw)
        host = (parsed.hostname or "").lower()
        if not parsed.scheme or not host:
            return raw.lower()
        host = _strip_www(host)
        if ":" in host:
            host = f"[{host}]"
        netloc = f"{host}:{parsed.port}" if parsed.port else host
        path = parsed.path.rstrip("/") or "/"
        pairs = [
            pair
            for pair in parsed.query.split("&")
            if pair and not _is_tracking_param(pair.split("=", 1)[0])
        ]
        return urlunsplit((parsed.scheme.lower(), netloc, path, "&".join(pairs), ""))
    except ValueError:
        return raw.lower()


def fold_text(text: str) -> str:
    """Lowercase and strip diacritics (``Año`` -> ``ano``)."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def normalize_query(text: str) -> str:
    return " ".join(fold_text(text).split())


def token_list(text: str) -> list[str]:
    """Tokens in order, repeats kept (for term-frequency scoring)."""
    folded = _NON_TOKEN_RE.sub(" ", fold_text(text))
    return [token for token in folded.split() if len(token) > 2 and token not in STOP_WORDS]


def tokenize(text: str) -> set[str]:
    return set(token_list(text))
