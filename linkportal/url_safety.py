from pydantic import HttpUrl, TypeAdapter, ValidationError

ALLOWED_SCHEMES = {"http", "https"}

_http_url = TypeAdapter(HttpUrl)


def ensure_url_safe(raw: str) -> str | None:
    """
    Accept only absolute http(s) URLs and return their canonical form
    (lower-case scheme and host, punycode, default port dropped, dot
    segments resolved, empty path -> "/", unsafe characters encoded).
    Anything else (javascript:, data:, relative paths, bad ports) -> None.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        url = _http_url.validate_python(raw.strip())
    except ValidationError:
        return None
    if url.scheme not in ALLOWED_SCHEMES:
        return None
    return str(url)
