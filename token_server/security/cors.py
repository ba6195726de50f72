"""CORS (Cross-Origin Resource Sharing) headers for token responses."""

from dataclasses import dataclass, field
from typing import Optional

from token_server.domain.http_types import HttpRequest

ALLOW_ALL = "*"


@dataclass(frozen=True)
class CorsConfig:
    """Origins browsers may read token responses from."""

    allowed_origins: tuple[str, ...] = (ALLOW_ALL,)
    expose_headers: tuple[str, ...] = field(default=("X-Request-ID",))

    @classmethod
    def from_csv(cls, origins: str) -> "CorsConfig":
        parsed = tuple(o.strip() for o in origins.split(",") if o.strip())
        return cls(allowed_origins=parsed or (ALLOW_ALL,))


def determine_allowed_origin(
    origin: Optional[str], cors_config: CorsConfig
) -> Optional[str]:
    """Return the Access-Control-Allow-Origin value for ``origin``, if any."""
    if ALLOW_ALL in cors_config.allowed_origins:
        return ALLOW_ALL
    if origin and origin in cors_config.allowed_origins:
        return origin
    return None


def apply_cors_headers(
    headers: dict[str, str],
    request: Optional[HttpRequest],
    cors_config: Optional[CorsConfig],
) -> None:
    """Add CORS headers in place.

    Without an explicit configuration every origin is allowed, which is what
    browser-based App Check clients under development expect.
    """
    config = cors_config or CorsConfig()
    origin = request.headers.get("origin") if request is not None else None
    allowed_origin = determine_allowed_origin(origin, config)
    if allowed_origin is None:
        return
    headers["Access-Control-Allow-Origin"] = allowed_origin
    if allowed_origin != ALLOW_ALL:
        headers.setdefault("Vary", "Origin")
    if config.expose_headers:
        headers["Access-Control-Expose-Headers"] = ", ".join(config.expose_headers)
