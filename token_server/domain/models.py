"""Values passed between the validation pipeline and the credential authority."""

from dataclasses import dataclass

DEFAULT_TTL_MILLIS = 30 * 60 * 1000


@dataclass(frozen=True)
class ParsedRequestBody:
    """Schema-checked token request payload."""

    app_id: str
    project_id: str


@dataclass(frozen=True)
class TokenResult:
    """A token minted by the credential authority and its validity period."""

    token: str
    ttl_millis: int

    def __post_init__(self) -> None:
        if self.ttl_millis <= 0:
            raise ValueError(f"ttl_millis must be positive, got {self.ttl_millis}")
