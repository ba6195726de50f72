"""Service account credentials used to talk to the App Check backend."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key

CREDENTIALS_ENV = "GOOGLE_APPLICATION_CREDENTIALS"
PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT")
REQUIRED_FIELDS = ("client_email", "private_key")


class CredentialsError(Exception):
    """Raised when the service account credentials cannot be loaded."""


@dataclass(frozen=True)
class ServiceAccount:
    """The subset of a service account key file the server needs."""

    client_email: str
    private_key: rsa.RSAPrivateKey = field(repr=False)
    project_id: Optional[str] = None
    private_key_id: Optional[str] = None
    token_uri: str = "https://oauth2.googleapis.com/token"


def load_signing_key(pem: object, source: str = "<memory>") -> rsa.RSAPrivateKey:
    """Parse the PEM private key once so a broken key fails at startup."""
    if not isinstance(pem, str):
        raise CredentialsError(f"{source}: private_key must be a PEM string")
    try:
        key = load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        raise CredentialsError(
            f"{source}: private_key is not a usable PEM key: {error}"
        ) from error
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CredentialsError(f"{source}: private_key must be an RSA key")
    return key


def parse_service_account(data: object, source: str = "<memory>") -> ServiceAccount:
    """Build a ``ServiceAccount`` from the decoded JSON key file."""
    if not isinstance(data, dict):
        raise CredentialsError(f"{source}: expected a JSON object")
    if data.get("type", "service_account") != "service_account":
        raise CredentialsError(
            f"{source}: unsupported credential type {data.get('type')!r} "
            "(expected 'service_account')"
        )
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise CredentialsError(f"{source}: missing field(s): {', '.join(missing)}")
    return ServiceAccount(
        client_email=data["client_email"],
        private_key=load_signing_key(data["private_key"], source),
        project_id=data.get("project_id") or None,
        private_key_id=data.get("private_key_id"),
        token_uri=data.get("token_uri") or ServiceAccount.token_uri,
    )


def load_service_account(path: Path) -> ServiceAccount:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as error:
        raise CredentialsError(f"unable to read {path}: {error.strerror}") from error
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as error:
        raise CredentialsError(f"{path}: invalid JSON: {error}") from error
    return parse_service_account(data, str(path))


def load_default_service_account(
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceAccount:
    """Load the key file named by ``GOOGLE_APPLICATION_CREDENTIALS``."""
    environ = os.environ if environ is None else environ
    location = environ.get(CREDENTIALS_ENV)
    if not location:
        raise CredentialsError(
            f"the {CREDENTIALS_ENV} environment variable must be set to the path "
            "of the service account JSON file"
        )
    return load_service_account(Path(location))


def resolve_project_id(
    account: Optional[ServiceAccount],
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Return the project id requests are checked against, if one is known.

    Explicit project environment variables win over the key file's own
    ``project_id``.
    """
    environ = os.environ if environ is None else environ
    for name in PROJECT_ENV_VARS:
        if environ.get(name):
            return environ[name]
    if account is not None:
        return account.project_id
    return None
