"""Shared fixtures for unit tests."""

import logging

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from token_server.bootstrap.credentials import ServiceAccount


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("token_server")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(scope="session", name="rsa_private_key")
def _rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session", name="private_key_pem")
def _private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(name="service_account")
def _service_account(rsa_private_key) -> ServiceAccount:
    return ServiceAccount(
        client_email="minter@my-project.iam.gserviceaccount.com",
        private_key=rsa_private_key,
        project_id="my-project",
        private_key_id="key-1",
    )
