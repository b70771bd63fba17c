"""Pytest fixtures for testing"""

import pytest
import httpx
from typing import Generator
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from pawapay_gateway.api.main import create_app
from pawapay_gateway.config import Settings
from pawapay_gateway.domain.models import SignatureAlgorithm, SignatureConfig
from pawapay_gateway.infrastructure.database.models import Base
from pawapay_gateway.infrastructure.database.session import get_db
from pawapay_gateway.infrastructure.signing.signer import RequestSigner
from stubs.pawapay_server.main import create_mock_app


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

KEY_ID = "test-key-1"


def private_pem(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def public_pem(key) -> str:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture(scope="session")
def ec_p256_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_p384_key():
    return ec.generate_private_key(ec.SECP384R1())


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def private_pem_of():
    """PEM-encode a private key (PKCS8, unencrypted)"""
    return private_pem


@pytest.fixture
def public_pem_of():
    """PEM-encode the public half of a private key"""
    return public_pem


@pytest.fixture
def signature_config(ec_p256_key) -> SignatureConfig:
    return SignatureConfig(
        key_id=KEY_ID,
        private_key=private_pem(ec_p256_key),
        algorithm=SignatureAlgorithm.ECDSA_P256_SHA256,
    )


@pytest.fixture
def provider_signer(signature_config: SignatureConfig) -> RequestSigner:
    """Signs callbacks the way PawaPay would, with the key our public key matches"""
    return RequestSigner(signature_config)


@pytest.fixture
def test_settings(ec_p256_key) -> Settings:
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        pawapay_api_key="test-api-key",
        pawapay_environment="sandbox",
        pawapay_private_key=private_pem(ec_p256_key),
        pawapay_key_id=KEY_ID,
        pawapay_signature_algorithm="ecdsa-p256-sha256",
        pawapay_public_key=public_pem(ec_p256_key),
        stripe_webhook_secret="whsec_test",
        http_timeout_seconds=2.0,
    )


@pytest.fixture
def provider() -> FastAPI:
    """In-process stub of the PawaPay API"""
    return create_mock_app()


@pytest.fixture
def provider_transport(provider: FastAPI) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=provider)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


def build_test_client(config: Settings, db: Session, transport: httpx.AsyncBaseTransport) -> TestClient:
    app = create_app(config, transport=transport)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def client(db: Session, test_settings: Settings, provider_transport: httpx.ASGITransport) -> TestClient:
    """FastAPI test client wired to the stub provider and test database"""
    return build_test_client(test_settings, db, provider_transport)


@pytest.fixture
def make_client(db: Session, test_settings: Settings):
    """Build a test client against any transport, optionally with other settings"""

    def _make(transport: httpx.AsyncBaseTransport, config: Settings | None = None) -> TestClient:
        return build_test_client(config or test_settings, db, transport)

    return _make
