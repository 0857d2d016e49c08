"""
Shared test fixtures and configuration for the app_publish test suite.
"""

import json
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import aioresponses
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from app_publish.auth.manager import AuthManager
from app_publish.config.models import RetryPolicy


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _pem(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """RSA key shared by the whole session (generation is slow)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_pem(rsa_key) -> str:
    return _pem(rsa_key)


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_private_pem(ec_key) -> str:
    return _pem(ec_key)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def service_account_file(temp_dir: Path, rsa_private_pem: str) -> Path:
    """Service account key file pointing at a mocked token endpoint."""
    path = temp_dir / "service-account.json"
    path.write_text(
        json.dumps(
            {
                "type": "service_account",
                "client_email": "publisher@example.iam.gserviceaccount.com",
                "private_key": rsa_private_pem,
                "token_uri": "https://oauth2.example.com/token",
            }
        )
    )
    return path


@pytest.fixture
def artifact(temp_dir: Path) -> Path:
    """Small APK-named build artifact."""
    path = temp_dir / "app-release.apk"
    path.write_bytes(b"PK\x03\x04" + b"\x00" * 1024)
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_manager(clock: FakeClock) -> AuthManager:
    """AuthManager driven by a fake clock."""
    return AuthManager(clock=clock)


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy without backoff delays."""
    return RetryPolicy(max_retries=2, base_delay=0)


@pytest.fixture
def mock_aiohttp():
    """Mock aiohttp responses for testing."""
    with aioresponses.aioresponses() as m:
        yield m


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (fast, no external dependencies)"
    )
    config.addinivalue_line("markers", "adapters: mark test as store-adapter related")
