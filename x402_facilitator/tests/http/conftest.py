import pytest
from fastapi.testclient import TestClient

from x402_facilitator.facilitator import x402Facilitator
from x402_facilitator.http import create_app


@pytest.fixture
def facilitator(verifier, settler, status_service):
    return x402Facilitator(verifier, settler, status_service)


@pytest.fixture
def app(facilitator):
    return create_app(facilitator)


@pytest.fixture
def client(app):
    return TestClient(app)
