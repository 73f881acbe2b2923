"""Unit tests for the staff JWT dependency."""

from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from api.dependencies import JWT_ALGORITHM, get_current_tenant_id, verify_token
from shared.config import get_settings


def make_token(claims: dict, secret: str | None = None) -> str:
    return jwt.encode(claims, secret or get_settings().JWT_SECRET, algorithm=JWT_ALGORITHM)


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestVerifyToken:
    def test_valid_token(self):
        tenant_id = uuid4()
        payload = verify_token(make_token({"tenant_id": str(tenant_id), "sub": "staff-1"}))
        assert payload["tenant_id"] == str(tenant_id)

    def test_wrong_secret(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_token(make_token({"tenant_id": str(uuid4())}, secret="other-secret"))
        assert exc_info.value.status_code == 401

    def test_missing_tenant_claim(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_token(make_token({"sub": "staff-1"}))
        assert exc_info.value.detail == "Token has no tenant"


class TestGetCurrentTenantId:
    @pytest.mark.asyncio
    async def test_returns_tenant_uuid(self):
        tenant_id = uuid4()
        result = await get_current_tenant_id(bearer(make_token({"tenant_id": str(tenant_id)})))
        assert result == tenant_id

    @pytest.mark.asyncio
    async def test_no_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_tenant_id(None)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_tenant_claim_not_a_uuid(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_tenant_id(bearer(make_token({"tenant_id": "tenant-7"})))
        assert exc_info.value.detail == "Invalid tenant in token"
