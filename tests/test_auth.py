from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import HTTPException
from jose import JWTError

from src.core.auth import (
    AuthContext,
    JwksCache,
    _decode_jwt,
    _get_signing_key,
    ensure_organization_access,
    is_super_admin,
    require_auth_context,
    require_billing_manager,
    require_super_admin,
)
from src.core.context import get_current_organization_id, reset_current_organization_id, set_current_organization_id


def _ctx(*, subject: str = "user_1", role: str = "trainer") -> AuthContext:
    return AuthContext(organization_id=uuid4(), subject=subject, role=role, claims={})


def test_is_super_admin_by_subject(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth.settings, "super_admin_subjects_csv", "user_1, user_2")
    assert is_super_admin(_ctx(subject="user_2", role="client")) is True


def test_is_super_admin_by_role(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth.settings, "super_admin_subjects_csv", "")
    assert is_super_admin(_ctx(role="super_admin")) is True
    assert is_super_admin(_ctx(role="company_admin")) is False


@pytest.mark.asyncio
async def test_require_super_admin_blocks_trainer(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth.settings, "super_admin_subjects_csv", "boss")
    with pytest.raises(HTTPException) as exc:
        await require_super_admin(_ctx(subject="normal"))

    assert exc.value.status_code == 403

    ctx = _ctx(subject="boss")
    assert await require_super_admin(ctx) is ctx


@pytest.mark.asyncio
async def test_billing_manager_roles() -> None:
    trainer = _ctx(role="trainer")
    assert await require_billing_manager(trainer) is trainer

    with pytest.raises(HTTPException) as exc:
        await require_billing_manager(_ctx(role="client"))
    assert exc.value.status_code == 403


def test_organization_access_is_scoped_to_token() -> None:
    ctx = _ctx()
    ensure_organization_access(ctx, ctx.organization_id)

    with pytest.raises(HTTPException) as exc:
        ensure_organization_access(ctx, uuid4())
    assert exc.value.status_code == 403

    ensure_organization_access(_ctx(role="super_admin"), uuid4())


def test_get_signing_key_missing_kid(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth.jwt, "get_unverified_header", lambda token: {})
    with pytest.raises(HTTPException) as exc:
        _get_signing_key("token")
    assert exc.value.status_code == 401


def test_get_signing_key_no_matching_key(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth.jwt, "get_unverified_header", lambda token: {"kid": "abc"})
    monkeypatch.setattr(auth.jwks_cache, "get", lambda url: {"keys": [{"kid": "zzz"}]})

    with pytest.raises(HTTPException) as exc:
        _get_signing_key("token")
    assert exc.value.status_code == 401


def test_get_signing_key_returns_matching_key(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth.jwt, "get_unverified_header", lambda token: {"kid": "abc"})
    monkeypatch.setattr(auth.jwks_cache, "get", lambda url: {"keys": [{"kid": "abc", "kty": "RSA"}]})
    assert _get_signing_key("token")["kid"] == "abc"


def test_decode_jwt_invalid(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    monkeypatch.setattr(auth, "_get_signing_key", lambda token: {"kid": "abc"})

    def _boom(*args, **kwargs):  # noqa: ANN002, ANN003
        raise JWTError("bad token")

    monkeypatch.setattr(auth.jwt, "decode", _boom)
    with pytest.raises(HTTPException) as exc:
        _decode_jwt("token")
    assert exc.value.status_code == 401


def test_jwks_cache_fetches_and_reuses(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    calls = {"count": 0}

    class _Resp:
        def raise_for_status(self) -> None:
            return None

        def json(self) -> dict:
            return {"keys": [{"kid": "a"}]}

    def _get(url: str, timeout: int):  # noqa: ANN001
        calls["count"] += 1
        return _Resp()

    cache = JwksCache(ttl_seconds=300)
    monkeypatch.setattr(auth.requests, "get", _get)
    monkeypatch.setattr(auth.time, "time", lambda: 1000.0)
    first = cache.get("https://jwks.example")
    second = cache.get("https://jwks.example")
    assert first == second
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_require_auth_context_sets_organization(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.core import auth

    organization_id = uuid4()
    monkeypatch.setattr(
        auth,
        "_decode_jwt",
        lambda _token: {"org_id": str(organization_id), "sub": "user_1", "role": "trainer"},
    )

    token = set_current_organization_id(None)
    try:
        request = SimpleNamespace(state=SimpleNamespace())
        context = await require_auth_context(request, SimpleNamespace(credentials="jwt"))

        assert context.organization_id == organization_id
        assert context.role == "trainer"
        assert request.state.organization_id == organization_id
        assert request.state.user_subject == "user_1"
        assert get_current_organization_id() == organization_id
    finally:
        reset_current_organization_id(token)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "user_1"},
        {"org_id": "not-a-uuid", "sub": "user_1"},
    ],
)
async def test_require_auth_context_rejects_bad_claims(monkeypatch: pytest.MonkeyPatch, claims: dict) -> None:
    from src.core import auth

    monkeypatch.setattr(auth, "_decode_jwt", lambda _token: claims)
    with pytest.raises(HTTPException) as exc:
        await require_auth_context(SimpleNamespace(state=SimpleNamespace()), SimpleNamespace(credentials="jwt"))
    assert exc.value.status_code == 403
