import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.testclient import TestClient

from marketplace.auth import jwt_handler
from marketplace.auth.dependencies import get_current_actor
from marketplace.main import app
from marketplace.models.user import Role


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_get_current_actor_reads_token_claims() -> None:
    token = jwt_handler.create_access_token('user-1', 'client@example.com', Role.CLIENT.value)

    actor = get_current_actor(_credentials(token))

    assert actor.user_id == 'user-1'
    assert actor.email == 'client@example.com'
    assert actor.role is Role.CLIENT


def test_get_current_actor_rejects_garbage_token() -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_actor(_credentials('not-a-jwt'))

    assert exception_info.value.status_code == 401


def test_get_current_actor_rejects_unknown_role() -> None:
    token = jwt_handler.create_access_token('user-1', 'someone@example.com', 'SUPERUSER')

    with pytest.raises(HTTPException) as exception_info:
        get_current_actor(_credentials(token))

    assert exception_info.value.detail == 'Invalid token role'


def test_me_endpoint_echoes_token_identity() -> None:
    client = TestClient(app)
    token = jwt_handler.create_access_token('user-7', 'plumber@example.com', Role.PROVIDER.value)

    response = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 200
    assert response.json() == {'id': 'user-7', 'email': 'plumber@example.com', 'role': 'PROVIDER'}


def test_protected_route_requires_bearer_token() -> None:
    client = TestClient(app)

    response = client.post('/client/bookings', json={'service_id': 'svc', 'slot_id': 'slot'})

    assert response.status_code in (401, 403)


def test_client_route_rejects_provider_token() -> None:
    client = TestClient(app)
    token = jwt_handler.create_access_token('user-7', 'plumber@example.com', Role.PROVIDER.value)

    response = client.get('/client/bookings/me', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 403
    assert response.json() == {'detail': 'Insufficient permissions'}
