from fastapi import HTTPException, Request

from portal.core.config import get_settings
from portal.schemas.common import Actor
from portal.state_machine.taxonomy import ActorRole


AUTH_HEADER = "X-API-Key"
ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_NAME_HEADER = "X-Actor-Name"
ACTOR_ROLE_HEADER = "X-Actor-Role"
ACTOR_CLIENT_HEADER = "X-Actor-Client-Id"


def enforce_api_auth(request: Request) -> None:
    settings = get_settings()
    if not settings.api_auth_enabled:
        return

    token = request.headers.get(AUTH_HEADER)
    if not token or token != settings.api_auth_token:
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_actor(request: Request) -> Actor:
    """Actor identity as asserted by the authenticating layer in front of us."""
    raw_role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip().lower()
    try:
        role = ActorRole(raw_role)
    except ValueError:
        raise HTTPException(status_code=401, detail="Missing or unknown actor role") from None

    client_id: int | None = None
    raw_client = request.headers.get(ACTOR_CLIENT_HEADER)
    if raw_client:
        try:
            client_id = int(raw_client)
        except ValueError:
            raise HTTPException(status_code=401, detail="Invalid actor client id") from None
    if role == ActorRole.client and client_id is None:
        raise HTTPException(status_code=401, detail="Client actors must carry a client id")

    actor_id = request.headers.get(ACTOR_ID_HEADER) or None
    name = request.headers.get(ACTOR_NAME_HEADER) or actor_id or "Unknown"
    return Actor(id=actor_id, name=name, role=role, client_id=client_id)
