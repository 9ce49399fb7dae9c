from typing import Any, Dict, Optional

from .repository import get_user_from_access_token as _repo_get_user_from_token


def determine_role(metadata: Optional[Dict[str, Any]]) -> str:
    role_lower = str((metadata or {}).get("role", "")).lower()
    if role_lower == "admin":
        return "admin"
    return "user"


def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, role, token}
    - Rôle calculé depuis user_metadata.role (admin sinon user)
    """
    raw = _repo_get_user_from_token(access_token)
    metadata = raw.get("user_metadata") or {}
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": metadata,
        "role": determine_role(metadata),
        "token": access_token,
    }
