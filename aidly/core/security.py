from itsdangerous import URLSafeSerializer, BadSignature
from typing import Optional
from .config import get_settings

def get_serializer() -> URLSafeSerializer:
    return URLSafeSerializer(get_settings().app_secret, salt="session")

def sign_session(data: dict) -> str:
    return get_serializer().dumps(data)

def verify_session(token: str) -> Optional[dict]:
    try:
        data = get_serializer().loads(token)
    except BadSignature:
        return None
    return data if isinstance(data, dict) else None
