from services.actor import Actor
from utils.tokenJWT import create_user_token


def actor_for(user) -> Actor:
    return Actor(user_id=user.id, is_admin=user.is_admin)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}
