"""
Firebase authentication SDK functions.

Identity Toolkit REST endpoints (accounts:*).
"""

from workout_tracker.sdk.client import AUTH_URL, AuthSession, FirebaseClient


def sign_in(client: FirebaseClient, email: str, password: str) -> AuthSession:
    """
    Authenticate with email and password.

    POST accounts:signInWithPassword

    Returns:
        AuthSession, also stored on the client

    Raises:
        ValueError: If credentials are missing
        FirebaseError: If the backend rejects the credentials
    """
    if not email or not password:
        raise ValueError("Missing credentials")

    data = client.make_request(
        "POST",
        f"{AUTH_URL}:signInWithPassword",
        params={"key": client.api_key},
        json_data={
            "email": email,
            "password": password,
            "returnSecureToken": True,
        },
        require_auth=False,
    )
    return _store_session(client, data)


def sign_up(client: FirebaseClient, email: str, password: str) -> AuthSession:
    """
    Create an email/password account and sign it in.

    POST accounts:signUp
    """
    if not email or not password:
        raise ValueError("Missing credentials")

    data = client.make_request(
        "POST",
        f"{AUTH_URL}:signUp",
        params={"key": client.api_key},
        json_data={
            "email": email,
            "password": password,
            "returnSecureToken": True,
        },
        require_auth=False,
    )
    return _store_session(client, data)


def delete_account(client: FirebaseClient) -> None:
    """
    Delete the signed-in account and clear the session.

    POST accounts:delete
    """
    if not client.auth:
        raise RuntimeError("Not signed in. Call sign_in() first.")

    client.make_request(
        "POST",
        f"{AUTH_URL}:delete",
        params={"key": client.api_key},
        json_data={"idToken": client.auth.id_token},
    )
    client.logout()


def _store_session(client: FirebaseClient, data: dict) -> AuthSession:
    session = AuthSession(
        user_id=data["localId"],
        email=data.get("email", ""),
        id_token=data["idToken"],
        refresh_token=data.get("refreshToken", ""),
    )
    client.auth = session
    return session
