"""
Firebase HTTP Client.

Handles HTTP transport, ID tokens, token refresh, and error handling.
All endpoint-specific logic lives in the sibling modules (auth, firestore, storage).
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

# Backend configuration
API_KEY = os.environ.get("TRACKER_FIREBASE_API_KEY", "")
PROJECT_ID = os.environ.get("TRACKER_FIREBASE_PROJECT_ID", "workout-tracker")
STORAGE_BUCKET = os.environ.get("TRACKER_STORAGE_BUCKET", f"{PROJECT_ID}.appspot.com")

AUTH_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
FIRESTORE_URL = "https://firestore.googleapis.com/v1"
STORAGE_URL = "https://firebasestorage.googleapis.com/v0/b"

REQUEST_TIMEOUT = 30


class FirebaseError(ValueError):
    """Error payload returned by a Firebase endpoint.

    `code` is the backend's error token (e.g. EMAIL_EXISTS, NOT_FOUND).
    """

    def __init__(self, message: str, code: str = None, status_code: int = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


@dataclass
class AuthSession:
    """Signed-in user credentials."""
    user_id: str
    email: str
    id_token: str
    refresh_token: str


class FirebaseClient:
    """
    Firebase REST transport.

    Handles authentication headers, token refresh, and request/response parsing.
    Endpoint calls are in sibling modules (sdk.auth, sdk.firestore, sdk.storage).
    """

    def __init__(
        self,
        api_key: str = None,
        project_id: str = None,
        bucket: str = None,
        session: requests.Session = None,
    ):
        self._api_key = api_key or API_KEY
        self._project_id = project_id or PROJECT_ID
        self._bucket = bucket or STORAGE_BUCKET
        self._auth: Optional[AuthSession] = None
        self._session = session or requests.Session()

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def auth(self) -> Optional[AuthSession]:
        return self._auth

    @auth.setter
    def auth(self, value: Optional[AuthSession]):
        self._auth = value

    @property
    def user_id(self) -> Optional[str]:
        return self._auth.user_id if self._auth else None

    @property
    def is_logged_in(self) -> bool:
        return self._auth is not None

    @property
    def database_path(self) -> str:
        """Resource name of the default database."""
        return f"projects/{self._project_id}/databases/(default)"

    @property
    def documents_url(self) -> str:
        return f"{FIRESTORE_URL}/{self.database_path}/documents"

    def document_name(self, collection: str, doc_id: str) -> str:
        """Full resource name of a document, as used in commit writes."""
        return f"{self.database_path}/documents/{collection}/{doc_id}"

    def make_request(
        self,
        method: str,
        url: str,
        params: Dict = None,
        json_data: Dict = None,
        data: Any = None,
        headers: Dict = None,
        require_auth: bool = True,
        raw: bool = False,
    ) -> Any:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method (GET/POST/PATCH/DELETE)
            url: Absolute endpoint URL
            params: Query parameters
            json_data: JSON body data
            data: Raw body (form fields or bytes)
            headers: Extra headers
            require_auth: Whether an ID token is required
            raw: Return the response object instead of decoded JSON

        Returns:
            Decoded JSON body (empty dict for empty bodies), or the response if raw

        Raises:
            RuntimeError: If not signed in but auth required
            FirebaseError: If the endpoint returns an error payload
        """
        if require_auth and not self._auth:
            raise RuntimeError("Not signed in. Call sign_in() first.")

        response = self._send(method, url, params, json_data, data, headers)

        # ID tokens live for an hour; refresh once and retry
        if response.status_code == 401 and self._auth and self._auth.refresh_token:
            logger.info("ID token rejected, refreshing")
            self.refresh_token()
            response = self._send(method, url, params, json_data, data, headers)

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if raw:
            return response
        if not response.content:
            return {}
        return response.json()

    def _send(self, method, url, params, json_data, data, headers) -> requests.Response:
        request_headers = {}
        if self._auth:
            request_headers["Authorization"] = f"Bearer {self._auth.id_token}"
        if headers:
            request_headers.update(headers)

        return self._session.request(
            method.upper(),
            url,
            params=params,
            json=json_data,
            data=data,
            headers=request_headers,
            timeout=REQUEST_TIMEOUT,
        )

    @staticmethod
    def _error_from_response(response: requests.Response) -> FirebaseError:
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        # Firestore's runQuery/commit may wrap the error in a list
        if isinstance(payload, list) and payload:
            payload = payload[0]
        error = payload.get("error", {}) if isinstance(payload, dict) else {}
        message = error.get("message") or response.text or "Unknown API error"
        # Auth errors carry the code in the message:
        # "WEAK_PASSWORD : Password should be at least 6 characters"
        token = message.split(" ", 1)[0]
        if token.replace("_", "").isalpha() and token.isupper():
            code = token
        else:
            code = error.get("status")
        return FirebaseError(
            f"{message} (status={response.status_code})",
            code=code,
            status_code=response.status_code,
        )

    def refresh_token(self) -> None:
        """Exchange the refresh token for a fresh ID token."""
        if not self._auth or not self._auth.refresh_token:
            raise RuntimeError("No refresh token available")

        response = self._session.post(
            TOKEN_URL,
            params={"key": self._api_key},
            data={
                "grant_type": "refresh_token",
                "refresh_token": self._auth.refresh_token,
            },
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code >= 400:
            raise self._error_from_response(response)

        data = response.json()
        self._auth.id_token = data["id_token"]
        self._auth.refresh_token = data["refresh_token"]

    # ── Token serialization ──────────────────────────────────────────────

    def export_token(self) -> str:
        """Export credentials as JSON string."""
        if not self._auth:
            raise RuntimeError("Not signed in. Call sign_in() first.")

        return json.dumps({
            "user_id": self._auth.user_id,
            "email": self._auth.email,
            "id_token": self._auth.id_token,
            "refresh_token": self._auth.refresh_token,
        })

    def load_token(self, token_data: str) -> None:
        """Load previously exported credentials."""
        data = json.loads(token_data)
        self._auth = AuthSession(
            user_id=data["user_id"],
            email=data.get("email", ""),
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token", ""),
        )

    def logout(self) -> None:
        """Clear the session."""
        self._auth = None
