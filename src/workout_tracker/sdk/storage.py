"""
Firebase Storage SDK functions.

Object upload/download over the Storage REST API.
"""

from urllib.parse import quote

from workout_tracker.sdk.client import STORAGE_URL, FirebaseClient


def upload(client: FirebaseClient, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
    """
    Upload bytes to an object path, replacing any existing object.

    POST /v0/b/{bucket}/o?name={path}

    Returns:
        Public download URL for the object
    """
    metadata = client.make_request(
        "POST",
        f"{STORAGE_URL}/{client.bucket}/o",
        params={"uploadType": "media", "name": path},
        data=data,
        headers={"Content-Type": content_type},
    )
    return download_url(client, path, metadata.get("downloadTokens"))


def download_url(client: FirebaseClient, path: str, token: str = None) -> str:
    """Build the public download URL for an object."""
    url = f"{STORAGE_URL}/{client.bucket}/o/{quote(path, safe='')}?alt=media"
    if token:
        # Several tokens may be listed; any of them grants access
        url += f"&token={token.split(',')[0]}"
    return url


def download(client: FirebaseClient, url: str) -> bytes:
    """
    Fetch object bytes from a download URL.

    GET {url}
    """
    response = client.make_request("GET", url, require_auth=False, raw=True)
    return response.content
