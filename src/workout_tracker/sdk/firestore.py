"""
Firestore document SDK functions.

Thin wrappers over the Firestore REST API plus the typed-value codec
(stringValue, integerValue, mapValue, ...) used by every document payload.
"""

import base64
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from workout_tracker.sdk.client import FirebaseClient, FirebaseError


# ── Value codec ──────────────────────────────────────────────────────────

def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        # int64 travels as a string
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": format_timestamp(value)}
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot encode {type(value).__name__} as a Firestore value")


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: encode_value(val) for key, val in data.items()}


def decode_value(value: Dict[str, Any]) -> Any:
    """Decode a Firestore typed value.

    Raises:
        ValueError: On an unknown or malformed value type
    """
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "referenceValue" in value:
        return value["referenceValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: decode_value(val) for key, val in fields.items()}


def format_timestamp(value: datetime) -> str:
    """RFC 3339 UTC timestamp ("2025-01-27T18:30:00Z")."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return text + "Z"


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp; nanosecond fractions are truncated."""
    text = text.replace("Z", "+00:00")
    if "." in text:
        head, rest = text.split(".", 1)
        digits = ""
        for ch in rest:
            if not ch.isdigit():
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"
    return datetime.fromisoformat(text)


# ── Documents ────────────────────────────────────────────────────────────

def get_document(client: FirebaseClient, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    """
    Read a document.

    GET documents/{collection}/{id}

    Returns:
        Decoded fields, or None if the document does not exist
    """
    try:
        doc = client.make_request("GET", f"{client.documents_url}/{collection}/{doc_id}")
    except FirebaseError as e:
        if e.status_code == 404:
            return None
        raise
    return decode_fields(doc.get("fields", {}))


def set_document(client: FirebaseClient, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
    """
    Write a whole document, replacing any existing content.

    PATCH documents/{collection}/{id} (no update mask)
    """
    client.make_request(
        "PATCH",
        f"{client.documents_url}/{collection}/{doc_id}",
        json_data={"fields": encode_fields(data)},
    )


def update_fields(client: FirebaseClient, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
    """
    Update the given top-level fields of an existing document.

    PATCH documents/{collection}/{id}?updateMask.fieldPaths=...

    Fails with NOT_FOUND if the document does not exist.
    """
    params = [("updateMask.fieldPaths", key) for key in data]
    params.append(("currentDocument.exists", "true"))
    client.make_request(
        "PATCH",
        f"{client.documents_url}/{collection}/{doc_id}",
        params=params,
        json_data={"fields": encode_fields(data)},
    )


def delete_document(client: FirebaseClient, collection: str, doc_id: str) -> None:
    """
    Delete a document. Deleting a missing document succeeds.

    DELETE documents/{collection}/{id}
    """
    client.make_request("DELETE", f"{client.documents_url}/{collection}/{doc_id}")


def create_document(client: FirebaseClient, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
    """
    Create a document that must not exist yet.

    POST documents:commit with currentDocument.exists=false

    Raises:
        FirebaseError: ALREADY_EXISTS / FAILED_PRECONDITION if the id is taken
    """
    commit(client, [{
        "update": {
            "name": client.document_name(collection, doc_id),
            "fields": encode_fields(data),
        },
        "currentDocument": {"exists": False},
    }])


def array_union(client: FirebaseClient, collection: str, doc_id: str, field: str, values: List[Any]) -> None:
    """
    Add elements to an array field, skipping ones already present.

    POST documents:commit (appendMissingElements transform)
    """
    commit(client, [{
        "transform": {
            "document": client.document_name(collection, doc_id),
            "fieldTransforms": [{
                "fieldPath": field,
                "appendMissingElements": {"values": [encode_value(v) for v in values]},
            }],
        },
        "currentDocument": {"exists": True},
    }])


def array_remove(client: FirebaseClient, collection: str, doc_id: str, field: str, values: List[Any]) -> None:
    """
    Remove every occurrence of the elements from an array field.

    POST documents:commit (removeAllFromArray transform)
    """
    commit(client, [{
        "transform": {
            "document": client.document_name(collection, doc_id),
            "fieldTransforms": [{
                "fieldPath": field,
                "removeAllFromArray": {"values": [encode_value(v) for v in values]},
            }],
        },
        "currentDocument": {"exists": True},
    }])


def commit(client: FirebaseClient, writes: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Apply writes atomically.

    POST documents:commit
    """
    return client.make_request(
        "POST",
        f"{client.documents_url}:commit",
        json_data={"writes": writes},
    )


def query_equal(
    client: FirebaseClient,
    collection: str,
    field: str,
    value: Any,
    limit: int = 1,
) -> List[Dict[str, Any]]:
    """
    Find documents whose field equals value.

    POST documents:runQuery

    Returns:
        List of {"id": doc_id, "fields": {...decoded}}
    """
    # Display-name lookups run before sign-in, so the API key rides along
    response = client.make_request(
        "POST",
        f"{client.documents_url}:runQuery",
        params={"key": client.api_key},
        json_data={
            "structuredQuery": {
                "from": [{"collectionId": collection}],
                "where": {
                    "fieldFilter": {
                        "field": {"fieldPath": field},
                        "op": "EQUAL",
                        "value": encode_value(value),
                    },
                },
                "limit": limit,
            },
        },
        require_auth=False,
    )

    results = []
    # Each entry is {"document": {...}, "readTime": ...}; empty results carry only readTime
    for entry in response or []:
        doc = entry.get("document")
        if not doc:
            continue
        results.append({
            "id": doc["name"].rsplit("/", 1)[-1],
            "fields": decode_fields(doc.get("fields", {})),
        })
    return results
