"""
Conversion between the JSON form of WebAuthn options/credentials and the
binary form the ceremony works with.

Server options carry base64url strings (unpadded); the ceremony needs bytes
for challenges, user handles and credential ids. Credentials come back with
bytes and are sent to the server base64url-encoded.
"""

import base64
import copy
from typing import Any, Dict


def base64url_encode(raw_bytes: bytes) -> str:
    """URL-safe base64 without '=' padding"""
    return base64.urlsafe_b64encode(raw_bytes).decode("utf-8").rstrip("=")


def base64url_decode(encoded: str) -> bytes:
    """Decode URL-safe base64, restoring any stripped padding"""
    padding = "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(encoded + padding)


def _public_key(options: Dict[str, Any]) -> Dict[str, Any]:
    # Accept both {"publicKey": {...}} and the bare inner dict
    if "publicKey" in options:
        return options["publicKey"]
    return options


def _decode_descriptors(descriptors: Any) -> None:
    for descriptor in descriptors or []:
        if isinstance(descriptor.get("id"), str):
            descriptor["id"] = base64url_decode(descriptor["id"])


def decode_creation_options(options: Dict[str, Any]) -> Dict[str, Any]:
    """Server creation options -> ceremony-ready options ({"publicKey": {...}})."""
    public_key = copy.deepcopy(_public_key(options))
    if "challenge" not in public_key or "user" not in public_key:
        raise ValueError("Creation options must contain challenge and user")
    public_key["challenge"] = base64url_decode(public_key["challenge"])
    user = public_key["user"]
    if isinstance(user.get("id"), str):
        user["id"] = base64url_decode(user["id"])
    _decode_descriptors(public_key.get("excludeCredentials"))
    return {"publicKey": public_key}


def decode_request_options(options: Dict[str, Any]) -> Dict[str, Any]:
    """Server request options -> ceremony-ready options ({"publicKey": {...}})."""
    public_key = copy.deepcopy(_public_key(options))
    if "challenge" not in public_key:
        raise ValueError("Request options must contain a challenge")
    public_key["challenge"] = base64url_decode(public_key["challenge"])
    _decode_descriptors(public_key.get("allowCredentials"))
    return {"publicKey": public_key}


def encode_credential(value: Any) -> Any:
    """Recursively base64url-encode every binary field of a credential."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64url_encode(bytes(value))
    if isinstance(value, dict):
        return {key: encode_credential(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_credential(item) for item in value]
    return value
