"""
Request-scoped client context.

Each inbound request carries an ``x-client-context`` header: a base64
encoded JSON bundle with the caller's access token, API version, org and
user. It is decoded once at the request boundary into an immutable
ClientContext and passed explicitly to every record store call.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Optional

CLIENT_CONTEXT_HEADER = "x-client-context"


class ClientContextError(Exception):
    """Raised when the client context header is missing or cannot be decoded."""
    pass


@dataclass(frozen=True)
class UserContext:
    """Identity of the user the request acts as."""
    user_id: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class ClientContext:
    """
    Credentials and routing information for one request.

    Attributes:
        access_token: Bearer token for the record store (never logged)
        org_domain_url: Base URL of the caller's org
        org_id: Org identifier
        api_version: Data API version, e.g. "62.0"
        request_id: Caller-supplied request identifier
        namespace: Caller namespace
        user: Acting user
    """

    access_token: str = field(repr=False)
    org_domain_url: str
    org_id: str
    api_version: Optional[str] = None
    request_id: Optional[str] = None
    namespace: Optional[str] = None
    user: UserContext = field(default_factory=UserContext)

    @classmethod
    def from_dict(cls, data: dict) -> "ClientContext":
        """
        Build a context from the decoded JSON bundle.

        Raises:
            ClientContextError: If a required value is missing
        """
        if not isinstance(data, dict):
            raise ClientContextError("Client context must be a JSON object")

        missing = [
            key for key in ("accessToken", "orgDomainUrl", "orgId")
            if not isinstance(data.get(key), str) or not data[key].strip()
        ]
        if missing:
            raise ClientContextError(
                f"Client context is missing required values: {', '.join(missing)}"
            )

        user_data = data.get("userContext") or {}
        if not isinstance(user_data, dict):
            raise ClientContextError("Client context userContext must be an object")

        return cls(
            access_token=data["accessToken"],
            org_domain_url=data["orgDomainUrl"].rstrip("/"),
            org_id=data["orgId"],
            api_version=data.get("apiVersion") or None,
            request_id=data.get("requestId"),
            namespace=data.get("namespace"),
            user=UserContext(
                user_id=user_data.get("userId"),
                username=user_data.get("username"),
            ),
        )

    @classmethod
    def from_header(cls, header_value: Optional[str]) -> "ClientContext":
        """
        Decode an ``x-client-context`` header value.

        Args:
            header_value: Base64 encoded JSON bundle

        Returns:
            Decoded ClientContext

        Raises:
            ClientContextError: If the header is absent or malformed
        """
        if not header_value or not header_value.strip():
            raise ClientContextError("Client context header is missing")

        try:
            raw = base64.b64decode(header_value.strip(), validate=False)
            data = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ClientContextError(f"Client context header is not valid base64 JSON: {e}")

        return cls.from_dict(data)

    def to_header(self) -> str:
        """Encode this context as an ``x-client-context`` header value."""
        payload = {
            "accessToken": self.access_token,
            "apiVersion": self.api_version,
            "requestId": self.request_id,
            "namespace": self.namespace,
            "orgId": self.org_id,
            "orgDomainUrl": self.org_domain_url,
            "userContext": {
                "userId": self.user.user_id,
                "username": self.user.username,
            },
        }
        return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")

    def log_context(self) -> dict:
        """Get the non-secret values worth binding to log lines."""
        return {
            "request_id": self.request_id,
            "org_id": self.org_id,
            "username": self.user.username,
        }
