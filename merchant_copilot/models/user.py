"""User model derived from bearer token claims."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated caller populated from token claims.

    Not persisted, derived on each request. Used to scope the document
    listing and to attribute web search log entries.
    """

    user_id: str = Field(..., description="Subject / object ID of the caller")
    display_name: str = Field("Unknown", max_length=256)
    email: str = ""

    @classmethod
    def from_jwt_claims(cls, claims: dict[str, Any]) -> User:
        """Construct a User from decoded JWT claims.

        Expected claims:
            - oid or sub: caller ID → user_id
            - name: Display name → display_name
            - preferred_username or email → email
        """
        user_id = claims.get("oid") or claims["sub"]
        return cls(
            user_id=user_id,
            display_name=claims.get("name", "Unknown"),
            email=claims.get("preferred_username") or claims.get("email", ""),
        )
