"""
Pydantic models for API requests and responses.

Models are organized into two categories:
1. Request models: Data sent FROM the client TO the server
2. Response models: Data sent FROM the server TO the client

Directory query parameters are read straight from the query string (see
``routes/directory.py``) because their wire names are camelCase and their
validation errors must use the directory's own messages.
"""

from typing import Literal

from pydantic import BaseModel

FlowStateName = Literal[
    "anonymous",
    "credentials_submitted",
    "awaiting_second_factor",
    "awaiting_email_verification",
    "authorized",
    "rejected",
    "expired",
]

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


class LoginRequest(BaseModel):
    """
    Credentials for starting an authentication flow.

    Attributes:
        identifier: Account username (case-sensitive)
        secret: Plain text password (verified against the bcrypt hash)
    """

    identifier: str
    secret: str


class SecondFactorRequest(BaseModel):
    """Answer to a pending second-factor challenge."""

    session_id: str
    code: str


class VerifyEmailRequest(BaseModel):
    """Verification token redeemed inside a flow."""

    session_id: str
    token: str


class SessionRequest(BaseModel):
    """Request that only identifies a flow (resend, logout)."""

    session_id: str


class RegisterRequest(BaseModel):
    """
    Self-service registration.

    Attributes:
        username: Desired username (2-20 characters, must be unique)
        email: Address the verification link is sent to
        password: Desired password (8-72 bytes)
        enable_two_factor: Enroll a TOTP second factor
    """

    username: str
    email: str
    password: str
    enable_two_factor: bool = False


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class FlowStatusResponse(BaseModel):
    """
    Current state of an authentication flow.

    ``credential`` is only present once ``state`` is ``authorized``; send it
    as ``Authorization: Bearer <credential>`` to read the directory.
    """

    session_id: str
    state: FlowStateName
    message: str
    credential: str | None = None
    attempts_remaining: int | None = None


class LogoutResponse(BaseModel):
    success: bool
    message: str


class RegisterResponse(BaseModel):
    """
    Registration outcome.

    ``otpauth_uri`` is returned once, when a second factor was enrolled.
    """

    success: bool
    message: str
    otpauth_uri: str | None = None


class VerifyEmailLinkResponse(BaseModel):
    success: bool
    message: str
    username: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    detail: str
    error: str
