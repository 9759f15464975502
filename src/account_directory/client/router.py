"""
View routing guarded by the authentication flow.

Paths:
    /              directory view, only while authorized
    /login         sign-in form
    /register      registration form
    /2fa           second-factor form
    /verify-email  email verification view

Every navigation goes through :func:`resolve`, which returns the view the
visitor actually gets for their current flow state.
"""

from __future__ import annotations

from account_directory.auth.state import FlowState

DIRECTORY = "/"
LOGIN = "/login"
REGISTER = "/register"
SECOND_FACTOR = "/2fa"
VERIFY_EMAIL = "/verify-email"

ROUTES = (DIRECTORY, LOGIN, REGISTER, SECOND_FACTOR, VERIFY_EMAIL)

# Views reachable without a signed-in flow.
PUBLIC_ROUTES = frozenset({LOGIN, REGISTER})

HOME_FOR_STATE: dict[FlowState, str] = {
    FlowState.ANONYMOUS: LOGIN,
    FlowState.CREDENTIALS_SUBMITTED: LOGIN,
    FlowState.AWAITING_SECOND_FACTOR: SECOND_FACTOR,
    FlowState.AWAITING_EMAIL_VERIFICATION: VERIFY_EMAIL,
    FlowState.AUTHORIZED: DIRECTORY,
    FlowState.REJECTED: LOGIN,
    FlowState.EXPIRED: LOGIN,
}


def home_for(state: FlowState) -> str:
    """The view a visitor in ``state`` belongs on."""
    return HOME_FOR_STATE[state]


def resolve(path: str, state: FlowState) -> str:
    """
    Return the view to render when a visitor in ``state`` navigates to ``path``.

    Unknown paths go to the visitor's home view. The directory and the two
    in-flow views are only reachable in their own state; sign-in and
    registration stay reachable unless a flow is pending or already
    authorized.
    """
    path = path.split("?", 1)[0].rstrip("/") or DIRECTORY
    home = home_for(state)
    if path not in ROUTES:
        return home
    if path in PUBLIC_ROUTES:
        if state is FlowState.AUTHORIZED or state.is_pending:
            return home
        return path
    return path if path == home else home
