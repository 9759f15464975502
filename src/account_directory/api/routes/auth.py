"""Authentication flow, registration, and email verification endpoints."""

import logging

from fastapi import APIRouter, Depends

from account_directory.api.dependencies import get_controller, get_mailer
from account_directory.api.models import (
    ErrorResponse,
    FlowStatusResponse,
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
    RegisterResponse,
    SecondFactorRequest,
    SessionRequest,
    VerifyEmailLinkResponse,
    VerifyEmailRequest,
)
from account_directory.auth.flow import AuthFlowController, FlowStatus
from account_directory.auth.mailer import Mailer
from account_directory.auth.registration import register_account

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _response(status: FlowStatus) -> FlowStatusResponse:
    return FlowStatusResponse(**status.to_dict())


def router() -> APIRouter:
    """Build the auth router."""
    api = APIRouter(responses=ERROR_RESPONSES)

    @api.post(
        "/auth/login",
        response_model=FlowStatusResponse,
        responses={429: {"model": ErrorResponse}},
    )
    def login(request: LoginRequest, controller: AuthFlowController = Depends(get_controller)):
        """
        Start an authentication flow.

        Returns the flow handle and the state the visitor landed in. Accounts
        with no pending gate are ``authorized`` straight away and receive
        their bearer credential here.
        """
        return _response(controller.login(request.identifier, request.secret))

    @api.post("/auth/second-factor", response_model=FlowStatusResponse)
    def submit_second_factor(
        request: SecondFactorRequest,
        controller: AuthFlowController = Depends(get_controller),
    ):
        """Answer the pending TOTP challenge."""
        return _response(controller.submit_second_factor(request.session_id, request.code))

    @api.post("/auth/verify-email", response_model=FlowStatusResponse)
    def verify_email(
        request: VerifyEmailRequest,
        controller: AuthFlowController = Depends(get_controller),
    ):
        """Redeem a verification token inside the flow."""
        return _response(controller.verify_email(request.session_id, request.token))

    @api.post(
        "/auth/resend-verification",
        response_model=FlowStatusResponse,
        responses={429: {"model": ErrorResponse}},
    )
    def resend_verification(
        request: SessionRequest,
        controller: AuthFlowController = Depends(get_controller),
    ):
        """Send a fresh verification link; older links stop working."""
        return _response(controller.resend_verification(request.session_id))

    @api.get("/auth/status", response_model=FlowStatusResponse)
    def status(session_id: str = "", controller: AuthFlowController = Depends(get_controller)):
        """Report the current state of a flow."""
        return _response(controller.status(session_id))

    @api.post("/auth/logout", response_model=LogoutResponse)
    def logout(request: SessionRequest, controller: AuthFlowController = Depends(get_controller)):
        """Discard a flow. Accepts a session id or bearer credential; always succeeds."""
        controller.logout(request.session_id)
        return LogoutResponse(success=True, message="Logged out successfully")

    @api.post("/register", response_model=RegisterResponse, status_code=201)
    def register(request: RegisterRequest, mailer: Mailer = Depends(get_mailer)):
        """Create an account and send its verification link."""
        result = register_account(
            request.username,
            request.email,
            request.password,
            enable_two_factor=request.enable_two_factor,
            mailer=mailer,
        )
        return RegisterResponse(
            success=True,
            message="Account created. Please check your email to verify your account.",
            otpauth_uri=result.otpauth_uri,
        )

    @api.get("/verify-email", response_model=VerifyEmailLinkResponse)
    def verify_email_link(
        token: str = "", controller: AuthFlowController = Depends(get_controller)
    ):
        """Redeem the emailed verification link."""
        username = controller.verify_email_link(token)
        return VerifyEmailLinkResponse(
            success=True,
            message="Email verified. You can now sign in.",
            username=username,
        )

    return api
