"""
Client for the auth/OTP service that issues bearer tokens.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .config import settings
from .errors import AuthError, extract_error_message

logger = logging.getLogger(__name__)


class AuthClient:
    """Synchronous client for the ``/auth`` endpoints."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, fallback: str,
                 json: Optional[Dict[str, Any]] = None,
                 access_token: Optional[str] = None) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            response = self.session.request(
                method, f"{self.base_url}{path}",
                json=json, headers=headers, timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Auth request {path} failed: {e}")
            raise AuthError(f"{fallback}: {e}") from e

        if not response.ok:
            message = extract_error_message(response, fallback)
            logger.error(f"Auth request {path} returned HTTP {response.status_code}: {message}")
            raise AuthError(message)
        return response.json()

    def login(self, phone: str, password: str) -> Dict[str, Any]:
        """Returns ``{"access_token", "token_type"}``."""
        return self._request("POST", "/auth/login", "Login failed",
                             json={"phone": phone, "password": password})

    def get_current_user(self, access_token: str) -> Dict[str, Any]:
        return self._request("GET", "/auth/me", "Failed to get user info",
                             access_token=access_token)

    def send_signup_otp(self, phone_number: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/signup/send-otp", "Failed to send OTP",
                             json={"phone_number": phone_number})

    def verify_signup_otp(self, phone_number: str, otp_code: str, name: str, email: str,
                          password: str, has_given_consent: bool) -> Dict[str, Any]:
        """Completes signup; the response carries the new user's access token."""
        return self._request("POST", "/auth/signup/verify-otp", "Failed to verify OTP", json={
            "phone_number": phone_number,
            "otp_code": otp_code,
            "name": name,
            "email": email,
            "password": password,
            "has_given_consent": has_given_consent,
        })

    def resend_signup_otp(self, phone_number: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/signup/resend-otp", "Failed to resend OTP",
                             json={"phone_number": phone_number})
