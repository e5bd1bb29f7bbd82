"""
Security utilities for the OAuth gateway.

This module provides session identifier generation, token masking for
logs and the response security headers applied by the gateway.
"""

import secrets
from typing import Optional


class TokenGenerator:
    """
    Cryptographically secure identifier generation.
    """

    @staticmethod
    def generate_session_id() -> str:
        """
        Generate an opaque session identifier.

        Returns:
            str: URL-safe session identifier (43 characters)
        """
        return secrets.token_urlsafe(32)

    @staticmethod
    def generate_session_secret() -> str:
        """
        Generate a secret for signing the session cookie.

        Used only when no secret is configured, which makes every process
        restart invalidate existing cookies.
        """
        return secrets.token_urlsafe(32)


def mask_token(token: Optional[str], visible: int = 10) -> str:
    """
    Shorten a token for display, keeping only its first characters.

    Args:
        token: Token to mask
        visible: Number of leading characters to keep

    Returns:
        str: Masked token, or an empty string when no token is given
    """
    if not token:
        return ""
    if len(token) <= visible:
        return token
    return token[:visible] + "..."


class SecurityHeaders:
    """
    Security headers for gateway responses.
    """

    @staticmethod
    def get_oauth_security_headers() -> dict:
        """
        Get security headers for OAuth endpoints.

        Returns:
            dict: Dictionary of security headers
        """
        return {
            'X-Content-Type-Options': 'nosniff',
            'X-Frame-Options': 'DENY',
            'X-XSS-Protection': '1; mode=block',
            'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
            'Cache-Control': 'no-cache, no-store, must-revalidate',
            'Pragma': 'no-cache',
            'Expires': '0'
        }
