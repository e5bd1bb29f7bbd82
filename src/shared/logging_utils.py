"""
Colored flow logging for the OAuth gateway.

Every hop of the gateway (browser → gateway, gateway → authorization server,
gateway → identity/data API) is logged as a ``source → destination`` header,
a message type and a sanitized key/value body, so that an operator can follow
a login or a proxied query end to end without ever seeing a raw token.
"""

import logging
from datetime import datetime
from typing import Dict, Any, Optional

from colorama import Fore, Style, init

init(autoreset=True)


SENSITIVE_KEYS = ("password", "secret", "key", "signature", "cookie")
TRUNCATED_KEYS = ("token", "code", "authorization")


class OAuthLogger:
    """
    Colored logger for OAuth gateway message flows.

    Wraps a standard ``logging.Logger`` named ``oauth.<component>`` and formats
    records with color coding per component and per outcome.
    """

    def __init__(self, component_name: str):
        """
        Initialize the logger for one gateway component.

        Args:
            component_name: Name of the component (GATEWAY, SESSION-STORE, ...)
        """
        self.component_name = component_name.upper()
        self.colors = self._get_component_colors()

        self.logger = logging.getLogger(f"oauth.{component_name.lower()}")
        self.logger.setLevel(logging.INFO)

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()

        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def _get_component_colors(self) -> Dict[str, str]:
        """Get color scheme for components and message outcomes."""
        return {
            'BROWSER': Fore.CYAN + Style.BRIGHT,
            'GATEWAY': Fore.BLUE + Style.BRIGHT,
            'AUTH-SERVER': Fore.GREEN + Style.BRIGHT,
            'IDENTITY-API': Fore.YELLOW + Style.BRIGHT,
            'DATA-API': Fore.YELLOW + Style.BRIGHT,
            'SESSION-STORE': Fore.MAGENTA,
            'ERROR': Fore.RED + Style.BRIGHT,
            'SUCCESS': Fore.GREEN + Style.BRIGHT,
            'INFO': Fore.CYAN,
            'HEADER': Fore.WHITE + Style.BRIGHT,
            'SEPARATOR': Fore.WHITE + Style.DIM,
            'RESET': Style.RESET_ALL
        }

    def _format_timestamp(self) -> str:
        """Format current timestamp for log messages."""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

    def _sanitize_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sanitize sensitive data for logging.

        Redacts secrets outright and truncates tokens and codes to a short
        prefix. Nested dictionaries are sanitized recursively.
        """
        sanitized = {}
        for key, value in data.items():
            key_lower = key.lower()

            if isinstance(value, dict):
                sanitized[key] = self._sanitize_data(value)
            elif any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
                sanitized[key] = '[REDACTED]'
            elif any(token in key_lower for token in TRUNCATED_KEYS):
                if isinstance(value, str) and len(value) > 10:
                    sanitized[key] = f"{value[:10]}..."
                else:
                    sanitized[key] = value
            else:
                sanitized[key] = value

        return sanitized

    def log_oauth_message(self,
                          source: str,
                          destination: str,
                          message_type: str,
                          data: Dict[str, Any],
                          success: bool = True):
        """
        Log one hop of a gateway exchange.

        Args:
            source: Source component name
            destination: Destination component name
            message_type: Short description of the message
            data: Message data dictionary (sanitized before output)
            success: Whether the operation was successful
        """
        timestamp = self._format_timestamp()
        source_color = self.colors.get(source.upper(), self.colors['INFO'])
        dest_color = self.colors.get(destination.upper(), self.colors['INFO'])
        reset = self.colors['RESET']

        if not success:
            msg_color = self.colors['ERROR']
        elif message_type in ['RESPONSE', 'SUCCESS']:
            msg_color = self.colors['SUCCESS']
        else:
            msg_color = self.colors['INFO']

        lines = [
            f"{self.colors['HEADER']}[{timestamp}] {source_color}{source}{reset} → {dest_color}{destination}{reset}",
            f"{msg_color}{message_type}:{reset}",
        ]
        for key, value in self._sanitize_data(data).items():
            lines.append(f"  {self.colors['INFO']}{key}:{reset} {value}")
        lines.append(f"{self.colors['SEPARATOR']}{'-' * 60}{reset}")

        level = logging.INFO if success else logging.ERROR
        self.logger.log(level, "\n".join(lines))

    def log_http_request(self,
                         method: str,
                         path: str,
                         params: Optional[Dict[str, Any]] = None):
        """
        Log an inbound HTTP request.

        Args:
            method: HTTP method
            path: Request path
            params: Query parameters
        """
        request_data = {
            "method": method,
            "path": path
        }

        if params:
            request_data["parameters"] = params

        self.log_oauth_message(
            source="BROWSER",
            destination=self.component_name,
            message_type="HTTP-REQUEST",
            data=request_data
        )

    def log_error(self,
                  error_type: str,
                  message: str,
                  details: Optional[Dict[str, Any]] = None):
        """
        Log an error with context.

        Args:
            error_type: Type of error (usually the exception class name)
            message: Error message
            details: Additional error context
        """
        error_data = {
            "error_type": error_type,
            "message": message
        }

        if details:
            error_data.update(details)

        self.log_oauth_message(
            source=self.component_name,
            destination="ERROR-HANDLER",
            message_type="ERROR",
            data=error_data,
            success=False
        )

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Log an informational message.

        Args:
            message: Info message
            details: Additional context
        """
        lines = [f"{self.colors['INFO']}[{self._format_timestamp()}] {self.component_name}: {message}{self.colors['RESET']}"]
        if details:
            for key, value in self._sanitize_data(details).items():
                lines.append(f"  {key}: {value}")
        self.logger.info("\n".join(lines))

    def log_startup(self, port: int, additional_info: Optional[Dict[str, Any]] = None):
        """
        Log component startup information.

        Args:
            port: Port number the component is listening on
            additional_info: Additional startup information
        """
        lines = [f"{self.colors['SUCCESS']}🚀 {self.component_name} started on port {port}{self.colors['RESET']}"]
        if additional_info:
            for key, value in self._sanitize_data(additional_info).items():
                lines.append(f"   {key}: {value}")
        lines.append(f"{self.colors['SEPARATOR']}{'-' * 60}{self.colors['RESET']}")
        self.logger.info("\n".join(lines))

