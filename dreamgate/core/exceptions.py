"""Custom exceptions for Dreamgate."""


class DreamgateException(Exception):
    """Base exception for all Dreamgate errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationException(DreamgateException):
    """Raised when configuration is invalid."""

    def __init__(self, config_file: str, reason: str):
        super().__init__(
            f"Invalid configuration in {config_file}: {reason}", {"config_file": config_file, "reason": reason}
        )


class RetryExhaustedError(DreamgateException):
    """Raised by retry_with_backoff when every attempt failed."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException | None = None):
        reason = str(last_error).split("\n")[0] if last_error else "condition never met"
        super().__init__(
            f"'{operation}' failed after {attempts} attempt(s): {reason}",
            {"operation": operation, "attempts": attempts},
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# BROWSER
# =============================================================================


class BrowserException(DreamgateException):
    """Base exception for browser-related errors."""

    pass


class BrowserLaunchError(BrowserException):
    """Raised when the browser cannot be launched after all retries."""

    def __init__(self, reason: str = "Unknown error", attempts: int = 1):
        super().__init__(f"Failed to launch browser: {reason}", {"reason": reason, "attempts": attempts})


class NavigationError(BrowserException):
    """Raised when page navigation fails."""

    def __init__(self, url: str, reason: str = "Timeout"):
        super().__init__(f"Failed to navigate to {url}: {reason}", {"url": url, "reason": reason})


# =============================================================================
# AUTHENTICATION
# =============================================================================


class AuthenticationError(DreamgateException):
    """Base exception for authentication errors."""

    pass


class SessionExpiredError(AuthenticationError):
    """Raised when the site shows a login UI despite injected cookies."""

    def __init__(self, service: str = "dreamina", evidence: str = "login control present"):
        super().__init__(
            f"Session expired for {service} ({evidence}). Export fresh cookies and restart.",
            {"service": service, "evidence": evidence},
        )


class VerificationTimeoutError(AuthenticationError):
    """Raised when no login signal was conclusive within the allowed attempts."""

    def __init__(self, attempts: int):
        super().__init__(
            f"Could not verify login state after {attempts} attempts. Refresh the cookie file and restart.",
            {"attempts": attempts},
        )


class NotAuthenticatedError(AuthenticationError):
    """Raised when generation is requested before the session is ready."""

    def __init__(self, state: str = "unauthenticated"):
        super().__init__(f"Not logged in (session {state}). Please restart the server.", {"state": state})


# =============================================================================
# GENERATION
# =============================================================================


class GenerationError(DreamgateException):
    """Base exception for generation errors."""

    pass


class InvalidRequestError(GenerationError):
    """Raised when a generation request is malformed."""

    def __init__(self, reason: str):
        super().__init__(f"Invalid generation request: {reason}", {"reason": reason})


class InputNotFoundError(GenerationError):
    """Raised when the prompt input cannot be located."""

    def __init__(self, attempts: int):
        super().__init__(f"Could not find prompt input field after {attempts} attempts", {"attempts": attempts})


class SubmitNotFoundError(GenerationError):
    """Raised when no submit control could be triggered."""

    def __init__(self, attempts: int):
        super().__init__(f"Could not find generate button after {attempts} attempts", {"attempts": attempts})


class NoResultsError(GenerationError):
    """Raised when no generated images could be extracted."""

    def __init__(self, reason: str = "No new images found"):
        super().__init__(f"Could not extract generated images: {reason}", {"reason": reason})
