"""Dreamgate core - Shared infrastructure."""

from .browser import (
    AuthState,
    BrowserSession,
    close_browser,
    debug_log,
    launch_browser,
    log,
    log_context,
    resolve_executable,
)
from .config import (
    Settings,
    get_model,
    get_model_names,
    get_models,
    is_default_model,
    load_settings_from_env,
)
from .cookies import Cookie, load_cookie_file, parse_cookies, summarize_cookies
from .session import AuthResult, Authenticator
from .utils import describe_image, retry_with_backoff

__all__ = [
    # browser
    "log",
    "debug_log",
    "log_context",
    "AuthState",
    "BrowserSession",
    "resolve_executable",
    "launch_browser",
    "close_browser",
    # session
    "Authenticator",
    "AuthResult",
    # cookies
    "Cookie",
    "parse_cookies",
    "load_cookie_file",
    "summarize_cookies",
    # config
    "Settings",
    "load_settings_from_env",
    "get_models",
    "get_model",
    "get_model_names",
    "is_default_model",
    # utils
    "retry_with_backoff",
    "describe_image",
]
