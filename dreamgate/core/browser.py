"""Browser session management - one Chromium process, one page."""

import asyncio
import contextvars
import os
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any

from playwright.async_api import async_playwright

from .config import Settings
from .debug import cleanup_old_dumps, is_debug_logging_enabled
from .exceptions import BrowserLaunchError, RetryExhaustedError
from .utils import retry_with_backoff

# Context variable for current operation (e.g., "auth", "generate")
_log_context: contextvars.ContextVar[str | None] = contextvars.ContextVar("log_context", default=None)


@contextmanager
def log_context(name: str):
    """Set logging context for a block of code. All logs will include this context."""
    token = _log_context.set(name)
    try:
        yield
    finally:
        _log_context.reset(token)


def log(msg, symbol="▸"):
    """Log with timestamp, context, and symbol."""
    ts = datetime.now().strftime("%H:%M:%S")
    ctx = _log_context.get()
    ctx_str = f" {ctx}:" if ctx else ""
    print(f"[Dreamgate {ts}]{ctx_str} {symbol} {msg}", flush=True)


def debug_log(msg, symbol="⌘"):
    """Log only when DREAMGATE_DEBUG=1 is set."""
    if is_debug_logging_enabled():
        log(msg, symbol)


# Well-known Chromium/Chrome install locations, checked in order
CHROMIUM_PROBE_PATHS = (
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/snap/bin/chromium",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-blink-features=AutomationControlled",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--window-size=1920,1080",
]

GRANTED_PERMISSIONS = ["notifications", "clipboard-read", "clipboard-write"]

# Hide the usual headless fingerprints before any site script runs
STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', { get: () => false });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
    Object.defineProperty(navigator, 'plugins', {
        get: () => [
            { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer' },
            { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai' },
            { name: 'Native Client', filename: 'internal-nacl-plugin' },
        ],
    });
    window.chrome = window.chrome || { runtime: {} };
    const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
    if (originalQuery) {
        window.navigator.permissions.query = (parameters) => (
            parameters && parameters.name === 'notifications'
                ? Promise.resolve({ state: 'granted' })
                : originalQuery.call(window.navigator.permissions, parameters)
        );
    }
"""


def resolve_executable(settings: Settings, probe_paths=CHROMIUM_PROBE_PATHS) -> str | None:
    """Pick the browser binary: known install paths, then the configured path.

    Returns None to let Playwright use its bundled Chromium.
    """
    for path in probe_paths:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            debug_log(f"Found browser at {path}")
            return path

    if settings.executable_path:
        if os.path.isfile(settings.executable_path):
            return settings.executable_path
        log(f"Configured browser not found: {settings.executable_path}", "⚠")

    return None


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"


class BrowserSession:
    """The single browser process and page shared by every request.

    ``lock`` must be held by anything that drives the page, since a
    generation relies on exclusive page ownership. ``state`` is only
    written by the authenticator.
    """

    def __init__(self, playwright: Any = None, browser: Any = None, context: Any = None, page: Any = None):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self.executable_path: str | None = None
        self.state = AuthState.UNAUTHENTICATED
        self.last_error: Exception | None = None
        self.lock = asyncio.Lock()

    @property
    def logged_in(self) -> bool:
        return self.state is AuthState.READY

    @property
    def is_open(self) -> bool:
        return self.page is not None

    def set_state(self, state: AuthState, error: Exception | None = None):
        if state is not self.state:
            log(f"Session {self.state.value} → {state.value}", "○")
        self.state = state
        self.last_error = error


def _attach_page_listeners(page):
    """Collect console errors and failed responses for debug dumps."""
    page._dreamgate_console = []  # type: ignore[attr-defined]
    page._dreamgate_network_errors = []  # type: ignore[attr-defined]

    def on_console(msg):
        if msg.type in ["error", "warning"]:
            page._dreamgate_console.append({"type": msg.type, "text": msg.text})  # type: ignore[attr-defined]

    def on_response(response):
        if response.status >= 400:
            page._dreamgate_network_errors.append(  # type: ignore[attr-defined]
                {"url": response.url, "status": response.status, "method": response.request.method}
            )

    page.on("console", on_console)
    page.on("response", on_response)


async def _launch_once(settings: Settings, executable: str | None) -> BrowserSession:
    """One launch attempt. Tears down whatever was created if any step fails."""
    session = BrowserSession(playwright=await async_playwright().start())
    try:
        session.browser = await session.playwright.chromium.launch(
            headless=settings.headless,
            executable_path=executable,
            args=CHROMIUM_ARGS,
            timeout=settings.launch_timeout * 1000,
        )
        session.context = await session.browser.new_context(
            viewport=settings.viewport,  # type: ignore[arg-type]
            user_agent=settings.user_agent,
            locale="en-US",
            permissions=GRANTED_PERMISSIONS,
        )
        await session.context.add_init_script(STEALTH_SCRIPT)
        session.page = await session.context.new_page()
        session.page.set_default_timeout(settings.operation_timeout * 1000)
        session.page.set_default_navigation_timeout(settings.navigation_timeout * 1000)
        _attach_page_listeners(session.page)
    except BaseException:
        # Includes cancellation from shutdown, which would otherwise leak the driver
        await close_browser(session)
        raise
    session.executable_path = executable
    return session


async def launch_browser(settings: Settings) -> BrowserSession:
    """Launch Chromium with stealth config, retrying with a fixed backoff.

    Raises BrowserLaunchError wrapping the last failure once attempts run out.
    """
    cleanup_old_dumps()
    executable = resolve_executable(settings)
    vp = settings.viewport
    headed_str = "" if settings.headless else ", headed"
    binary = executable or "bundled Chromium"
    log(f"Launching {binary} ({vp['width']}x{vp['height']}{headed_str})...", "◈")

    try:
        session = await retry_with_backoff(
            lambda _attempt: _launch_once(settings, executable),
            attempts=settings.launch_attempts,
            delay=settings.launch_retry_delay,
            label="Browser launch",
        )
    except RetryExhaustedError as e:
        reason = str(e.last_error).split("\n")[0] if e.last_error else "unknown error"
        if "install-deps" in reason:
            reason = "Missing system dependencies. Run: playwright install-deps chromium"
        raise BrowserLaunchError(reason, attempts=e.attempts) from e.last_error

    log("Browser ready", "✓")
    return session


async def close_browser(session: BrowserSession | None):
    """Clean up browser resources. Safe to call on a half-built or closed session."""
    if session is None:
        return

    if session.context:
        try:
            await session.context.close()
        except Exception as e:
            log(f"Warning: Failed to close context: {e}", "⚠")

    if session.browser:
        try:
            await session.browser.close()
        except Exception as e:
            debug_log(f"Browser already closed: {e}")

    if session.playwright:
        try:
            await session.playwright.stop()
        except Exception as e:
            debug_log(f"Playwright already stopped: {e}")

    session.page = None
    session.context = None
    session.browser = None
    session.playwright = None
