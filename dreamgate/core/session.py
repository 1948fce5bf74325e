"""Cookie-based authentication and login verification."""

from dataclasses import dataclass
from urllib.parse import urlparse

from .browser import AuthState, BrowserSession, debug_log, log, log_context
from .config import Settings
from .cookies import Cookie
from .debug import capture_screenshot
from .exceptions import (
    AuthenticationError,
    NavigationError,
    RetryExhaustedError,
    SessionExpiredError,
    VerificationTimeoutError,
)
from .utils import retry_with_backoff

# URL path segments that mean the site bounced us to its login flow
LOGIN_PATH_SEGMENTS = ("login", "signin", "sign-in", "sign_in", "passport")

# Minimum rendered body text (chars) for the "app shell rendered" signal
MIN_BODY_TEXT = 200

# Gathers every login signal in a single round trip
LOGIN_SIGNALS_JS = """() => {
    const visible = el => {
        const r = el.getBoundingClientRect();
        const s = window.getComputedStyle(el);
        return r.width > 0 && r.height > 0 && s.visibility !== 'hidden' && s.display !== 'none';
    };
    const controls = Array.from(document.querySelectorAll('button, a, [role="button"]')).filter(visible);
    const textOf = el => (el.innerText || el.textContent || '').trim().toLowerCase();

    const loginControl = controls.find(el => {
        const t = textOf(el);
        return t === 'log in' || t === 'login' || t === 'sign in' || t === 'sign up' ||
               t.startsWith('log in ') || t.startsWith('sign in ');
    });
    const generateControl = controls.find(el => {
        const t = textOf(el);
        return t.includes('generate') || t === 'create' || t.startsWith('create ');
    });
    const promptInput = Array.from(document.querySelectorAll('textarea, input, [contenteditable="true"]'))
        .find(el => /describe|imagine|prompt/i.test(el.getAttribute('placeholder') || el.getAttribute('data-placeholder') || ''));

    const bodyText = document.body ? (document.body.innerText || '') : '';
    const navText = /\\b(home|explore|assets|canvas|image|video|create)\\b/i.test(bodyText);

    return {
        loginControl: loginControl ? textOf(loginControl).substring(0, 40) : null,
        generateControl: generateControl ? textOf(generateControl).substring(0, 40) : null,
        promptInput: !!promptInput,
        bodyTextLength: bodyText.length,
        navText: navText,
    };
}"""


@dataclass
class AuthResult:
    ok: bool
    url: str | None = None
    error: AuthenticationError | NavigationError | None = None
    attempts: int = 0


def url_has_login_segment(url: str) -> bool:
    path = urlparse(url).path.lower()
    return any(seg in LOGIN_PATH_SEGMENTS for seg in path.strip("/").split("/") if seg)


def classify_login_signals(signals: dict, url: str) -> bool | None:
    """Decide login state from one page inspection.

    Returns True (logged in), None (inconclusive). Raises SessionExpiredError
    when the page shows a login control or sits on a login route.
    """
    if url_has_login_segment(url):
        raise SessionExpiredError(evidence=f"redirected to {urlparse(url).path}")
    if signals.get("loginControl"):
        raise SessionExpiredError(evidence=f"'{signals['loginControl']}' control present")

    if signals.get("generateControl") or signals.get("promptInput"):
        return True
    if signals.get("bodyTextLength", 0) >= MIN_BODY_TEXT and signals.get("navText"):
        return True
    return None


class Authenticator:
    """Injects cookies, opens the app, and verifies the logged-in state.

    Drives ``session.state``: AUTHENTICATING while running, then READY or
    FAILED. A failed session stays failed until the process restarts.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def authenticate(self, session: BrowserSession, cookies: list[Cookie]) -> AuthResult:
        with log_context("auth"):
            session.set_state(AuthState.AUTHENTICATING)
            try:
                await self._probe_connectivity(session)
                await self._inject_cookies(session, cookies)
                await self._navigate_home(session)
                attempts = await self._verify(session)
            except (AuthenticationError, NavigationError) as e:
                return self._fail(session, e)
            except Exception as e:
                wrapped = AuthenticationError(f"Unexpected error during login: {str(e).split(chr(10))[0]}")
                wrapped.__cause__ = e
                return self._fail(session, wrapped)

            session.set_state(AuthState.READY)
            log("Login verified - session ready", "★")
            return AuthResult(ok=True, url=session.page.url, attempts=attempts)

    def _fail(self, session: BrowserSession, error: AuthenticationError | NavigationError) -> AuthResult:
        log(f"Login failed: {error.message}", "✕")
        session.set_state(AuthState.FAILED, error)
        return AuthResult(ok=False, url=session.page.url if session.page else None, error=error)

    async def _probe_connectivity(self, session: BrowserSession):
        """Unauthenticated request to the bare origin. Diagnostic only."""
        try:
            response = await session.context.request.get(self.settings.base_url, timeout=15000)
            log(f"Connectivity check: HTTP {response.status}", "○")
        except Exception as e:
            log(f"Connectivity check failed (continuing): {str(e).split(chr(10))[0]}", "⚠")

    async def _inject_cookies(self, session: BrowserSession, cookies: list[Cookie]):
        await session.context.add_cookies([c.to_playwright() for c in cookies])
        log(f"Injected {len(cookies)} cookies", "○")

    async def _navigate_home(self, session: BrowserSession):
        url = self.settings.home_url

        async def goto(_attempt: int):
            log(f"Opening {url}...", "→")
            await session.page.goto(
                url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout * 1000
            )

        try:
            await retry_with_backoff(
                goto,
                attempts=self.settings.navigation_attempts,
                delay=self.settings.navigation_retry_delay,
                label="Navigation",
            )
        except RetryExhaustedError as e:
            raise NavigationError(url, str(e.last_error).split("\n")[0]) from e.last_error

    async def _verify(self, session: BrowserSession) -> int:
        """Poll the page for login signals. Returns the attempt that succeeded."""
        page = session.page

        async def inspect(attempt: int):
            if attempt == 1:
                await capture_screenshot(page, "auth_check")
            signals = await page.evaluate(LOGIN_SIGNALS_JS)
            debug_log(f"Login signals (attempt {attempt}): {signals}")
            if classify_login_signals(signals, page.url):
                return attempt
            log(f"Login state inconclusive (attempt {attempt}/{self.settings.verify_attempts})", "◌")
            return None

        try:
            return await retry_with_backoff(
                inspect,
                attempts=self.settings.verify_attempts,
                delay=self.settings.verify_delay,
                delay_first=True,
                succeeded=lambda result: result is not None,
                give_up_on=(SessionExpiredError,),
                label="Login verification",
            )
        except RetryExhaustedError as e:
            raise VerificationTimeoutError(e.attempts) from e.last_error
