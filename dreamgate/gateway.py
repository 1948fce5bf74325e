"""Process-wide runtime: one browser session, its authenticator and the generation service."""

import asyncio

from .core.browser import AuthState, BrowserSession, close_browser, launch_browser, log, log_context
from .core.config import Settings
from .core.cookies import Cookie, load_cookie_file, summarize_cookies
from .core.exceptions import BrowserLaunchError, ConfigurationException
from .core.session import Authenticator, AuthResult
from .providers.base import GenerationService
from .providers.dreamina import DreaminaService
from .providers.results import GenerationResult


class Gateway:
    def __init__(
        self,
        settings: Settings,
        service: GenerationService | None = None,
        authenticator: Authenticator | None = None,
    ):
        self.settings = settings
        self.service = service or DreaminaService(settings)
        self.authenticator = authenticator or Authenticator(settings)
        # Placeholder until start() launches; reports UNAUTHENTICATED meanwhile
        self.session = BrowserSession()
        self.cookies_missing = False
        self.startup_task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return self.session.logged_in

    def load_cookies(self) -> list[Cookie] | None:
        try:
            cookies = load_cookie_file(self.settings.cookie_file)
        except FileNotFoundError:
            self.cookies_missing = True
            log(f"No cookie file at {self.settings.cookie_file} - generation disabled until restart", "⚠")
            return None
        except ConfigurationException as e:
            log(e.message, "✕")
            self.session.set_state(AuthState.FAILED, e)
            return None
        domains = ", ".join(f"{d} ({n})" for d, n in summarize_cookies(cookies).items())
        log(f"Loaded {len(cookies)} cookies from {self.settings.cookie_file}: {domains or 'none'}", "○")
        return cookies

    async def start(self) -> AuthResult | None:
        """Load cookies, launch the browser and log in.

        Never raises for startup failures; they land in ``session.state``.
        Returns the auth result, or None when authentication never ran.
        """
        with log_context("startup"):
            cookies = self.load_cookies()
            if cookies is None:
                return None

            try:
                self.session = await launch_browser(self.settings)
            except BrowserLaunchError as e:
                log(e.message, "✕")
                self.session.set_state(AuthState.FAILED, e)
                return None

        return await self.authenticator.authenticate(self.session, cookies)

    def start_background(self) -> asyncio.Task:
        self.startup_task = asyncio.create_task(self.start())
        return self.startup_task

    async def generate(self, prompt: str, variant: str = "default") -> GenerationResult:
        return await self.service.generate(self.session, prompt, variant)

    def health(self) -> dict:
        return {"status": "running", "loggedIn": self.ready, "message": self.status_message()}

    def status_message(self) -> str:
        state = self.session.state
        if state is AuthState.READY:
            return "Ready to generate images"
        if self.cookies_missing:
            return f"No cookie file found at {self.settings.cookie_file}. Add one and restart."
        if state is AuthState.FAILED:
            error = self.session.last_error
            reason = getattr(error, "message", None) or str(error or "unknown error")
            return f"Login failed: {reason}"
        return "Login in progress"

    async def stop(self):
        if self.startup_task and not self.startup_task.done():
            self.startup_task.cancel()
            try:
                await self.startup_task
            except asyncio.CancelledError:
                pass
        log("Closing browser...", "○")
        await close_browser(self.session)
