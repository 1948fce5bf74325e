"""Shared test fixtures for dreamgate.

Playwright is never started: pages, contexts and sessions are mocks.
  settings       Settings with every delay zeroed and a short poll timeout
  fake_page      scriptable page that answers the Dreamina JS snippets
  ready_session  BrowserSession in READY state wrapping fake_page
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dreamgate.core import config as config_module
from dreamgate.core.browser import AuthState, BrowserSession
from dreamgate.core.config import Settings
from dreamgate.providers import dreamina

SUBMIT_SCRIPTS = (
    dreamina._SUBMIT_TEXT_JS,
    dreamina._SUBMIT_ICON_RIGHT_HALF_JS,
    dreamina._SUBMIT_USAGE_COUNTER_JS,
    dreamina._SUBMIT_RIGHTMOST_ICON_JS,
)


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path, monkeypatch):
    """Keep dumps and settings.json out of the working tree."""
    monkeypatch.setenv("DREAMGATE_DEBUG_DUMPS", "0")
    monkeypatch.delenv("DREAMGATE_DEBUG", raising=False)
    monkeypatch.setattr("dreamgate.core.debug.DEBUG_DIR", tmp_path / "dumps")
    monkeypatch.setattr("dreamgate.core.debug.SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr("dreamgate.core.debug._settings", None)
    config_module.reload()
    yield
    config_module.reload()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        cookie_file=str(tmp_path / "cookies.txt"),
        launch_attempts=2,
        launch_retry_delay=0,
        navigation_attempts=2,
        navigation_retry_delay=0,
        verify_attempts=3,
        verify_delay=0,
        input_attempts=2,
        input_retry_delay=0,
        submit_attempts=2,
        submit_retry_delay=0,
        page_settle_delay=0,
        model_select_delay=0,
        poll_interval=0,
        poll_timeout=0.05,
    )


def box(src: str, x: float, y: float, size: float = 256) -> dict:
    """One scanned <img> as SCAN_PAGE_JS reports it."""
    return {"src": src, "x": x, "y": y, "width": size, "height": size}


class FakePage:
    """Answers page.evaluate() by recognising which heuristic script was sent.

    ``scans`` are returned in order for SCAN_PAGE_JS; the last one repeats.
    """

    def __init__(self, scans, input_found=True, submit_clicks=True, picker="opened", option_found=True):
        self.url = "https://dreamina.capcut.com/ai-tool/image/generate"
        self.scans = list(scans)
        self.input_found = input_found
        self.submit_clicks = submit_clicks
        self.picker = picker
        self.option_found = option_found

        self.goto = AsyncMock()
        self.title = AsyncMock(return_value="Dreamina")
        self.screenshot = AsyncMock(return_value=b"")
        self.keyboard = MagicMock(press=AsyncMock())
        self.prompt_input = MagicMock(evaluate=AsyncMock(), focus=AsyncMock(), press=AsyncMock())
        self.locator = MagicMock(return_value=MagicMock(first=self.prompt_input))
        self.evaluate = AsyncMock(side_effect=self._evaluate)
        self._dreamgate_console = []
        self._dreamgate_network_errors = []

    async def _evaluate(self, script, arg=None):
        if script == dreamina.SCAN_PAGE_JS:
            return self.scans.pop(0) if len(self.scans) > 1 else self.scans[0]
        if script == dreamina._TAG_PROMPT_JS:
            return self.input_found
        if script in SUBMIT_SCRIPTS:
            return self.submit_clicks
        if script == dreamina._OPEN_MODEL_PICKER_JS:
            if isinstance(self.picker, Exception):
                raise self.picker
            return self.picker
        if script == dreamina._CHOOSE_MODEL_OPTION_JS:
            return self.option_found
        return None

    def scripts_sent(self) -> list[str]:
        return [c.args[0] for c in self.evaluate.call_args_list]


@pytest.fixture
def fake_page():
    return FakePage(scans=[{"images": [], "generating": False}])


def make_ready_session(page) -> BrowserSession:
    session = BrowserSession(playwright=MagicMock(), browser=MagicMock(), context=MagicMock(), page=page)
    session.set_state(AuthState.READY)
    return session


@pytest.fixture
def ready_session(fake_page):
    return make_ready_session(fake_page)
