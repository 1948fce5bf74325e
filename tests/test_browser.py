"""Unit tests for browser launch, teardown and executable discovery."""

import asyncio
import os
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dreamgate.core.browser import (
    CHROMIUM_ARGS,
    AuthState,
    BrowserSession,
    close_browser,
    launch_browser,
    resolve_executable,
)
from dreamgate.core.exceptions import BrowserLaunchError


def make_executable(path):
    path.write_text("#!/bin/sh\n")
    os.chmod(path, 0o755)
    return str(path)


class TestResolveExecutable:
    def test_probe_paths_win_over_configured(self, tmp_path, settings):
        probed = make_executable(tmp_path / "chromium")
        configured = make_executable(tmp_path / "custom-chrome")
        settings = replace(settings, executable_path=configured)
        assert resolve_executable(settings, probe_paths=(str(tmp_path / "absent"), probed)) == probed

    def test_configured_path_when_nothing_probed(self, tmp_path, settings):
        configured = make_executable(tmp_path / "custom-chrome")
        settings = replace(settings, executable_path=configured)
        assert resolve_executable(settings, probe_paths=(str(tmp_path / "absent"),)) == configured

    def test_missing_configured_path_falls_back_to_bundled(self, tmp_path, settings):
        settings = replace(settings, executable_path=str(tmp_path / "gone"))
        assert resolve_executable(settings, probe_paths=()) is None

    def test_bundled_by_default(self, settings):
        assert resolve_executable(settings, probe_paths=()) is None


def make_playwright(launch_side_effect):
    """Mock of async_playwright().start() whose chromium.launch follows ``launch_side_effect``."""
    page = MagicMock()
    context = MagicMock(add_init_script=AsyncMock(), new_page=AsyncMock(return_value=page), close=AsyncMock())
    browser = MagicMock(new_context=AsyncMock(return_value=context), close=AsyncMock())
    if not isinstance(launch_side_effect, Exception):
        launch_side_effect = [browser if item == "browser" else item for item in launch_side_effect]
    pw = MagicMock(stop=AsyncMock())
    pw.chromium.launch = AsyncMock(side_effect=launch_side_effect)
    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=pw)
    return factory, pw, browser, context, page


class TestLaunchBrowser:
    @pytest.mark.asyncio
    async def test_launch_configures_context_and_page(self, settings):
        factory, pw, browser, context, page = make_playwright(["browser"])
        with patch("dreamgate.core.browser.async_playwright", factory), \
             patch("dreamgate.core.browser.resolve_executable", return_value=None):
            session = await launch_browser(settings)

        assert session.page is page
        assert session.state is AuthState.UNAUTHENTICATED
        launch_kwargs = pw.chromium.launch.await_args.kwargs
        assert launch_kwargs["args"] == CHROMIUM_ARGS
        assert launch_kwargs["headless"] is True
        context_kwargs = browser.new_context.await_args.kwargs
        assert context_kwargs["viewport"] == {"width": 1920, "height": 1080}
        assert context_kwargs["user_agent"] == settings.user_agent
        context.add_init_script.assert_awaited_once()
        assert [c.args[0] for c in page.on.call_args_list] == ["console", "response"]

    @pytest.mark.asyncio
    async def test_failed_attempt_is_torn_down_before_retry(self, settings):
        factory, pw, _browser, _context, page = make_playwright([RuntimeError("crashed"), "browser"])
        with patch("dreamgate.core.browser.async_playwright", factory), \
             patch("dreamgate.core.browser.resolve_executable", return_value=None):
            session = await launch_browser(settings)

        assert session.page is page
        assert pw.chromium.launch.await_count == 2
        # Only the failed attempt's playwright driver was stopped
        assert pw.stop.await_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_configured_attempts(self, settings):
        factory, pw, _browser, _context, _page = make_playwright(RuntimeError("Host system is missing dependencies"))
        with patch("dreamgate.core.browser.async_playwright", factory), \
             patch("dreamgate.core.browser.resolve_executable", return_value=None):
            with pytest.raises(BrowserLaunchError) as exc_info:
                await launch_browser(settings)

        assert pw.chromium.launch.await_count == settings.launch_attempts
        assert exc_info.value.details["attempts"] == settings.launch_attempts
        assert "missing dependencies" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_cancel_mid_launch_closes_partial_browser(self, settings):
        factory, pw, browser, _context, _page = make_playwright(["browser"])
        entered = asyncio.Event()

        async def hang(**kwargs):
            entered.set()
            await asyncio.sleep(3600)

        browser.new_context = AsyncMock(side_effect=hang)
        with patch("dreamgate.core.browser.async_playwright", factory), \
             patch("dreamgate.core.browser.resolve_executable", return_value=None):
            task = asyncio.create_task(launch_browser(settings))
            await entered.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        assert pw.chromium.launch.await_count == 1


class TestCloseBrowser:
    @pytest.mark.asyncio
    async def test_none_is_a_no_op(self):
        await close_browser(None)

    @pytest.mark.asyncio
    async def test_half_built_session(self):
        pw = MagicMock(stop=AsyncMock())
        session = BrowserSession(playwright=pw)
        await close_browser(session)
        pw.stop.assert_awaited_once()
        assert session.playwright is None
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_errors_while_closing_are_tolerated(self):
        context = MagicMock(close=AsyncMock(side_effect=RuntimeError("already closed")))
        browser = MagicMock(close=AsyncMock(side_effect=RuntimeError("already closed")))
        pw = MagicMock(stop=AsyncMock())
        session = BrowserSession(playwright=pw, browser=browser, context=context, page=MagicMock())
        await close_browser(session)
        pw.stop.assert_awaited_once()
        assert session.page is None
        assert session.browser is None


class TestBrowserSession:
    def test_state_transitions(self):
        session = BrowserSession()
        assert not session.logged_in
        session.set_state(AuthState.READY)
        assert session.logged_in
        error = RuntimeError("x")
        session.set_state(AuthState.FAILED, error)
        assert not session.logged_in
        assert session.last_error is error
