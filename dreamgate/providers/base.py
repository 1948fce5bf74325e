import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..core.browser import BrowserSession, debug_log, log, log_context
from ..core.config import Settings, get_model, get_model_names, is_default_model
from ..core.debug import dump_debug_info
from ..core.exceptions import (
    InputNotFoundError,
    InvalidRequestError,
    NavigationError,
    NoResultsError,
    NotAuthenticatedError,
    RetryExhaustedError,
    SubmitNotFoundError,
)
from ..core.utils import retry_with_backoff
from .results import (
    ExtractionConfig,
    GenerationResult,
    ImageBox,
    build_results,
    qualifying_images,
    select_batch,
)


@dataclass
class PageScan:
    """Snapshot of rendered images plus whether a progress indicator is showing."""

    images: list[ImageBox] = field(default_factory=list)
    generating: bool = False


class InputLocator(ABC):
    """Heuristic that finds the prompt field. Returns a Locator or None."""

    name = "input"

    @abstractmethod
    async def locate(self, page) -> Any | None: ...


class SubmitStrategy(ABC):
    """Heuristic that triggers generation. Returns True if it fired."""

    name = "submit"

    @abstractmethod
    async def submit(self, page, prompt_input) -> bool: ...


class ModelSelector(ABC):
    """Switches the site's active model. Returns True when the target is active."""

    @abstractmethod
    async def select(self, page, target: str, known_models: list[str]) -> bool: ...


class GenerationService(ABC):
    """Abstract base class for prompt-to-images services.

    Implements the template method for one generation on the shared page:
    navigate, snapshot baseline, fill prompt, pick model, submit, poll,
    extract. Subclasses supply the page heuristics as strategy lists.
    """

    service_name = "service"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.extraction = ExtractionConfig(
            min_size=settings.min_image_size,
            row_tolerance=settings.row_tolerance,
            top_region=settings.top_region,
            batch_size=settings.batch_size,
        )

    # =========================================================================
    # HOOKS
    # =========================================================================

    @abstractmethod
    def input_locators(self) -> list[InputLocator]: ...

    @abstractmethod
    def submit_strategies(self) -> list[SubmitStrategy]: ...

    def model_selector(self) -> ModelSelector | None:
        return None

    @abstractmethod
    async def scan_page(self, page) -> PageScan: ...

    @abstractmethod
    async def fill_prompt(self, page, prompt_input, prompt: str): ...

    @property
    @abstractmethod
    def generate_url(self) -> str: ...

    # =========================================================================
    # TEMPLATE
    # =========================================================================

    async def generate(self, session: BrowserSession, prompt: str, model: str = "default") -> GenerationResult:
        """Run one generation and return the new images in reading order."""
        if not session.logged_in:
            raise NotAuthenticatedError(session.state.value)
        prompt = (prompt or "").strip()
        if not prompt:
            raise InvalidRequestError("prompt must not be empty")
        model_cfg = get_model(model)
        if model_cfg is None:
            raise InvalidRequestError(f"unknown model '{model}'")

        async with session.lock:
            with log_context(self.service_name):
                log(f"Generating with {model_cfg['name']}", "●")
                log(f"Prompt: {prompt[:60]}..." if len(prompt) > 60 else f"Prompt: {prompt}", "✎")
                try:
                    return await self._generate_impl(session.page, prompt, model)
                except asyncio.CancelledError:
                    log("Interrupted", "✕")
                    raise
                except Exception as e:
                    log(f"Error: {str(e).split(chr(10))[0]}", "✕")
                    await dump_debug_info(session.page, e, self.service_name)
                    raise

    async def _generate_impl(self, page, prompt: str, model: str) -> GenerationResult:
        await self._navigate(page)

        baseline = {box.src for box in (await self.scan_page(page)).images if box.src}
        debug_log(f"Baseline: {len(baseline)} images")

        prompt_input = await self._locate_input(page)
        await self.fill_prompt(page, prompt_input, prompt)
        log("Entered prompt", "✓")

        model_name = get_model(model)["name"]  # type: ignore[index]
        if not is_default_model(model):
            await self._select_model(page, model_name)

        await self._submit(page, prompt_input)
        log("Generating...", "◐")

        candidates = await self._wait_for_results(page, baseline)
        batch = select_batch(candidates, self.extraction.row_tolerance, self.extraction.batch_size)
        if not batch:
            raise NoResultsError(f"no new images after {self.settings.poll_timeout:.0f}s")

        result = GenerationResult(images=build_results(batch), model=model_name, prompt=prompt)
        log(f"Complete: {result.count} image(s)", "★")
        return result

    async def _navigate(self, page):
        url = self.generate_url
        log(f"Opening {url}...", "→")
        try:
            await page.goto(
                url, wait_until="domcontentloaded", timeout=self.settings.generate_navigation_timeout * 1000
            )
        except Exception as e:
            raise NavigationError(url, str(e).split("\n")[0]) from e
        if self.settings.page_settle_delay:
            await asyncio.sleep(self.settings.page_settle_delay)

    async def _locate_input(self, page):
        async def locate(_attempt: int):
            for locator in self.input_locators():
                found = await locator.locate(page)
                if found is not None:
                    debug_log(f"Prompt input found via {locator.name}")
                    return found
            return None

        try:
            return await retry_with_backoff(
                locate,
                attempts=self.settings.input_attempts,
                delay=self.settings.input_retry_delay,
                succeeded=lambda found: found is not None,
                label="Prompt input lookup",
            )
        except RetryExhaustedError as e:
            raise InputNotFoundError(e.attempts) from e.last_error

    async def _select_model(self, page, model_name: str):
        """Best effort: a failed switch leaves the site's current model active."""
        selector = self.model_selector()
        if selector is None:
            return
        try:
            if await selector.select(page, model_name, get_model_names()):
                log(f"Selected model {model_name}", "✓")
                return
            log(f"Model selector for {model_name} not found, using current model", "⚠")
        except Exception as e:
            log(f"Model selection failed ({str(e).split(chr(10))[0]}), using current model", "⚠")

    async def _submit(self, page, prompt_input):
        async def submit(_attempt: int):
            for strategy in self.submit_strategies():
                if await strategy.submit(page, prompt_input):
                    log(f"Submitted via {strategy.name}", "→")
                    return strategy.name
            return None

        try:
            await retry_with_backoff(
                submit,
                attempts=self.settings.submit_attempts,
                delay=self.settings.submit_retry_delay,
                succeeded=lambda name: name is not None,
                label="Submit",
            )
        except RetryExhaustedError as e:
            raise SubmitNotFoundError(e.attempts) from e.last_error

    async def _wait_for_results(self, page, baseline: set[str]) -> list[ImageBox]:
        """Poll until a full batch is rendered and no progress indicator shows.

        Never waits past poll_timeout; returns whatever qualified by then.
        """
        batch_size = self.extraction.batch_size
        start = time.monotonic()
        deadline = start + self.settings.poll_timeout
        last_log = start
        candidates: list[ImageBox] = []

        while True:
            scan = await self.scan_page(page)
            candidates = qualifying_images(scan.images, baseline, self.extraction)
            if len(candidates) >= batch_size and not scan.generating:
                log(f"{len(candidates)} new image(s) rendered", "✓")
                return candidates

            now = time.monotonic()
            if now - last_log >= 10:
                status = "generating" if scan.generating else "waiting"
                log(f"{int(now - start)}s | {status}, {len(candidates)}/{batch_size} new images", "◌")
                last_log = now

            remaining = deadline - now
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.settings.poll_interval, remaining))

        log(f"Timed out after {self.settings.poll_timeout:.0f}s with {len(candidates)} image(s), extracting anyway", "⚠")
        return candidates
