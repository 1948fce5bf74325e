"""Dreamina image generation - DOM heuristics for the prompt surface."""

import asyncio

from ..core.browser import debug_log
from ..core.config import Settings
from .base import GenerationService, InputLocator, ModelSelector, PageScan, SubmitStrategy
from .results import ImageBox

# Attribute used to hand an element found in JS back to Playwright
TAG_ATTR = "data-dreamgate"
PROMPT_SELECTOR = f'[{TAG_ATTR}="prompt"]'

# Shared JS helpers, prepended to each heuristic
_VISIBLE_JS = """
    const visible = el => {
        if (!el) return false;
        const r = el.getBoundingClientRect();
        const s = window.getComputedStyle(el);
        return r.width > 0 && r.height > 0 && s.visibility !== 'hidden' && s.display !== 'none';
    };
    const enabled = el => !el.disabled && el.getAttribute('aria-disabled') !== 'true';
    const textOf = el => (el.innerText || el.textContent || '').trim();
    const hasIcon = el => !!el.querySelector('svg, img, i, [class*="icon" i]');
    const fire = el => {
        el.scrollIntoView({ block: 'center' });
        ['pointerdown', 'mousedown', 'pointerup', 'mouseup'].forEach(type =>
            el.dispatchEvent(new MouseEvent(type, { bubbles: true, cancelable: true, view: window })));
        el.click();
    };
"""

_TAG_PROMPT_JS = (
    """([pattern, anyField]) => {"""
    + _VISIBLE_JS
    + """
    document.querySelectorAll('[%(attr)s="prompt"]').forEach(el => el.removeAttribute('%(attr)s'));
    const re = new RegExp(pattern, 'i');
    const fields = Array.from(document.querySelectorAll(
        'textarea, input[type="text"], input:not([type]), [contenteditable="true"], [role="textbox"]'
    )).filter(el => visible(el) && enabled(el));
    const hint = el => el.getAttribute('placeholder') || el.getAttribute('data-placeholder') ||
        el.getAttribute('aria-label') || '';
    const match = anyField ? fields[0] : fields.find(el => re.test(hint(el)));
    if (!match) return false;
    match.setAttribute('%(attr)s', 'prompt');
    return true;
}"""
    % {"attr": TAG_ATTR}
)

# Sets the value through the native setter so React/Vue observe the change
FILL_PROMPT_JS = """(el, value) => {
    el.focus();
    if (el.isContentEditable) {
        el.textContent = value;
        el.dispatchEvent(new InputEvent('input', { bubbles: true, inputType: 'insertText', data: value }));
    } else {
        const proto = el.tagName === 'TEXTAREA' ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
        const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
        setter.call(el, value);
        el.dispatchEvent(new Event('input', { bubbles: true }));
    }
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return el.isContentEditable ? el.textContent : el.value;
}"""

# Walks up from the prompt field to the box that also holds its toolbar
_INPUT_AREA_JS = """
    const prompt = document.querySelector('[%(attr)s="prompt"]');
    let area = prompt;
    for (let i = 0; area && i < 5; i++) {
        if (area.parentElement && area.parentElement.querySelectorAll('button, [role="button"]').length) {
            area = area.parentElement;
            break;
        }
        area = area.parentElement;
    }
""" % {"attr": TAG_ATTR}

_SUBMIT_TEXT_JS = (
    "() => {"
    + _VISIBLE_JS
    + """
    const button = Array.from(document.querySelectorAll('button'))
        .filter(el => visible(el) && enabled(el))
        .find(el => /^generate\\b/i.test(textOf(el)));
    if (!button) return false;
    fire(button);
    return true;
}"""
)

_SUBMIT_ICON_RIGHT_HALF_JS = (
    "() => {"
    + _VISIBLE_JS
    + _INPUT_AREA_JS
    + """
    if (!area) return false;
    const box = area.getBoundingClientRect();
    const midX = box.left + box.width / 2;
    const buttons = Array.from(area.querySelectorAll('button, [role="button"]'))
        .filter(el => visible(el) && enabled(el) && hasIcon(el))
        .filter(el => {
            const r = el.getBoundingClientRect();
            return r.left + r.width / 2 > midX && r.width < 120;
        })
        .sort((a, b) => b.getBoundingClientRect().right - a.getBoundingClientRect().right);
    if (!buttons.length) return false;
    fire(buttons[0]);
    return true;
}"""
)

# Dreamina shows the credit cost ("4", "x 4", "12 credits") right beside the send button
_SUBMIT_USAGE_COUNTER_JS = (
    "() => {"
    + _VISIBLE_JS
    + """
    const counter = Array.from(document.querySelectorAll('span, div'))
        .filter(el => el.children.length === 0 && visible(el))
        .find(el => /^(x\\s*)?\\d{1,4}(\\s*credits?)?$/i.test(textOf(el)));
    if (!counter) return false;
    let scope = counter.parentElement;
    for (let i = 0; scope && i < 3; i++) {
        const button = Array.from(scope.querySelectorAll('button, [role="button"]'))
            .find(el => visible(el) && enabled(el));
        if (button) { fire(button); return true; }
        scope = scope.parentElement;
    }
    return false;
}"""
)

_SUBMIT_RIGHTMOST_ICON_JS = (
    "() => {"
    + _VISIBLE_JS
    + """
    const buttons = Array.from(document.querySelectorAll('button, [role="button"]'))
        .filter(el => visible(el) && enabled(el) && hasIcon(el) && textOf(el).length < 3)
        .sort((a, b) => b.getBoundingClientRect().right - a.getBoundingClientRect().right);
    if (!buttons.length) return false;
    fire(buttons[0]);
    return true;
}"""
)

_OPEN_MODEL_PICKER_JS = (
    """([target, known]) => {"""
    + _VISIBLE_JS
    + """
    const names = known.map(n => n.toLowerCase());
    const candidates = Array.from(document.querySelectorAll('button, [role="combobox"], [role="button"], div, span'))
        .filter(el => visible(el))
        .filter(el => {
            const t = textOf(el).toLowerCase();
            return t.length > 0 && t.length < 40 && names.some(n => t.includes(n));
        })
        // Innermost match is the label itself, not a wrapping panel
        .filter((el, _, all) => !all.some(other => other !== el && el.contains(other)));
    if (!candidates.length) return 'missing';
    const trigger = candidates[0];
    if (textOf(trigger).toLowerCase().includes(target.toLowerCase())) return 'active';
    fire(trigger.closest('button, [role="combobox"], [role="button"]') || trigger);
    return 'opened';
}"""
)

_CHOOSE_MODEL_OPTION_JS = (
    """(target) => {"""
    + _VISIBLE_JS
    + """
    const wanted = target.toLowerCase();
    const options = Array.from(document.querySelectorAll('[role="option"], [role="menuitem"], li, div, span'))
        .filter(el => visible(el))
        .filter(el => {
            const t = textOf(el).toLowerCase();
            return t.startsWith(wanted) && t.length < 80;
        })
        .sort((a, b) => (b.getAttribute('role') ? 1 : 0) - (a.getAttribute('role') ? 1 : 0));
    if (!options.length) return false;
    fire(options[0]);
    return true;
}"""
)

# Returns every rendered image (document coordinates) and whether a progress indicator is visible
SCAN_PAGE_JS = (
    "() => {"
    + _VISIBLE_JS
    + """
    const images = Array.from(document.querySelectorAll('img')).map(img => {
        const r = img.getBoundingClientRect();
        return {
            src: img.currentSrc || img.src || '',
            x: Math.round(r.left + window.scrollX),
            y: Math.round(r.top + window.scrollY),
            width: Math.round(r.width),
            height: Math.round(r.height),
        };
    });
    const generating = Array.from(document.querySelectorAll('div, span, p'))
        .filter(el => el.children.length === 0)
        .some(el => {
            const t = textOf(el);
            return t.length > 0 && t.length < 40 &&
                /^(generating|loading|dreaming|queuing|in queue)|^\\d{1,3}\\s?%$/i.test(t) && visible(el);
        });
    return { images, generating };
}"""
)


class TaggedInputLocator(InputLocator):
    """Marks the matching field in JS and returns a Playwright locator for it."""

    def __init__(self, name: str, pattern: str = "describe|imagine|prompt", any_field: bool = False):
        self.name = name
        self.pattern = pattern
        self.any_field = any_field

    async def locate(self, page):
        if await page.evaluate(_TAG_PROMPT_JS, [self.pattern, self.any_field]):
            return page.locator(PROMPT_SELECTOR).first
        return None


class ScriptSubmitStrategy(SubmitStrategy):
    """Runs a click heuristic in the page; the script reports whether it clicked."""

    def __init__(self, name: str, script: str):
        self.name = name
        self.script = script

    async def submit(self, page, prompt_input) -> bool:
        return bool(await page.evaluate(self.script))


class EnterKeySubmit(SubmitStrategy):
    name = "enter key"

    async def submit(self, page, prompt_input) -> bool:
        await prompt_input.press("Enter")
        return True


class DropdownModelSelector(ModelSelector):
    """Opens the picker labelled with a known model name, then clicks the target option."""

    def __init__(self, open_delay: float = 1.5):
        self.open_delay = open_delay

    async def select(self, page, target: str, known_models: list[str]) -> bool:
        status = await page.evaluate(_OPEN_MODEL_PICKER_JS, [target, known_models])
        debug_log(f"Model picker: {status}")
        if status == "active":
            return True
        if status != "opened":
            return False
        await asyncio.sleep(self.open_delay)
        return bool(await page.evaluate(_CHOOSE_MODEL_OPTION_JS, target))


class DreaminaService(GenerationService):
    """Dreamina (CapCut) text-to-image via its web prompt box."""

    service_name = "dreamina"

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self._input_locators = [
            TaggedInputLocator("placeholder match"),
            TaggedInputLocator("first text field", any_field=True),
        ]
        if settings.submit_mode == "enter":
            self._submit_strategies: list[SubmitStrategy] = [EnterKeySubmit()]
        else:
            self._submit_strategies = [
                ScriptSubmitStrategy("generate button", _SUBMIT_TEXT_JS),
                ScriptSubmitStrategy("icon button in input area", _SUBMIT_ICON_RIGHT_HALF_JS),
                ScriptSubmitStrategy("button beside usage counter", _SUBMIT_USAGE_COUNTER_JS),
                ScriptSubmitStrategy("rightmost icon button", _SUBMIT_RIGHTMOST_ICON_JS),
            ]
        self._model_selector = DropdownModelSelector(settings.model_select_delay)

    @property
    def generate_url(self) -> str:
        return self.settings.generate_url

    def input_locators(self) -> list[InputLocator]:
        return self._input_locators

    def submit_strategies(self) -> list[SubmitStrategy]:
        return self._submit_strategies

    def model_selector(self) -> ModelSelector | None:
        return self._model_selector

    async def scan_page(self, page) -> PageScan:
        data = await page.evaluate(SCAN_PAGE_JS)
        return PageScan(
            images=[ImageBox.from_dict(img) for img in data.get("images", [])],
            generating=bool(data.get("generating")),
        )

    async def fill_prompt(self, page, prompt_input, prompt: str):
        await prompt_input.evaluate(FILL_PROMPT_JS, prompt)
        # A real keystroke for frameworks that only listen to keyboard events
        await prompt_input.focus()
        await page.keyboard.press("End")
