"""Debug utilities for Dreamgate - failure dumps, screenshots and debug toggles."""

import json
import os
import shutil
from datetime import date, datetime, timedelta
from io import BytesIO
from pathlib import Path

from PIL import Image

DEBUG_DIR = Path(os.getenv("DREAMGATE_DEBUG_DIR", "debug_dumps"))

# Settings file, relative to the working directory like the cookie file
SETTINGS_PATH = Path(os.getenv("DREAMGATE_SETTINGS", "settings.json"))

_settings: dict | None = None


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


def is_debug_logging_enabled() -> bool:
    """True when DREAMGATE_DEBUG is set."""
    return _env_bool("DREAMGATE_DEBUG")


def load_settings() -> dict:
    """Read settings.json once per process. A missing file means no overrides."""
    global _settings
    if _settings is None:
        _settings = json.loads(SETTINGS_PATH.read_text(encoding="utf-8")) if SETTINGS_PATH.is_file() else {}
    return _settings


def is_debug_dumps_enabled() -> bool:
    """DREAMGATE_DEBUG_DUMPS wins over settings.json ``debug_dumps``; on by default."""
    if os.getenv("DREAMGATE_DEBUG_DUMPS") is not None:
        return _env_bool("DREAMGATE_DEBUG_DUMPS")
    return bool(load_settings().get("debug_dumps", True))


def _dump_path(name: str, suffix: str) -> Path:
    day_dir = DEBUG_DIR / date.today().isoformat()
    day_dir.mkdir(parents=True, exist_ok=True)
    return day_dir / f"{name}_{datetime.now():%H%M%S}{suffix}"


async def capture_screenshot(page, name: str, preview_height: int = 540) -> Path | None:
    """Save a full-size PNG plus a downscaled JPEG preview. Never raises.

    Returns the PNG path, or None when the capture failed.
    """
    from .browser import log

    try:
        path = _dump_path(name, ".png")
        data = await page.screenshot(path=str(path))

        img = Image.open(BytesIO(data))
        width = max(1, round(img.width * preview_height / img.height))
        img.convert("RGB").resize((width, preview_height), Image.Resampling.BILINEAR).save(
            path.with_suffix(".preview.jpg"), "JPEG", quality=70
        )
        log(f"Screenshot saved: {path}", "◆")
        return path
    except Exception as e:
        log(f"Screenshot failed: {e}", "⚠")
        return None


# What the generation flow looks for: prompt fields, clickable controls, rendered images
PAGE_SUMMARY_JS = """() => {
    const text = el => (el.innerText || el.textContent || '').trim().substring(0, 40);
    const fields = Array.from(document.querySelectorAll('textarea, input, [contenteditable="true"]')).map(el => ({
        tag: el.tagName.toLowerCase(),
        placeholder: el.getAttribute('placeholder') || el.getAttribute('data-placeholder'),
        tagged: el.hasAttribute('data-dreamgate'),
    }));
    const buttons = Array.from(document.querySelectorAll('button, [role="button"]'))
        .map(el => ({ text: text(el), disabled: !!el.disabled }))
        .filter(b => b.text);
    const images = Array.from(document.querySelectorAll('img')).map(img => {
        const r = img.getBoundingClientRect();
        return { src: (img.currentSrc || img.src || '').substring(0, 160), w: Math.round(r.width), h: Math.round(r.height) };
    }).filter(i => i.src && !i.src.startsWith('data:'));
    return {
        counts: { fields: fields.length, buttons: buttons.length, images: images.length },
        fields: fields.slice(0, 10),
        buttons: buttons.slice(0, 40),
        images: images.slice(0, 30),
    };
}"""


def detect_issues(info: dict) -> list[str]:
    """Name the usual root causes visible in a dump."""
    text = (info.get("visible_text") or "").lower()
    url = str(info.get("url", ""))
    issues = []
    if any(phrase in text for phrase in ("log in", "sign in", "continue with google")):
        issues.append("Login UI visible - cookies may be stale")
    if "/login" in url or "/passport" in url:
        issues.append("Redirected to login page")
    if "captcha" in text or "verify you are human" in text:
        issues.append("CAPTCHA detected")
    if "insufficient credits" in text or "out of credits" in text:
        issues.append("Account is out of credits")
    if (info.get("summary") or {}).get("counts", {}).get("fields") == 0:
        issues.append("No text fields on page - prompt box did not render")
    if info.get("network_errors"):
        issues.append(f"{len(info['network_errors'])} failed network request(s)")
    return issues


async def dump_debug_info(page, error: Exception, name: str = "dreamina") -> dict | None:
    """Write a screenshot and a JSON page report for a failed operation.

    Args:
        page: Playwright page the operation was driving
        error: The exception that ended the operation
        name: File prefix, normally the service name

    Returns:
        dict with the written paths, or None when dumps are disabled
    """
    from .browser import log

    if page is None or not is_debug_dumps_enabled():
        return None

    json_path = _dump_path(name, ".json")
    screenshot_path = json_path.with_suffix(".png")

    info: dict = {
        "timestamp": datetime.now().isoformat(),
        "operation": name,
        "error_type": type(error).__name__,
        "error": str(error),
        "details": getattr(error, "details", None),
    }

    try:
        await page.screenshot(path=str(screenshot_path), full_page=True)
        info["screenshot"] = screenshot_path.name
    except Exception as e:
        info["screenshot"] = f"(failed: {e})"

    try:
        info["url"] = page.url
        info["title"] = await page.title()
        info["visible_text"] = await page.evaluate(
            "() => document.body ? (document.body.innerText || '').substring(0, 2000) : ''"
        )
        info["summary"] = await page.evaluate(PAGE_SUMMARY_JS)
    except Exception as e:
        info["dump_error"] = str(e)

    info["console_errors"] = list(getattr(page, "_dreamgate_console", []))[-50:]
    info["network_errors"] = list(getattr(page, "_dreamgate_network_errors", []))[-20:]
    info["detected_issues"] = detect_issues(info)

    json_path.write_text(json.dumps(info, indent=2, default=str), encoding="utf-8")

    log(f"Debug dump saved: {json_path}", "◆")
    for issue in info["detected_issues"]:
        log(f"  {issue}", "⚠")

    return {"screenshot": str(screenshot_path), "json": str(json_path)}


def cleanup_old_dumps(max_age_days: int = 7):
    """Delete dump folders whose date name is older than ``max_age_days``."""
    if not DEBUG_DIR.is_dir():
        return

    cutoff = date.today() - timedelta(days=max_age_days)
    for day_dir in DEBUG_DIR.iterdir():
        try:
            day = date.fromisoformat(day_dir.name)
        except ValueError:
            continue
        if day_dir.is_dir() and day < cutoff:
            shutil.rmtree(day_dir, ignore_errors=True)
