#!/usr/bin/env python3
"""Dreamgate CLI - Run the gateway or drive a single generation.

Usage:
    dreamgate serve [options]                  - Run the HTTP server
    dreamgate generate --prompt P [options]    - One-shot generation
    dreamgate cookies <file>                   - Inspect a cookie file
    dreamgate diagnose                         - Browser and login diagnostics
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

from dreamgate.core.browser import log
from dreamgate.core.config import get_models, load_settings_from_env
from dreamgate.core.exceptions import ConfigurationException, DreamgateException


def _settings(args):
    settings = load_settings_from_env()
    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    if getattr(args, "cookies", None):
        overrides["cookie_file"] = args.cookies
    if getattr(args, "headed", False):
        overrides["headless"] = False
    return replace(settings, **overrides)


def cmd_serve(args):
    """Run the HTTP server until interrupted."""
    from aiohttp import web

    from dreamgate.gateway import Gateway
    from dreamgate.routes import create_app

    settings = _settings(args)
    app = create_app(Gateway(settings))

    log(f"Server starting on http://{settings.host}:{settings.port}", "●")
    print("\nAvailable endpoints:")
    for variant in get_models():
        print(f"  GET /generate/{variant}?prompt=YOUR_PROMPT")
    print("  GET /health\n")

    web.run_app(app, host=settings.host, port=settings.port, print=None)


async def cmd_generate(args):
    """Log in, run one generation and optionally download the results."""
    from dreamgate.core.utils import describe_image
    from dreamgate.gateway import Gateway

    settings = _settings(args)
    gateway = Gateway(settings)
    try:
        await gateway.start()
        if not gateway.ready:
            log(gateway.status_message(), "✕")
            sys.exit(1)

        result = await gateway.generate(args.prompt, args.model)
        for img in result.images:
            print(f"{img.index}. {img.url}")

        if args.save:
            out_dir = Path(args.save)
            out_dir.mkdir(parents=True, exist_ok=True)
            for img in result.images:
                # Fetch through the browser context so site cookies apply
                response = await gateway.session.context.request.get(img.url)
                if not response.ok:
                    log(f"Download {img.index} failed: HTTP {response.status}", "⚠")
                    continue
                data = await response.body()
                output = out_dir / f"dreamgate_{img.index}.png"
                output.write_bytes(data)
                log(f"Saved {output} - {describe_image(data)}", "✓")
    except DreamgateException as e:
        log(e.message, "✕")
        sys.exit(1)
    finally:
        await gateway.stop()


def cmd_cookies(args):
    """Parse a cookie file and print a per-domain summary."""
    from dreamgate.core.cookies import load_cookie_file, summarize_cookies

    try:
        cookies = load_cookie_file(args.file)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"{len(cookies)} cookie(s) in {args.file}")
    for domain, count in sorted(summarize_cookies(cookies).items()):
        print(f"  {domain}: {count}")
    if args.verbose:
        for c in cookies:
            flags = [f for f, on in (("httpOnly", c.http_only), ("secure", c.secure)) if on]
            expiry = "session" if c.expires <= 0 else str(c.expires)
            print(f"    {c.domain}{c.path} {c.name} expires={expiry} {' '.join(flags)}".rstrip())


async def cmd_diagnose(args):
    """Probe the browser binary, launch, try the login and take a screenshot."""
    from dreamgate.core.browser import resolve_executable
    from dreamgate.core.debug import capture_screenshot
    from dreamgate.gateway import Gateway

    settings = _settings(args)

    print("\n" + "=" * 60)
    print("DREAMGATE DIAGNOSTICS")
    print(f"  Site: {settings.home_url}")
    print(f"  Browser: {resolve_executable(settings) or 'bundled Chromium'}")
    print(f"  Cookies: {settings.cookie_file}")
    print(f"  Headless: {settings.headless}")
    print("=" * 60)

    gateway = Gateway(settings)
    try:
        result = await gateway.start()
        print(f"[*] Session state: {gateway.session.state.value}")
        print(f"[*] {gateway.status_message()}")
        if result is not None:
            print(f"[*] Final URL: {result.url}")
        if gateway.session.is_open:
            path = await capture_screenshot(gateway.session.page, "diagnose")
            if path:
                print(f"[*] Screenshot saved: {path}")
    finally:
        await gateway.stop()
    print("[*] Done")
    if not gateway.ready:
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(
        description="Dreamgate CLI - HTTP gateway for Dreamina image generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dreamgate serve --port 3000
  dreamgate generate --prompt "a red fox in snow" --model nano-banana --save out/
  dreamgate cookies cookies.txt -v
  dreamgate diagnose --headed
""",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port (default: 3000)")
    serve_parser.add_argument("-c", "--cookies", metavar="FILE", help="Cookie file")
    serve_parser.add_argument("--headed", action="store_true", help="Show the browser window")

    # Generate command
    generate_parser = subparsers.add_parser("generate", help="Run one generation")
    generate_parser.add_argument("-p", "--prompt", required=True, help="Prompt text")
    generate_parser.add_argument("-m", "--model", default="default", help="Model id (default: default)")
    generate_parser.add_argument("-s", "--save", metavar="DIR", help="Download results into DIR")
    generate_parser.add_argument("-c", "--cookies", metavar="FILE", help="Cookie file")
    generate_parser.add_argument("--headed", action="store_true", help="Show the browser window")

    # Cookies command
    cookies_parser = subparsers.add_parser("cookies", help="Inspect a cookie file")
    cookies_parser.add_argument("file", help="Netscape cookies.txt or JSON export")
    cookies_parser.add_argument("-v", "--verbose", action="store_true", help="List every cookie")

    # Diagnose command
    diagnose_parser = subparsers.add_parser("diagnose", help="Browser and login diagnostics")
    diagnose_parser.add_argument("-c", "--cookies", metavar="FILE", help="Cookie file")
    diagnose_parser.add_argument("--headed", action="store_true", help="Show the browser window")

    args = parser.parse_args()

    try:
        if args.command == "serve":
            cmd_serve(args)
        elif args.command == "generate":
            asyncio.run(cmd_generate(args))
        elif args.command == "cookies":
            cmd_cookies(args)
        elif args.command == "diagnose":
            asyncio.run(cmd_diagnose(args))
        else:
            parser.print_help()
            sys.exit(1)
    except ConfigurationException as e:
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
