import asyncio

from aiohttp import web

from .core.browser import debug_log, log
from .core.config import get_model, get_models
from .core.exceptions import InvalidRequestError, NotAuthenticatedError
from .gateway import Gateway

GATEWAY_KEY = web.AppKey("gateway", Gateway)

NOT_READY_MESSAGE = "Server not ready. Dreamina login in progress or failed."


def _error_message(error: Exception) -> str:
    error_str = str(getattr(error, "message", "") or error)
    if error_str:
        return error_str.split("\n")[0].strip()
    return f"{type(error).__name__}: {error!r}"


def _log_detached_outcome(task: asyncio.Task):
    """Retrieve the generation's outcome so a disconnected client leaves no unretrieved exception."""
    if task.cancelled():
        log("Generation cancelled", "⚠")
        return
    error = task.exception()
    if error is not None:
        log(f"Generation ended with {type(error).__name__}: {_error_message(error)}", "⚠")
    else:
        debug_log(f"Generation finished with {task.result().count} image(s)")


@web.middleware
async def error_middleware(request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except asyncio.CancelledError:
        raise
    except Exception as e:
        msg = _error_message(e)
        log(f"ERROR {request.method} {request.path}: {msg}", "✕")
        return web.json_response({"error": "Internal server error", "details": msg}, status=500)


async def generate(request):
    gateway = request.app[GATEWAY_KEY]
    variant = request.match_info["variant"]
    if get_model(variant) is None:
        return web.json_response(
            {"error": f"Unknown model '{variant}'", "available": get_models()},
            status=404,
        )

    prompt = request.query.get("prompt", "").strip()
    if not prompt:
        return web.json_response({"error": "Please provide a prompt query parameter"}, status=400)

    if not gateway.ready:
        return web.json_response({"error": NOT_READY_MESSAGE, "details": gateway.status_message()}, status=503)

    # A dropped client must not abort a generation that owns the page
    task = asyncio.ensure_future(gateway.generate(prompt, variant))
    task.add_done_callback(_log_detached_outcome)
    try:
        result = await asyncio.shield(task)
    except NotAuthenticatedError as e:
        return web.json_response({"error": NOT_READY_MESSAGE, "details": e.message}, status=503)
    except InvalidRequestError as e:
        return web.json_response({"error": e.message}, status=400)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        return web.json_response({"error": "Image generation failed", "details": _error_message(e)}, status=500)

    return web.json_response(
        {
            "success": True,
            "model": result.model,
            "prompt": result.prompt,
            "count": result.count,
            "images": [img.to_dict() for img in result.images],
        }
    )


async def health(request):
    return web.json_response(request.app[GATEWAY_KEY].health())


def create_app(gateway: Gateway, start_gateway: bool = True) -> web.Application:
    """Build the aiohttp app. With ``start_gateway`` the login runs in the background on startup."""
    app = web.Application(middlewares=[error_middleware])
    app[GATEWAY_KEY] = gateway
    app.router.add_get("/generate/{variant}", generate)
    app.router.add_get("/health", health)

    if start_gateway:

        async def on_startup(app):
            app[GATEWAY_KEY].start_background()

        app.on_startup.append(on_startup)

    async def on_cleanup(app):
        await app[GATEWAY_KEY].stop()

    app.on_cleanup.append(on_cleanup)
    return app
