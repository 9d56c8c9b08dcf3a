"""
Serverless entrypoint (Vercel Python runtime).

If the FastAPI app cannot be imported (missing dependency, broken env), a
bare ASGI app answers every request with the import error so the failure is
visible from the deployment URL instead of a generic 500 page.
"""
import json
import logging
import sys
import traceback

logger = logging.getLogger(__name__)

startup_error = None

try:
    from app.main import app
except Exception as e:
    logger.exception("Farm Advisory Service failed to start")
    startup_error = {
        "status": "error",
        "service": "Farm Advisory Service",
        "error": str(e),
        "type": type(e).__name__,
        "traceback": traceback.format_exc(),
        "python_version": sys.version,
    }

    async def app(scope, receive, send):
        if scope["type"] == "lifespan":
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.failed", "message": startup_error["error"]})
            return
        if scope["type"] != "http":
            return

        body = json.dumps(startup_error, ensure_ascii=False).encode("utf-8")
        await send({
            "type": "http.response.start",
            "status": 503,
            "headers": [
                [b"content-type", b"application/json; charset=utf-8"],
                [b"content-length", str(len(body)).encode()],
            ],
        })
        await send({"type": "http.response.body", "body": body})
