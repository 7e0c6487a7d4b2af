"""
httpsession demo - visit counter with login/logout.

Demonstrates:
1. SessionMiddleware around a plain ASGI app
2. Lazy cookies (GET /whoami on a fresh client sets no cookie)
3. Session id rotation on login
4. Destroy on logout
5. Periodic expiry sweep

Run:
    pip install -e ".[examples]"
    python examples/counter_app.py

Then:
    curl -i -c jar -b jar http://127.0.0.1:8000/
    curl -i -c jar -b jar -X POST "http://127.0.0.1:8000/login?user=alice"
    curl -i -c jar -b jar http://127.0.0.1:8000/whoami
    curl -i -c jar -b jar -X POST http://127.0.0.1:8000/logout
"""

import asyncio
import json
import logging
from urllib.parse import parse_qs

from httpsession import (
    SessionConfig,
    SessionEngine,
    SessionMiddleware,
    get_session,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("counter_app")


# ============================================================================
# 1. Session Configuration
# ============================================================================

# Other options come from HTTPSESSION_* variables (and .env, if present),
# e.g. HTTPSESSION_SECRET=... to sign the session id cookie.
config = SessionConfig.from_env(
    env_file=".env",
    cookie={"max_age": 3600, "same_site": "lax"},
    touch_after="5m",
)
engine = SessionEngine(config)


def log_event(event: dict) -> None:
    logger.info(f"{event['event']} {event.get('session_id_hash', '')}")


engine.on_event(log_event)


# ============================================================================
# 2. Handlers
# ============================================================================

async def respond(send, data: dict, status: int = 200) -> None:
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": [(b"content-type", b"application/json")],
    })
    await send({
        "type": "http.response.body",
        "body": json.dumps(data).encode("utf-8"),
    })


async def app(scope, receive, send):
    if scope["type"] == "lifespan":
        await lifespan(receive, send)
        return

    session = get_session(scope)
    route = (scope["method"], scope["path"])

    if route == ("GET", "/"):
        session["visits"] = session.get("visits", 0) + 1
        await respond(send, {"visits": session["visits"]})

    elif route == ("GET", "/whoami"):
        # Read-only: never sets a cookie for a new visitor
        await respond(send, {"user": session.get("user"), "new": session.is_new})

    elif route == ("POST", "/login"):
        query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
        user = query.get("user", ["guest"])[0]
        # New id on privilege change
        await session.regenerate()
        session["user"] = user
        await respond(send, {"user": user})

    elif route == ("POST", "/logout"):
        await session.destroy()
        await respond(send, {"ok": True})

    else:
        await respond(send, {"error": "not found"}, status=404)


# ============================================================================
# 3. Lifespan (expiry sweep)
# ============================================================================

async def sweep_forever(interval: float = 60.0) -> None:
    while True:
        await asyncio.sleep(interval)
        await engine.cleanup_expired()


async def lifespan(receive, send):
    sweeper = None
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            sweeper = asyncio.create_task(sweep_forever())
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            if sweeper is not None:
                sweeper.cancel()
            await engine.shutdown()
            await send({"type": "lifespan.shutdown.complete"})
            return


application = SessionMiddleware(app, engine)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(application, host="127.0.0.1", port=8000)
