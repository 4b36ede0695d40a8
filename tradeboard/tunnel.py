"""Development tunnel: expose the local API through ngrok.

Opens a fresh tunnel to the API port, points the frontend's ``.env`` at the
public URL and answers liveness probes on ``port + 1`` until terminated.
"""

from __future__ import annotations

import argparse
import logging
import re
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from pyngrok import conf, ngrok
from pyngrok.exception import PyngrokError

from .config import Settings, settings
from .logging_setup import init_logging

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "Tunnel is running"


class TunnelError(RuntimeError):
    pass


def rewrite_client_env(path: Path, var: str, url: str) -> str:
    """Replace the ``var=...`` line in ``path`` with ``var=url``; append it if absent."""
    if not path.exists():
        raise TunnelError(f"client env file not found: {path}")
    text = path.read_text(encoding="utf-8")
    line = f"{var}={url}"
    pattern = re.compile(rf"^{re.escape(var)}=.*$", re.MULTILINE)
    if pattern.search(text):
        text = pattern.sub(lambda _: line, text, count=1)
    else:
        if text and not text.endswith("\n"):
            text += "\n"
        text += line + "\n"
    path.write_text(text, encoding="utf-8")
    return text


def liveness_app() -> FastAPI:
    app = FastAPI(title="TradeBoard tunnel", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=PlainTextResponse)
    def alive():
        return LIVENESS_TEXT

    return app


class TunnelBootstrap:
    def __init__(
        self,
        cfg: Settings,
        port: Optional[int] = None,
        client_env: Optional[str] = None,
    ) -> None:
        self.cfg = cfg
        self.port = port or cfg.PORT
        self.client_env = Path(client_env or cfg.CLIENT_ENV_PATH)
        self.public_url: Optional[str] = None
        self._liveness: Optional[uvicorn.Server] = None

    def open(self) -> str:
        ngrok.kill()
        if self.cfg.NGROK_URL:
            self.public_url = self.cfg.NGROK_URL
        else:
            pyngrok_config = conf.PyngrokConfig(
                auth_token=self.cfg.NGROK_AUTH_TOKEN,
                region=self.cfg.NGROK_REGION,
            )
            try:
                tunnel = ngrok.connect(
                    str(self.port),
                    "http",
                    pyngrok_config=pyngrok_config,
                    host_header=f"localhost:{self.port}",
                )
            except PyngrokError as exc:
                raise TunnelError(f"could not open tunnel: {exc}") from exc
            self.public_url = tunnel.public_url
        logger.info("tunnel started with URL: %s", self.public_url)
        rewrite_client_env(self.client_env, self.cfg.CLIENT_ENV_VAR, self.public_url)
        logger.info("updated %s in %s", self.cfg.CLIENT_ENV_VAR, self.client_env)
        return self.public_url

    def start_liveness(self) -> threading.Thread:
        config = uvicorn.Config(
            liveness_app(), host="0.0.0.0", port=self.port + 1, log_level="warning"
        )
        self._liveness = uvicorn.Server(config)
        thread = threading.Thread(target=self._liveness.run, name="tunnel-liveness", daemon=True)
        thread.start()
        logger.info("liveness listener on port %d", self.port + 1)
        return thread

    def close(self) -> None:
        if self._liveness is not None:
            self._liveness.should_exit = True
        ngrok.kill()
        logger.info("tunnel closed")


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Expose the local API through ngrok")
    ap.add_argument("--port", type=int, default=None)
    ap.add_argument("--client-env", default=None, help="path of the frontend .env file")
    ap.add_argument("--no-liveness", action="store_true")
    a = ap.parse_args(argv)

    init_logging(settings.LOG_LEVEL)
    bootstrap = TunnelBootstrap(settings, port=a.port, client_env=a.client_env)
    stop = threading.Event()

    def _terminate(signum, frame):
        bootstrap.close()
        stop.set()

    signal.signal(signal.SIGTERM, _terminate)
    signal.signal(signal.SIGINT, _terminate)

    try:
        bootstrap.open()
    except (TunnelError, OSError) as exc:
        logger.error("error starting tunnel: %s", exc)
        ngrok.kill()
        return 1
    if not a.no_liveness:
        bootstrap.start_liveness()
    while not stop.wait(1.0):
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
