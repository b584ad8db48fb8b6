"""
HTTP server for the device description.

A small FastAPI app run by uvicorn inside the daemon's event loop. Devices
that see our announcements fetch the description from LOCATION.
"""

import asyncio
import contextlib
import logging
import socket
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response

from ..exceptions import AdvertiseError
from .description import DeviceDescription

logger = logging.getLogger("canon_ssdp.advertise.server")


def create_app(description: DeviceDescription, file_name: str) -> FastAPI:
    """App serving the description at /<file_name>."""
    app = FastAPI(title="canon-ssdp", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(f"/{file_name}")
    async def get_description() -> Response:
        return Response(content=description.content, media_type="text/xml")

    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the daemon."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class DescriptionServer:
    """Serves the description document on host:port."""

    def __init__(self, description: DeviceDescription, file_name: str, host: str, port: int = 0):
        self.description = description
        self.file_name = file_name
        self.host = host
        self.port = port
        self.app = create_app(description, file_name)
        self._server: Optional[_EmbeddedServer] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def location(self) -> str:
        return f"http://{self.host}:{self.port}/{self.file_name}"

    async def start(self) -> None:
        """
        Bind and start serving.

        Raises:
            AdvertiseError: the address cannot be bound
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise AdvertiseError(f"{self.host}:{self.port}", e) from e
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(self.app, log_level="warning", lifespan="off", access_log=False)
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]), name="description-http")
        while not self._server.started and not self._task.done():
            await asyncio.sleep(0.01)
        if self._task.done():
            exc = self._task.exception()
            raise AdvertiseError(self.location, exc or RuntimeError("server exited"))
        logger.info("Serving device description at %s", self.location)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.should_exit = True
        if self._task is not None:
            try:
                await self._task
            except Exception as e:
                logger.warning("Description server stopped with error: %s", e)
        self._server = None
        self._task = None
