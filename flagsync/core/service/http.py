"""HTTP evaluation service (FastAPI served by uvicorn).

Routes:
- POST /flags/{flag_key}/resolve/{boolean|string|number|object}
- GET  /flags
- GET  /health
- /metrics (Prometheus)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from flagsync import __version__
from flagsync.core.errors import EvaluationError, FlagNotFound, ServiceFailure
from flagsync.core.eval.base import Evaluator
from flagsync.core.providers.registry import SERVICE, ProviderRegistry
from flagsync.core.service.base import Service
from flagsync.utils.metrics import evaluation_requests_total

if TYPE_CHECKING:
    from flagsync.core.config import Settings

logger = logging.getLogger(__name__)


class ResolveKind(str, Enum):
    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER = "number"
    OBJECT = "object"


def create_app(evaluator: Evaluator) -> FastAPI:
    """Build the FastAPI application bound to one evaluator."""
    app = FastAPI(title="flagsync", version=__version__)
    app.mount("/metrics", make_asgi_app())

    resolvers = {
        ResolveKind.BOOLEAN: evaluator.resolve_boolean,
        ResolveKind.STRING: evaluator.resolve_string,
        ResolveKind.NUMBER: evaluator.resolve_number,
        ResolveKind.OBJECT: evaluator.resolve_object,
    }

    @app.exception_handler(EvaluationError)
    async def evaluation_error_handler(request: Request, exc: EvaluationError):
        status_code = 404 if isinstance(exc, FlagNotFound) else 400
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "revision": evaluator.revision,
            "evaluator": evaluator.status_snapshot(),
        }

    @app.get("/flags")
    async def list_flags() -> Dict[str, Any]:
        resolved = evaluator.resolve_all()
        return {
            "revision": evaluator.revision,
            "keys": evaluator.flag_keys(),
            "flags": {key: details.to_dict() for key, details in resolved.items()},
        }

    @app.post("/flags/{flag_key}/resolve/{kind}")
    async def resolve_flag(
        flag_key: str,
        kind: ResolveKind,
        context: Optional[Dict[str, Any]] = Body(default=None),
    ) -> Dict[str, Any]:
        try:
            details = resolvers[kind](flag_key, context)
        except EvaluationError as exc:
            evaluation_requests_total.labels(kind=kind.value, outcome=exc.code.value).inc()
            raise
        evaluation_requests_total.labels(kind=kind.value, outcome="ok").inc()
        return details.to_dict()

    return app


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the runtime."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


@ProviderRegistry.register(SERVICE, "http")
class HttpService(Service):
    def __init__(
        self,
        host: str = "0.0.0.0",  # nosec B104
        port: int = 8080,
        socket_path: Optional[str] = None,
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.socket_path = socket_path
        self.server: Optional[uvicorn.Server] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "HttpService":
        return cls(host=settings.host, port=settings.port, socket_path=settings.socket_path)

    @property
    def bind_description(self) -> str:
        if self.socket_path:
            return f"unix:{self.socket_path}"
        return f"{self.host}:{self.port}"

    def _build_server(self, evaluator: Evaluator) -> uvicorn.Server:
        config = uvicorn.Config(
            create_app(evaluator),
            host=self.host,
            port=self.port,
            uds=self.socket_path,
            log_config=None,
        )
        return _Server(config)

    async def _run_server(self, server: uvicorn.Server) -> None:
        try:
            await server.serve()
        except SystemExit as exc:
            # uvicorn exits the process when it cannot bind
            raise ServiceFailure(
                f"http service failed on {self.bind_description} (exit status {exc.code})",
                provider=self.name,
            ) from exc
        except OSError as exc:
            raise ServiceFailure(
                f"http service failed on {self.bind_description}: {exc}", provider=self.name
            ) from exc

    async def serve(self, evaluator: Evaluator, stop: asyncio.Event) -> None:
        server = self._build_server(evaluator)
        self.server = server
        server_task = asyncio.create_task(self._run_server(server), name="http-serve")
        stop_task = asyncio.create_task(stop.wait(), name="http-stop")
        logger.info("Serving flag evaluations on %s", self.bind_description)
        self.mark_healthy()
        try:
            done, _ = await asyncio.wait(
                {server_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if server_task in done:
                server_task.result()
                raise ServiceFailure(
                    "http service exited before shutdown was requested", provider=self.name
                )
            server.should_exit = True
            await server_task
            logger.info("HTTP service on %s stopped", self.bind_description)
        except ServiceFailure as exc:
            self.mark_degraded(str(exc))
            raise
        finally:
            stop_task.cancel()
            if not server_task.done():
                server.should_exit = True
                server_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await server_task
