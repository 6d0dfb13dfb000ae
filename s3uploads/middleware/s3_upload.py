import asyncio
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict

from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect, Request
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from s3uploads.errors import UploadPipelineError
from s3uploads.services.form_values import FormValues
from s3uploads.services.interceptor import FormInterceptor

FORM_CONTENT_TYPE = b"application/x-www-form-urlencoded"
_REPLACED_HEADERS = (b"content-type", b"content-length", b"transfer-encoding")


class RequestBody:
    """
    Blocking iterator over the ASGI request body.

    Meant to be consumed from a worker thread: each step schedules
    ``receive()`` on the event loop and waits for the message. A client
    disconnect raises ``ClientDisconnect``, and so does every later step, so
    any reader further down (including an in-flight S3 upload) stops.
    """

    def __init__(self, receive: Receive, loop: asyncio.AbstractEventLoop):
        self._receive = receive
        self._loop = loop
        self._done = False
        self.disconnected = False

    def __iter__(self) -> "RequestBody":
        return self

    def __next__(self) -> bytes:
        if self.disconnected:
            raise ClientDisconnect()
        if self._done:
            raise StopIteration

        message = asyncio.run_coroutine_threadsafe(self._next_message(), self._loop).result()
        if message["type"] == "http.disconnect":
            self.disconnected = True
            raise ClientDisconnect()
        if not message.get("more_body", False):
            # never receive past the last body message, it would block until disconnect
            self._done = True
        return message.get("body", b"")

    async def _next_message(self) -> Message:
        return await self._receive()


class S3UploadMiddleware:
    """
    Streams multipart file uploads to S3 before the app sees the request.

    Multipart requests are consumed part by part: files go to S3 and are
    replaced by their object key plus ``_name``, ``_type`` and ``_size``
    companions, plain fields are kept. The app then receives a urlencoded
    body with those values (``await request.form()`` works as usual) and the
    same map on ``request.state.form_values``. Any failure answers 500 and
    the app is not called. Other requests pass through untouched.
    """

    def __init__(self, app: ASGIApp, interceptor: FormInterceptor):
        self.app = app
        self.interceptor = interceptor
        self.logger = interceptor.logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/form-data"):
            await self.app(scope, receive, send)
            return

        body = RequestBody(receive, asyncio.get_running_loop())
        try:
            form = await run_in_threadpool(self.interceptor.process, request, content_type, body)
        except UploadPipelineError as e:
            self.logger.error(
                "Failed to process multipart request",
                stage=e.stage.value,
                path=scope.get("path"),
                disconnected=body.disconnected,
                error=str(e)
            )
            response = PlainTextResponse(
                HTTPStatus.INTERNAL_SERVER_ERROR.phrase,
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR
            )
            await response(scope, receive, send)
            return

        existing = getattr(request.state, "form_values", None)
        if isinstance(existing, FormValues):
            existing.extend(form)
            form = existing
        request.state.form_values = form

        encoded = form.urlencode()
        forward_scope: Dict[str, Any] = dict(scope)
        forward_scope["headers"] = [
            (name, value) for name, value in scope["headers"] if name.lower() not in _REPLACED_HEADERS
        ] + [
            (b"content-type", FORM_CONTENT_TYPE),
            (b"content-length", str(len(encoded)).encode("latin-1")),
        ]

        await self.app(forward_scope, _replay(encoded, receive), send)


def _replay(body: bytes, receive: Receive) -> Callable[[], Awaitable[Message]]:
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay
