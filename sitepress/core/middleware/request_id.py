import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from sitepress.core.logging import LOGGER_NAME, latency_bucket_ms, request_id_ctx_var, user_id_ctx_var

MAX_INCOMING_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate one request's logs and error bodies under a single id.

    An incoming `x-request-id` is reused when it looks sane, otherwise a
    fresh uuid4 is minted. The id is exposed on `request.state`, in the
    logging context and on the response.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    def _request_id(self, request) -> str:
        incoming = (request.headers.get(self.header_name) or "").strip()
        if incoming and len(incoming) <= MAX_INCOMING_ID_LENGTH:
            return incoming
        return str(uuid4())

    async def dispatch(self, request, call_next):
        rid = self._request_id(request)
        request.state.request_id = rid
        rid_token = request_id_ctx_var.set(rid)
        user_token = user_id_ctx_var.set(None)

        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers[self.header_name] = rid
            return response
        finally:
            logging.getLogger(LOGGER_NAME).info(
                "request.complete",
                extra={
                    "request_id": rid,
                    "method": request.method,
                    "path": request.url.path,
                    "hostname": request.url.hostname,
                    "status": status,
                    "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
                },
            )
            user_id_ctx_var.reset(user_token)
            request_id_ctx_var.reset(rid_token)
