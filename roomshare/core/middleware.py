import time
import uuid
import logging
from fastapi import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """
    Tag each request with a request id and log how it ended.

    An id sent by the client (or a proxy) is reused so log lines can be
    joined across services; otherwise a fresh one is generated. The id is
    echoed on the response either way.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            f"request_failed request_id={request_id} method={request.method} "
            f"path={request.url.path} duration_ms={_elapsed_ms(started)}"
        )
        raise

    logger.info(
        f"request_finished request_id={request_id} method={request.method} "
        f"path={request.url.path} status={response.status_code} "
        f"duration_ms={_elapsed_ms(started)}"
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
