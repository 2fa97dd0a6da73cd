import asyncio
import logging

import httpx
from supabase import PostgrestAPIError

from roomshare.utils.env_helper import env_float
from .errors import PermissionDeniedError, StoreError


logger = logging.getLogger(__name__)

STORE_TIMEOUT_SECONDS = env_float("STORE_TIMEOUT_SECONDS", 10.0)

UNIQUE_VIOLATION = "23505"
INSUFFICIENT_PRIVILEGE = "42501"


async def execute(query, action: str, timeout: float | None = None):
    """
    Run a PostgREST query builder and return its response.

    Every store round-trip in the services goes through here so that each
    one is bounded by a timeout and backend failures surface as the
    roomshare error types instead of client library exceptions.

    **Raises**
    - `StoreError(retryable=True)`: timeout or transport failure
    - `PermissionDeniedError`: row level security refused the statement
    - `StoreError(retryable=False)`: any other PostgREST error
    """
    timeout = STORE_TIMEOUT_SECONDS if timeout is None else timeout

    try:
        return await asyncio.wait_for(query.execute(), timeout=timeout)

    except asyncio.TimeoutError:
        logger.warning(f"store_timeout action={action} timeout={timeout}")
        raise StoreError(f"Timed out while trying to {action}.", retryable=True)

    except PostgrestAPIError as error:
        if error.code == INSUFFICIENT_PRIVILEGE:
            logger.warning(f"store_permission_denied action={action}")
            raise PermissionDeniedError(f"Not allowed to {action}.") from error

        logger.error(f"store_error action={action} code={error.code} message={error.message}")
        raise StoreError(f"Database error while trying to {action}.", retryable=False) from error

    except httpx.HTTPError as error:
        logger.error(f"store_unreachable action={action} error={error}")
        raise StoreError(f"Could not reach the database to {action}.", retryable=True) from error


def is_unique_violation(error: BaseException) -> bool:
    """True when `error` (or its cause) is a Postgres unique constraint violation."""
    cause = error.__cause__ if isinstance(error, StoreError) else error
    return isinstance(cause, PostgrestAPIError) and cause.code == UNIQUE_VIOLATION
