from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException, status

from .errors import InvalidTransitionError, JobAlreadyClaimedError, JobNotFoundError
from .job_storage import JobStorageError


@contextmanager
def job_errors_as_http() -> Iterator[None]:
    """Translate job lifecycle errors raised inside a route into HTTP errors."""
    try:
        yield
    except JobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (JobAlreadyClaimedError, InvalidTransitionError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except JobStorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
