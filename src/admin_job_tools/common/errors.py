"""Job store and lifecycle errors."""


class JobError(Exception):
    """Base class for job-related errors."""


class JobNotFoundError(JobError):
    def __init__(self, job_id: str):
        self.job_id: str = job_id
        super().__init__(f"Job '{job_id}' not found")


class JobAlreadyClaimedError(JobError):
    def __init__(self, job_id: str, status: str):
        self.job_id: str = job_id
        self.status: str = status
        super().__init__(f"Job '{job_id}' cannot be claimed: status is '{status}'")


class InvalidTransitionError(JobError):
    def __init__(self, job_id: str, current: str, target: str):
        self.job_id: str = job_id
        self.current: str = current
        self.target: str = target
        super().__init__(f"Job '{job_id}' cannot move from '{current}' to '{target}'")


class SchemaMismatchError(JobError):
    """The jobs table lacks a column the insert referenced."""

    def __init__(self, column: str | None, detail: str = ""):
        self.column: str | None = column
        super().__init__(f"Column '{column}' not found in database. {detail}".strip())
