"""Custom exceptions for the render server."""


class VWizError(Exception):
    """Base exception for vwiz."""

    pass


class JobNotFoundError(VWizError):
    """No job is registered under the given id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class JobNotCancellableError(VWizError):
    """The job is already terminal."""

    def __init__(self, job_id: str, status: str):
        super().__init__(f"Job {job_id} is not cancellable (status: {status})")
        self.job_id = job_id
        self.status = status


class EngineError(VWizError):
    """Frame-composition engine call failed."""

    pass


class CompositionNotFoundError(EngineError):
    """The bundle does not contain the requested composition."""

    pass


class InvalidInputPropsError(EngineError):
    """Input props do not match the composition schema."""

    pass


class RenderFailedError(EngineError):
    """The render process exited unsuccessfully."""

    pass


class RenderCancelledError(EngineError):
    """The render was aborted through its cancel token."""

    pass


class RenderTimeoutError(EngineError):
    """The render exceeded the configured watchdog timeout."""

    pass


class BundleError(EngineError):
    """Bundling the composition entry point failed."""

    pass


class RenderClientError(VWizError):
    """Render server request or render job failed (client side)."""

    def __init__(self, message: str, status_code: int | None = None, job_id: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.job_id = job_id
