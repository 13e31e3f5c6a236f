from __future__ import annotations


class ReportServiceError(RuntimeError):
    """Base for failures at the report-generation boundary."""

    code = "unknown"
    user_message = "An unexpected error occurred while generating the report."
    retryable = False

    def __init__(self, detail: str = "", *, status_code: int | None = None, retry_after_s: float | None = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        self.status_code = status_code
        self.retry_after_s = retry_after_s


class AuthError(ReportServiceError):
    code = "auth"
    user_message = "Authentication with the report service failed. Please check the configured API key."


class RateLimitError(ReportServiceError):
    code = "rate_limit"
    user_message = "Too many requests to the report service. Please try again in a few minutes."
    retryable = True


class TransientServiceError(ReportServiceError):
    code = "service_unavailable"
    user_message = "The report service is temporarily unavailable. Please try again later."
    retryable = True


class ReportTimeoutError(TransientServiceError):
    code = "timeout"
    user_message = "Report generation took too long and was abandoned. Please try again."
    retryable = False


class UnknownError(ReportServiceError):
    code = "unknown"

    def __init__(self, detail: str = "", **kwargs):
        super().__init__(detail, **kwargs)
        if detail:
            self.user_message = f"Failed to generate report: {detail}"
