class ServiceError(Exception):
    pass


class InvalidURLError(ServiceError):
    pass


class FetchFailedError(ServiceError):
    pass


class ScrapeJobError(FetchFailedError):
    def __init__(self, run_id: str, status: str):
        super().__init__(f"Scrape run {run_id} ended with status {status}")
        self.run_id = run_id
        self.status = status


class ScrapeTimeoutError(FetchFailedError):
    def __init__(self, run_id: str, attempts: int):
        super().__init__(f"Scrape run {run_id} not finished after {attempts} polls")
        self.run_id = run_id
        self.attempts = attempts


class RateLimitedError(ServiceError):
    pass


class ModelResponseError(ServiceError):
    pass


class ImageDecodeError(ServiceError):
    pass


class NetworkTimeoutError(ServiceError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds
