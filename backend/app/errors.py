class InvalidRequest(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(Exception):
    """
    Non-success response from the YouTube Data API.
    The upstream status and body are surfaced verbatim to the caller.
    """

    def __init__(self, status_code: int, body: str, operation: str):
        super().__init__(f"{operation} failed with HTTP {status_code}")
        self.status_code = status_code
        self.body = body
        self.operation = operation

    @property
    def quota_exceeded(self) -> bool:
        lowered = (self.body or "").lower()
        return self.status_code in {403, 429} and (
            "quotaexceeded" in lowered or "quota exceeded" in lowered or "youtube.quota" in lowered
        )


class UnexpectedError(Exception):
    status_code = 500
