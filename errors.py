class DashboardError(Exception):
    """Base class for failures raised by the dashboard engine and its stores."""


class InvalidPeriodError(DashboardError, ValueError):
    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown period: {token}")
        self.token = token


class InvalidArgumentError(DashboardError, ValueError):
    pass


class NotFoundError(DashboardError, LookupError):
    pass


class StorageError(DashboardError):
    """A store read or write failed. Never retried by the engine."""


class AuthenticationError(DashboardError):
    pass
