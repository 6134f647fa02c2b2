"""Domain errors raised by the data layer and rendered by the app's exception handler."""


class ShopError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ShopError):
    status_code = 404


class ValidationFailed(ShopError, ValueError):
    status_code = 400


class StorageFailure(ShopError):
    status_code = 500


class UpstreamFailure(ShopError):
    status_code = 502
