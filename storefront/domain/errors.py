# storefront/domain/errors.py
"""Domain errors, translated into the response envelope by the API layer."""


class ShopError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ShopError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(ShopError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(ShopError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ShopError):
    status_code = 403
    code = "FORBIDDEN"


class SignatureInvalidError(ShopError):
    status_code = 401
    code = "SIGNATURE_INVALID"


class ConflictError(ShopError):
    status_code = 409
    code = "CONFLICT"


class PaymentGatewayError(ShopError):
    status_code = 502
    code = "PAYMENT_GATEWAY_ERROR"
