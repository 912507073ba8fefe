"""Exception taxonomy for the order lifecycle."""


class StorefrontError(Exception):
    """Base exception for all caller-facing storefront errors."""

    retryable = False


class ValidationError(StorefrontError):
    """Raised when input is missing or malformed. Always caller-fixable."""

    def __init__(self, message: str, fields: list[str] | None = None):
        self.fields = fields or []
        super().__init__(message)


class NotFoundError(StorefrontError):
    """Raised when an order, promo code or other entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(StorefrontError):
    """Raised when a write conflicts with the current stored state."""

    pass


class IllegalTransitionError(ConflictError):
    """Raised when a status change is not in the workflow table."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Illegal status transition: {current} -> {requested}")


class OwnershipConflictError(ConflictError):
    """Raised when an explicit link targets an order owned by someone else."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} is already linked to another account")


class PromoCodeError(StorefrontError):
    """Base class for promo code rejections."""

    code = "promo_invalid"


class InvalidCodeError(PromoCodeError):
    code = "promo_invalid"

    def __init__(self, promo_code: str):
        self.promo_code = promo_code
        super().__init__("Invalid promo code")


class ExpiredError(PromoCodeError):
    code = "promo_expired"

    def __init__(self, promo_code: str):
        self.promo_code = promo_code
        super().__init__("Promo code has expired")


class UsageExhaustedError(PromoCodeError):
    code = "promo_exhausted"

    def __init__(self, promo_code: str):
        self.promo_code = promo_code
        super().__init__("Promo code has reached maximum uses")


class BelowMinimumError(PromoCodeError):
    code = "promo_below_minimum"

    def __init__(self, promo_code: str, minimum: int, currency: str = "DA"):
        self.promo_code = promo_code
        self.minimum = minimum
        super().__init__(f"Minimum order amount is {minimum:,} {currency}")


class StoreUnavailableError(StorefrontError):
    """Transient infrastructure fault. The only class that is safe to retry."""

    retryable = True

    def __init__(self, message: str = "Data store unavailable", retry_after: int = 5):
        self.retry_after = retry_after
        super().__init__(message)


class MoneyInvariantError(AssertionError):
    """total != subtotal + shipping - discount, or a negative money field."""

    def __init__(self, subtotal: int, shipping: int, discount: int, total: int):
        self.subtotal = subtotal
        self.shipping = shipping
        self.discount = discount
        self.total = total
        super().__init__(
            f"Money invariant violated: subtotal={subtotal} shipping={shipping} "
            f"discount={discount} total={total}"
        )
