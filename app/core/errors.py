"""
Error taxonomy.

Order and product integrity errors propagate to the caller. Screenshot path
errors (capture, upload, match) are raised inside the pipeline but caught at
their item or view boundary, logged, and degraded to "fewer screenshots".
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for domain errors."""


class NotFoundError(StorefrontError):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, reference: str):
        super().__init__(f'Product with ID or slug "{reference}" not found')
        self.reference = reference


class OrderNotFoundError(NotFoundError):
    pass


class OrderItemNotFoundError(NotFoundError):
    pass


class ScreenshotsAlreadyAttachedError(StorefrontError):
    """An order item's screenshot set is attached once and never replaced."""


class CaptureError(StorefrontError):
    """Rendering or reading back one view of one item failed."""


class UploadError(StorefrontError):
    """Storing one view of one item failed."""


class InvalidDataUrlError(UploadError):
    pass


class MatchError(StorefrontError):
    """A cart line could not be paired with exactly one order item."""
