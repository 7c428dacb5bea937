"""Custom exceptions for the ranking bot."""

from typing import Any, Optional


class RankBotError(Exception):
    """Base exception for the ranking bot."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


# =============================================================================
# Recoverable: a single step failed verification or timed out
# =============================================================================

class RecoverableError(RankBotError):
    """A step failed; the run can continue after recording it."""

    pass


class PageNotReadyError(RecoverableError):
    """A bounded wait expired before the page reached the expected state."""

    def __init__(
        self,
        what: str,
        timeout_s: float,
        context: Optional[dict[str, Any]] = None,
    ):
        message = f"Page did not become ready: {what} (waited {timeout_s:.1f}s)"
        super().__init__(message, context)
        self.what = what
        self.timeout_s = timeout_s


class ElementNotFoundError(RecoverableError):
    """An element the step depends on is not on the page."""

    def __init__(self, selector: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"Element not found: {selector}", context)
        self.selector = selector


class FilterVerificationError(RecoverableError):
    """A search filter read back a different value than was entered."""

    def __init__(
        self,
        field: str,
        expected: Any,
        actual: Any,
        context: Optional[dict[str, Any]] = None,
    ):
        message = f"Filter '{field}' expected {expected!r} but page shows {actual!r}"
        super().__init__(message, context)
        self.field = field
        self.expected = expected
        self.actual = actual


class PageSyncError(RecoverableError):
    """The current-page indicator does not show the page we expect to be on."""

    def __init__(
        self,
        expected: int,
        observed: Optional[int],
        context: Optional[dict[str, Any]] = None,
    ):
        message = f"Expected results page {expected} but indicator shows {observed}"
        super().__init__(message, context)
        self.expected = expected
        self.observed = observed


class CartConfirmationError(RecoverableError):
    """The add-to-cart confirmation overlay never appeared."""

    def __init__(
        self,
        product_id: str,
        attempts: int,
        context: Optional[dict[str, Any]] = None,
    ):
        message = f"Add-to-cart confirmation for {product_id} not shown after {attempts} polls"
        super().__init__(message, context)
        self.product_id = product_id
        self.attempts = attempts


# =============================================================================
# Unrecoverable: state needed to continue the run cannot be established
# =============================================================================

class UnrecoverableError(RankBotError):
    """The run cannot continue."""

    pass


class AntiBotChallengeError(UnrecoverableError):
    """Anti-bot challenge still shown after the single permitted reload."""

    def __init__(self, url: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"Anti-bot challenge persisted after reload at {url}", context)
        self.url = url


class ResultsUnavailableError(UnrecoverableError):
    """The entry page or search results never became usable."""

    pass


# =============================================================================
# Domain outcomes
# =============================================================================

class ProductNotFoundError(RankBotError):
    """The product detail page reports that no such product exists."""

    def __init__(self, product_id: str, url: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"Product {product_id} does not exist ({url})", context)
        self.product_id = product_id
        self.url = url
