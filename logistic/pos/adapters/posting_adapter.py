"""
Posting Service adapter for the POS transaction core.

Provides the interface to the accounting posting system with a
deterministic mock implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, List


class PostingError(Exception):
    """Raised when the posting service rejects or cannot take a posting."""


@dataclass(frozen=True)
class PostingResult:
    reference: str
    entries: List[Dict[str, Any]]


class PostingAdapterInterface(ABC):
    """
    Contract for the accounting posting service.

    Postings happen after the payment row is written. Failures are
    reconciled later, they never undo a committed payment.
    """

    @abstractmethod
    def post_payment(self, payment) -> PostingResult:
        """
        Post a payment or refund transaction.

        Args:
            payment: PaymentTransaction instance

        Returns:
            PostingResult with the posting reference

        Raises:
            PostingError: If the posting could not be made
        """
        pass


class MockPostingAdapter(PostingAdapterInterface):
    """
    Deterministic mock implementation for testing and development.

    Produces a balanced debit/credit pair per transaction.
    """

    CASH_ACCOUNT = '1000'
    REVENUE_ACCOUNT = '4000'

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.postings: Dict[str, PostingResult] = {}

    def post_payment(self, payment) -> PostingResult:
        if self.fail:
            raise PostingError(f"Posting service unavailable for {payment.id}")

        reference = f"PST-{payment.transaction_type}-{payment.id}"
        debit, credit = self.CASH_ACCOUNT, self.REVENUE_ACCOUNT
        if payment.is_refund:
            debit, credit = credit, debit

        result = PostingResult(
            reference=reference,
            entries=[
                {'account': debit, 'entry_type': 'debit', 'amount': payment.amount},
                {'account': credit, 'entry_type': 'credit', 'amount': payment.amount},
            ]
        )
        self.postings[reference] = result
        return result


# Global adapter instance - in production, this would be configured differently
posting_adapter = MockPostingAdapter()


def get_posting_adapter() -> PostingAdapterInterface:
    """Return the configured posting adapter."""
    return posting_adapter


def switch_to_mock_adapter(fail: bool = False):
    """Switch to a fresh mock adapter (optionally failing every posting)."""
    global posting_adapter
    posting_adapter = MockPostingAdapter(fail=fail)
    return posting_adapter


def switch_to_real_adapter(real_adapter: PostingAdapterInterface):
    """
    Switch to a real posting adapter implementation.

    Args:
        real_adapter: Real implementation of PostingAdapterInterface
    """
    global posting_adapter
    posting_adapter = real_adapter
