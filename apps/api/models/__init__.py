"""Models package."""

from .credit_account import CreditAccount
from .credit_transaction import CreditTransaction, TRANSACTION_REASONS
from .pending_conversion import PendingConversion
from .site import Site
from .contact_submission import ContactSubmission
