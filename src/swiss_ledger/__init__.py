"""Swiss Ledger - balances for shared expenses, settlements and subscriptions."""

__version__ = "0.1.0"

from .balances import (
    group_member_balances,
    members_who_owe_you,
    members_you_owe,
    net_balance,
    pairwise_balance,
)
from .config import Settings, load_settings
from .ledger import Ledger
from .models import (
    BillingCycle,
    BillingStatus,
    CurrencyBalance,
    FinancialTransaction,
    LedgerSnapshot,
    Person,
    Settlement,
    SplitMethod,
    Subscription,
    TransactionPayer,
    TransactionSplit,
)
from .money import EPSILON, is_settled
from .settlement import settle_subscription_member, settle_with_person
from .splits import allocation_status, build_splits, effective_payers
from .subscriptions import (
    billing_status,
    calculate_next_billing_date,
    initial_next_billing_date,
)

__all__ = [
    "Settings",
    "load_settings",
    "Ledger",
    "BillingCycle",
    "BillingStatus",
    "CurrencyBalance",
    "FinancialTransaction",
    "LedgerSnapshot",
    "Person",
    "Settlement",
    "SplitMethod",
    "Subscription",
    "TransactionPayer",
    "TransactionSplit",
    "EPSILON",
    "is_settled",
    "pairwise_balance",
    "net_balance",
    "group_member_balances",
    "members_who_owe_you",
    "members_you_owe",
    "settle_with_person",
    "settle_subscription_member",
    "build_splits",
    "effective_payers",
    "allocation_status",
    "billing_status",
    "calculate_next_billing_date",
    "initial_next_billing_date",
]
