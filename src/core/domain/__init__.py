"""
Domain models and value objects.

Contains input entities (Order, OrderItem, Period) parsed from the store
wire format and derived structures (payment summaries, basket tree).
"""

from src.core.domain.basket import (
    NO_PERIOD_ID,
    BasketItem,
    BasketLeaf,
    BulkCommandResult,
    CommandFailure,
    OrderGroup,
    OrderLine,
    PeriodBasket,
    PeriodOrders,
)
from src.core.domain.dates import (
    end_of_day,
    ensure_utc,
    local_day,
    parse_day,
    parse_moment,
    start_of_day,
)
from src.core.domain.order import (
    UNKNOWN_BUYER_KEY,
    ArticleSnapshot,
    BuyerIdentity,
    OptionType,
    Order,
    OrderItem,
    SelectedOption,
)
from src.core.domain.payment import (
    AggregatedUserPayment,
    PaymentsOverview,
    PaymentStatus,
    PaymentTotals,
    PeriodContribution,
    PeriodPaymentData,
    PeriodPaymentSummary,
    SupplierPaymentData,
    UserPaymentSummary,
)
from src.core.domain.period import Period, PeriodArticle, PeriodRecurrence, SupplierRef

__all__ = [
    # Orders
    "UNKNOWN_BUYER_KEY",
    "ArticleSnapshot",
    "BuyerIdentity",
    "OptionType",
    "Order",
    "OrderItem",
    "SelectedOption",
    # Periods
    "Period",
    "PeriodArticle",
    "PeriodRecurrence",
    "SupplierRef",
    # Payments
    "AggregatedUserPayment",
    "PaymentStatus",
    "PaymentTotals",
    "PaymentsOverview",
    "PeriodContribution",
    "PeriodPaymentData",
    "PeriodPaymentSummary",
    "SupplierPaymentData",
    "UserPaymentSummary",
    # Basket tree
    "NO_PERIOD_ID",
    "BasketItem",
    "BasketLeaf",
    "BulkCommandResult",
    "CommandFailure",
    "OrderGroup",
    "OrderLine",
    "PeriodBasket",
    "PeriodOrders",
    # Dates
    "end_of_day",
    "ensure_utc",
    "local_day",
    "parse_day",
    "parse_moment",
    "start_of_day",
]
