from .schemas import (
    DEFAULT_REFUND_REASON,
    ProfitSplit,
    RefundDetail,
    RefundItem,
    RefundNotification,
    RefundResult,
    RefundStatus,
    SignatureContext,
    SigningIdentity,
    SignType,
    SubRefund,
    Trade,
    TradeStatus,
    WapPaymentResult,
    WapTradeForm,
)
