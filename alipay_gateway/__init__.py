"""
支付宝对接：请求签名、通知验签与退款
"""
from .exceptions import (
    AlipayError,
    AuthorizationFailed,
    BatchTooLarge,
    DecryptionFailed,
    ForgedNotification,
    GatewayError,
    SignatureVerificationFailed,
    UnknownRefundStatus,
    UnknownTradeStatus,
    UnsupportedSignatureAlgorithm,
)
from .models import (
    ProfitSplit,
    RefundItem,
    RefundNotification,
    RefundResult,
    RefundStatus,
    SigningIdentity,
    SignType,
    SubRefund,
    Trade,
    TradeStatus,
)
from .services import AlipayClient, AlipayWapClient, SignatureEngine, canonicalize
