from functools import lru_cache

from ..config import settings
from .alipay import AlipayClient, BaseAlipayClient
from .alipay_wap import AlipayWapClient
from .notification import ACK_FAIL, ACK_SUCCESS, NotificationInterpreter
from .signature import SignatureEngine, canonicalize


@lru_cache()
def get_alipay_client() -> AlipayClient:
    """全局移动支付客户端"""
    return AlipayClient.from_settings(settings)


@lru_cache()
def get_alipay_wap_client() -> AlipayWapClient:
    """全局手机网站支付客户端"""
    return AlipayWapClient.from_settings(settings)
