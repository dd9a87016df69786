"""
支付宝对接异常体系

每个异常都带有稳定的 error_code，调用方可以按错误码分支，
而不必依赖异常类型本身（例如跨进程传递时）。
"""
from typing import Optional, Dict, Any


class AlipayError(Exception):
    """所有支付宝对接错误的基类"""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为接口错误响应格式"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ForgedNotification(AlipayError):
    """通知中缺少签名类型字段，视为伪造"""

    def __init__(self, sign_type_key: str):
        super().__init__(
            "alipay:notification:forged",
            "Forged trade notification",
            {"sign_type_key": sign_type_key}
        )


class SignatureVerificationFailed(AlipayError):
    """签名与内容不匹配"""

    def __init__(self, sign_type: str):
        super().__init__(
            "alipay:signature:verification_failed",
            "Signature verification failed",
            {"sign_type": sign_type}
        )


class UnsupportedSignatureAlgorithm(AlipayError):
    """不支持的签名类型（仅支持 RSA/0001 与 MD5）"""

    def __init__(self, sign_type: Any):
        super().__init__(
            "alipay:signature:unsupported_algorithm",
            f"Unknown sign type: {sign_type}",
            {"sign_type": sign_type}
        )


class UnknownTradeStatus(AlipayError):
    """无法处理的交易状态"""

    def __init__(self, order_no: str, status: str):
        super().__init__(
            "alipay:trade:unknown_status",
            f"{order_no}'s status is {status}. But I don't know how to handle it.",
            {"order_no": order_no, "status": status}
        )


class UnknownRefundStatus(AlipayError):
    """退款同步返回中无法识别的 is_success 值"""

    def __init__(self, status: str):
        super().__init__(
            "alipay:refund:unknown_status",
            f"Unknown refund status: {status}",
            {"status": status}
        )


class BatchTooLarge(AlipayError):
    """退款总笔数超过上限"""

    def __init__(self, count: int, limit: int):
        super().__init__(
            "alipay:refund:batch_too_large",
            f"退款总笔数不能超过{limit}笔",
            {"count": count, "limit": limit}
        )


class GatewayError(AlipayError):
    """支付宝网关返回非 200 响应"""

    def __init__(self, status_code: int, body: str):
        super().__init__(
            "alipay:gateway:bad_response",
            f"bad response from alipay: {body}",
            {"status_code": status_code, "body": body}
        )


class DecryptionFailed(AlipayError):
    """RSA 分段解密失败"""

    def __init__(self, block_index: int):
        super().__init__(
            "alipay:crypto:decryption_failed",
            f"RSA 解密第 {block_index} 段失败",
            {"block_index": block_index}
        )


class AuthorizationFailed(AlipayError):
    """手机网站支付授权（获取 request_token）被拒绝"""

    def __init__(self, detail: str):
        super().__init__(
            "alipay:wap:authorization_failed",
            detail,
            {"detail": detail}
        )
