"""
支付宝对接数据模型
使用 Pydantic 定义签名身份、交易、退款等类型
"""
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from ..exceptions import UnsupportedSignatureAlgorithm

DEFAULT_REFUND_REASON = "协商退款"


def _whole_float_to_int(value: Any) -> Any:
    # 100.0 按 100 提交，与下单参数的金额写法一致
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# 退款金额：字符串与 Decimal 保持原样，整数值的浮点数去掉小数部分
Amount = Annotated[Decimal, BeforeValidator(_whole_float_to_int)]


class SignType(str, Enum):
    """签名类型枚举"""
    RSA = "RSA"
    MD5 = "MD5"

    @classmethod
    def from_tag(cls, tag) -> "SignType":
        """解析签名类型标识（手机网站支付中 '0001' 等同于 'RSA'）"""
        if isinstance(tag, cls):
            return tag
        if tag in ("RSA", "0001"):
            return cls.RSA
        if tag == "MD5":
            return cls.MD5
        raise UnsupportedSignatureAlgorithm(tag)


class SigningIdentity(BaseModel):
    """商户签名身份，服务实例生命周期内不可变"""
    model_config = ConfigDict(frozen=True)

    partner_id: str                       # 合作者身份ID，2088 开头的 16 位数字
    seller_id: Optional[str] = None       # 卖家支付宝账号，缺省时使用 partner_id
    private_key: Optional[str] = None     # 商户 RSA 私钥（PEM 或 Base64 DER）
    public_key: Optional[str] = None      # 支付宝 RSA 公钥
    secure_key: Optional[str] = None      # MD5 安全校验码


class SignatureContext(BaseModel):
    """一次签名/验签所用的上下文"""
    model_config = ConfigDict(frozen=True)

    algorithm: SignType
    signature: Optional[str]
    text: str


class TradeStatus(str, Enum):
    """交易状态枚举"""
    WAIT_BUYER_PAY = "WAIT_BUYER_PAY"     # 交易创建，等待买家付款
    TRADE_SUCCESS = "TRADE_SUCCESS"       # 支付成功
    TRADE_FINISHED = "TRADE_FINISHED"     # 交易成功（不可再退款）
    TRADE_CLOSED = "TRADE_CLOSED"         # 交易关闭


class Trade(BaseModel):
    """经过验签的交易通知"""
    model_config = ConfigDict(frozen=True)

    order_no: str                         # 商户订单号
    trade_no: str                         # 支付宝交易号
    status: TradeStatus
    fee: Optional[Decimal] = None         # 关闭或等待付款的通知可能不带金额
    creation_time: Optional[str] = None
    payment_time: Optional[str] = None
    notify_time: Optional[str] = None


class ProfitSplit(BaseModel):
    """分润退款"""
    from_account: str                     # 转出人支付宝账号
    from_user_id: str                     # 转出人支付宝账号对应用户ID
    to_account: str                       # 转入人支付宝账号
    to_user_id: str                       # 转入人支付宝账号对应用户ID
    amount: Amount
    reason: Optional[str] = None          # 缺省时使用退款理由

    @classmethod
    def from_fields(cls, fields: Sequence[Any]) -> "ProfitSplit":
        """按位置构造：[转出账号, 转出用户ID, 转入账号, 转入用户ID, 金额(, 理由)]"""
        if len(fields) not in (5, 6):
            raise ValueError(f"分润退款数据应为 5 或 6 项，实际为 {len(fields)} 项")
        names = ('from_account', 'from_user_id', 'to_account', 'to_user_id', 'amount', 'reason')
        values = dict(zip(names, fields))
        for name in names[:4]:
            values[name] = str(values[name])
        return cls(**values)


class SubRefund(BaseModel):
    """子交易退款"""
    fee: Amount
    reason: Optional[str] = None


class RefundItem(BaseModel):
    """单笔交易退款"""
    trade_no: str
    fee: Amount
    reason: str = DEFAULT_REFUND_REASON
    sub_refund: Optional[SubRefund] = None
    profit_splits: List[ProfitSplit] = Field(default_factory=list)


class RefundStatus(str, Enum):
    """退款同步返回状态"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"                   # 处理中，结果以异步通知为准


class RefundResult(BaseModel):
    """退款请求结果"""
    status: RefundStatus
    message: Optional[str] = None         # 仅 FAILED 时有值
    batch_no: str


class RefundDetail(BaseModel):
    """退款通知中的单笔结果"""
    model_config = ConfigDict(frozen=True)

    trade_no: str
    fee: Decimal
    status: str                           # REFUND_SUCCESS 或支付宝返回的原始错误码


class RefundNotification(BaseModel):
    """退款异步通知"""
    model_config = ConfigDict(frozen=True)

    batch_no: str
    notify_time: Optional[str] = None
    details: List[RefundDetail]


class WapTradeForm(BaseModel):
    """手机网站支付表单：由浏览器提交到 form_action"""
    params: Dict[str, str]
    form_action: str


class WapPaymentResult(BaseModel):
    """手机网站支付同步返回"""
    trade_no: str
    order_no: str
    status: str                           # 目前只有 SUCCESS
    authorize_token: Optional[str] = None
