"""
支付宝服务客户端
移动支付下单参数签名、交易/退款异步通知处理、批量无密退款
"""
import logging
import urllib.parse
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import httpx

from ..exceptions import BatchTooLarge, GatewayError, UnknownRefundStatus
from ..models.schemas import (
    DEFAULT_REFUND_REASON,
    ProfitSplit,
    RefundItem,
    RefundResult,
    RefundStatus,
    SigningIdentity,
    SignType,
    SubRefund,
)
from .notification import NotificationInterpreter, RefundCallback, TradeCallback
from .refund_detail import REFUND_BATCH_LIMIT, encode_refund_details, generate_batch_no
from .signature import SignatureEngine, canonicalize
from .xml_utils import xml_fields

logger = logging.getLogger(__name__)

REFUND_URL = 'https://mapi.alipay.com/gateway.do'

REFUND_REPLY_STATUS = {
    'T': RefundStatus.SUCCESS,
    'F': RefundStatus.FAILED,
    'P': RefundStatus.PENDING,
}


class BaseAlipayClient:
    """支付宝客户端基类：签名、验签与退款（同步版本）"""

    def __init__(
        self,
        identity: SigningIdentity,
        notify_url: Optional[str] = None,
        refund_notify_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] = datetime.now,
        batch_no_factory: Callable[[datetime], str] = generate_batch_no
    ):
        """
        初始化客户端

        Args:
            identity: 商户签名身份（合作者ID、卖家账号、密钥）
            notify_url: 交易状态变更的异步通知地址
            refund_notify_url: 退款结果的异步通知地址
            http_client: 发送请求用的 HTTP 客户端，超时等策略由它决定
            clock: 当前时间来源
            batch_no_factory: 退款批次号生成函数
        """
        self.identity = identity
        self.partner = identity.partner_id
        # 卖家账号缺省时使用合作者ID
        self.seller = identity.seller_id or identity.partner_id
        self.notify_url = notify_url
        self.refund_notify_url = refund_notify_url
        self.http_client = http_client or httpx.Client()
        self.clock = clock
        self.batch_no_factory = batch_no_factory
        self.signature = SignatureEngine(identity)
        self.notifications = NotificationInterpreter(self.signature)

    @classmethod
    def from_settings(cls, settings, **kwargs):
        """根据应用配置构造客户端"""
        return cls(
            settings.signing_identity(),
            notify_url=settings.ALIPAY_NOTIFY_URL or None,
            refund_notify_url=settings.ALIPAY_REFUND_NOTIFY_URL or None,
            **kwargs
        )

    def sign_request(self, request: str, sign_type: Union[SignType, str] = SignType.RSA) -> str:
        return self.signature.sign(request, sign_type)

    def _post_form(self, url: str, params: Mapping[str, str]) -> httpx.Response:
        response = self.http_client.post(url, data=dict(params))
        if response.status_code != 200:
            logger.warning(f"支付宝返回异常: status={response.status_code}")
            raise GatewayError(response.status_code, response.text)
        return response

    # ==================== 退款接口 ====================

    def refund_trades(
        self,
        items: Sequence[Union[RefundItem, Mapping[str, Any]]],
        batch_no: Optional[str] = None
    ) -> RefundResult:
        """
        批量退款（无密）

        Args:
            items: 退款明细，每项为 RefundItem 或同结构的字典
            batch_no: 退款批次号，缺省时自动生成

        Returns:
            退款结果，batch_no 用于匹配之后的异步退款通知

        Raises:
            BatchTooLarge: 超过 1000 笔
            GatewayError: 支付宝返回非 200
            UnknownRefundStatus: is_success 无法识别
        """
        items = [item if isinstance(item, RefundItem) else RefundItem.model_validate(item)
                 for item in items]
        if not items:
            raise ValueError('退款明细不能为空')
        if len(items) > REFUND_BATCH_LIMIT:
            raise BatchTooLarge(len(items), REFUND_BATCH_LIMIT)

        now = self.clock()
        batch_no = batch_no or self.batch_no_factory(now)

        params = {
            '_input_charset': 'utf-8',
            'batch_no': batch_no,
            'batch_num': str(len(items)),
            'detail_data': encode_refund_details(items),
            'notify_url': self.refund_notify_url,
            'partner': self.partner,
            'refund_date': now.strftime('%Y-%m-%d %H:%M:%S'),
            'return_type': 'xml',
            'service': 'refund_fastpay_by_platform_nopwd',
        }
        params = {key: value for key, value in params.items() if value}
        params['sign'] = self.sign_request(canonicalize(params), SignType.MD5)
        params['sign_type'] = SignType.MD5.value

        logger.info(f"提交退款: batch_no={batch_no}, batch_num={len(items)}")
        response = self._post_form(REFUND_URL, params)
        status, message = self.parse_refund_reply(response.content)
        logger.info(f"退款同步结果: batch_no={batch_no}, status={status.value}, message={message}")

        return RefundResult(status=status, message=message, batch_no=batch_no)

    def refund_trade(
        self,
        trade_no: str,
        fee: Any,
        reason: str = DEFAULT_REFUND_REASON,
        sub_refund: Union[SubRefund, Any, None] = None,
        profit_splits: Optional[Sequence[Union[ProfitSplit, Sequence[Any]]]] = None,
        batch_no: Optional[str] = None
    ) -> RefundResult:
        """
        单笔交易退款

        Args:
            trade_no: 支付宝交易号
            fee: 退款总金额
            reason: 退款理由
            sub_refund: 子交易退款，SubRefund 或仅金额
            profit_splits: 分润退款，ProfitSplit 或 5~6 项的序列
            batch_no: 退款批次号
        """
        if sub_refund is not None and not isinstance(sub_refund, SubRefund):
            sub_refund = SubRefund(fee=sub_refund)
        splits = [split if isinstance(split, ProfitSplit) else ProfitSplit.from_fields(split)
                  for split in (profit_splits or [])]

        item = RefundItem(trade_no=trade_no, fee=fee, reason=reason,
                          sub_refund=sub_refund, profit_splits=splits)
        return self.refund_trades([item], batch_no=batch_no)

    @staticmethod
    def parse_refund_reply(body: Union[str, bytes]) -> Tuple[RefundStatus, Optional[str]]:
        """解析退款同步返回的 XML，缺少 is_success 时视为处理中"""
        data: Dict[str, str] = xml_fields(body)
        status = RefundStatus.PENDING
        if 'is_success' in data:
            try:
                status = REFUND_REPLY_STATUS[data['is_success']]
            except KeyError:
                raise UnknownRefundStatus(data['is_success'])

        message = data.get('error') if status == RefundStatus.FAILED else None
        return status, message

    def refund_trade_updated(self, notification: Mapping[str, Any], callback: RefundCallback) -> str:
        """
        退款结果异步通知

        callback 接收 RefundNotification，明细状态 SUCCESS 已转换为 REFUND_SUCCESS；
        返回 success 或 fail。
        """
        return self.notifications.handle_refund_update(notification, callback)


class AlipayClient(BaseAlipayClient):
    """支付宝移动支付客户端"""

    def prepare_trade(
        self,
        order_no: str,
        fee: Any,
        subject: str = ' ',
        description: str = ' ',
        payment_type: str = '1',
        expiry: Optional[str] = None,
        access_token: Optional[str] = None
    ) -> str:
        """
        生成移动支付 SDK 所需的签名请求串

        Args:
            order_no: 商户订单号，不超过 64 位，不足 10 位左侧补 0
            fee: 金额（元），范围 [0.01, 100000000.00]
            subject: 商品名称，不超过 128 字
            description: 商品描述
            payment_type: 支付类型，'1' 为商品购买
            expiry: 未付款交易的超时时间，如 '30m'、'1h'、'15d'、'1c'
            access_token: 支付宝返回的授权令牌

        Returns:
            key="value"&... 形式的请求串，末尾附 sign 与 sign_type
        """
        params = {
            '_input_charset': 'utf-8',
            'body': description,
            'extern_token': access_token,
            'it_b_pay': expiry,
            'notify_url': self.notify_url,
            'out_trade_no': str(order_no).rjust(10, '0'),
            'partner': self.partner,
            'payment_type': payment_type,
            'seller_id': self.seller,
            'service': 'mobile.securitypay.pay',
            'subject': subject,
            'total_fee': fee,
        }

        # 所有值都需要用双引号括起来
        request = canonicalize(params, '="', '"&', drop_empty=True) + '"'
        sign = urllib.parse.quote_plus(self.sign_request(request, SignType.RSA), safe='')
        return f'{request}&sign="{sign}"&sign_type="RSA"'

    def trade_updated(self, notification: Mapping[str, Any], callback: TradeCallback) -> Optional[str]:
        """
        交易状态异步通知

        TRADE_SUCCESS / TRADE_FINISHED 时调用 callback(trade)，返回值为真时应答 success，
        否则应答 fail；WAIT_BUYER_PAY / TRADE_CLOSED 不调用回调，返回 None。

        Raises:
            AlipayError: 验签失败或交易状态无法识别
        """
        return self.notifications.handle_trade_update(notification, callback)

