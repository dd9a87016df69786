"""
支付宝通知验签与解析

所有通知先验签、再解析为类型化结果，最后才交给业务回调；
验签失败或状态无法识别时直接抛出异常，业务回调不会被调用。
"""
import logging
from typing import Any, Callable, Mapping, Optional

from ..exceptions import ForgedNotification, SignatureVerificationFailed, UnknownTradeStatus
from ..models.schemas import (
    RefundDetail,
    RefundNotification,
    SignatureContext,
    SignType,
    Trade,
    TradeStatus,
)
from .signature import SignatureEngine, canonicalize
from .xml_utils import xml_fields

logger = logging.getLogger(__name__)

# 异步通知的响应内容必须是以下之一，否则支付宝会重复推送
ACK_SUCCESS = 'success'
ACK_FAIL = 'fail'

PAID_STATUSES = (TradeStatus.TRADE_SUCCESS, TradeStatus.TRADE_FINISHED)
IGNORED_STATUSES = (TradeStatus.WAIT_BUYER_PAY, TradeStatus.TRADE_CLOSED)

TradeCallback = Callable[[Trade], Any]
RefundCallback = Callable[[RefundNotification], Any]


def acknowledgement(handled: Any) -> str:
    return ACK_SUCCESS if handled else ACK_FAIL


class NotificationInterpreter:
    """通知验签与解析"""

    def __init__(self, engine: SignatureEngine):
        self.engine = engine

    def ensure_authentic(
        self,
        fields: Mapping[str, Any],
        sign_type_key: str = 'sign_type',
        signature_key: str = 'sign',
        keep_sign_type: bool = False,
        sort: bool = True
    ) -> SignatureContext:
        """
        确认通知来自支付宝

        Args:
            fields: 通知参数
            sign_type_key: 签名类型参数名（SDK 为 sign_type，手机网站支付为 sec_id）
            signature_key: 签名参数名
            keep_sign_type: 签名类型参数是否参与验签
            sort: 是否按 key 排序后再拼接

        Returns:
            本次验签的上下文

        Raises:
            ForgedNotification: 缺少签名类型参数
            UnsupportedSignatureAlgorithm: 签名类型无法识别
            SignatureVerificationFailed: 签名不匹配
        """
        if sign_type_key not in fields:
            logger.warning(f"通知缺少 {sign_type_key}，视为伪造")
            raise ForgedNotification(sign_type_key)

        working = dict(fields)
        sign_type = working[sign_type_key]
        signature = working.pop(signature_key, None)
        if not keep_sign_type:
            working.pop(sign_type_key, None)

        context = SignatureContext(
            algorithm=SignType.from_tag(sign_type),
            signature=signature,
            text=canonicalize(working, sort=sort),
        )
        if not self.engine.verify_context(context):
            logger.warning(f"通知验签失败: sign_type={sign_type}")
            raise SignatureVerificationFailed(sign_type)
        return context

    # ==================== 交易通知 ====================

    @staticmethod
    def build_trade(order_no: str, status: str, trade_no: str, fee: Any,
                    creation_time: Optional[str] = None,
                    payment_time: Optional[str] = None,
                    notify_time: Optional[str] = None) -> Trade:
        try:
            trade_status = TradeStatus(status)
        except ValueError:
            raise UnknownTradeStatus(order_no, status)

        return Trade(
            order_no=order_no,
            trade_no=trade_no,
            status=trade_status,
            fee=None if fee == '' else fee,
            creation_time=creation_time,
            payment_time=payment_time,
            notify_time=notify_time,
        )

    def parse_trade(self, fields: Mapping[str, Any]) -> Trade:
        """解析即时到账/移动支付的异步通知"""
        return self.build_trade(
            order_no=fields.get('out_trade_no', ''),
            status=fields.get('trade_status', ''),
            trade_no=fields.get('trade_no', ''),
            fee=fields.get('total_fee'),
            creation_time=fields.get('gmt_create'),
            payment_time=fields.get('gmt_payment'),
            notify_time=fields.get('notify_time'),
        )

    def parse_wap_trade(self, notify_data: str) -> Trade:
        """解析手机网站支付通知中解密后的 notify_data"""
        data = xml_fields(notify_data)
        return self.build_trade(
            order_no=data.get('out_trade_no', ''),
            status=data.get('trade_status', ''),
            trade_no=data.get('trade_no', ''),
            fee=data.get('total_fee'),
            creation_time=data.get('gmt_create'),
            payment_time=data.get('gmt_payment'),
            notify_time=data.get('notify_time'),
        )

    @staticmethod
    def acknowledge_trade(trade: Trade, callback: TradeCallback) -> Optional[str]:
        """
        按交易状态决定是否回调业务

        TRADE_SUCCESS  -- 付款完成，交易尚未结束（仍可退款）
        TRADE_FINISHED -- 交易结束，总在 TRADE_SUCCESS 之后
        以上两种状态调用回调并返回 success/fail。
        WAIT_BUYER_PAY、TRADE_CLOSED 在默认通知配置下不会推送，收到时忽略，返回 None。
        """
        if trade.status in PAID_STATUSES:
            ack = acknowledgement(callback(trade))
            logger.info(f"交易通知已处理: order_no={trade.order_no}, status={trade.status.value}, ack={ack}")
            return ack

        logger.info(f"忽略交易通知: order_no={trade.order_no}, status={trade.status.value}")
        return None

    def handle_trade_update(self, fields: Mapping[str, Any], callback: TradeCallback) -> Optional[str]:
        self.ensure_authentic(fields)
        return self.acknowledge_trade(self.parse_trade(fields), callback)

    # ==================== 退款通知 ====================

    @staticmethod
    def parse_refund_detail(detail: str) -> RefundDetail:
        # 只取交易退款部分，忽略其后的分润(|)与子交易($)结果
        main = detail.split('|', 1)[0].split('$', 1)[0]
        tokens = main.split('^')
        if len(tokens) < 3:
            raise ValueError(f"退款明细格式错误: {detail}")

        status = tokens[2]
        return RefundDetail(
            trade_no=tokens[0],
            fee=tokens[1],
            status='REFUND_SUCCESS' if status == 'SUCCESS' else status,
        )

    def parse_refund(self, fields: Mapping[str, Any]) -> RefundNotification:
        details = [
            self.parse_refund_detail(detail)
            for detail in (fields.get('result_details') or '').split('#')
            if detail
        ]
        return RefundNotification(
            batch_no=fields.get('batch_no', ''),
            notify_time=fields.get('notify_time'),
            details=details,
        )

    def handle_refund_update(self, fields: Mapping[str, Any], callback: RefundCallback) -> str:
        self.ensure_authentic(fields)
        refund = self.parse_refund(fields)
        ack = acknowledgement(callback(refund))
        logger.info(f"退款通知已处理: batch_no={refund.batch_no}, details={len(refund.details)}, ack={ack}")
        return ack
