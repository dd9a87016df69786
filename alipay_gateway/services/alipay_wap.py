"""
支付宝手机网站支付客户端

流程：
1. authorize_trade() 向支付宝申请授权，得到 request_token；
   prepare_trade() 据此生成表单参数，由浏览器提交到支付宝网关。
2. 用户付款成功后被重定向到 success_url，支付宝带回同步通知，由 trade_paid() 验签解析。
3. 交易状态变更时支付宝推送异步通知到 notify_url，由 trade_updated() 处理。
"""
import logging
import urllib.parse
from typing import Any, Mapping, Optional

from ..exceptions import AuthorizationFailed, ForgedNotification
from ..models.schemas import SignType, WapPaymentResult, WapTradeForm
from .alipay import BaseAlipayClient
from .notification import TradeCallback
from .refund_detail import uniqid
from .signature import canonicalize, to_text
from .xml_utils import xml_fields

logger = logging.getLogger(__name__)

GATEWAY_URL = 'http://wappaygw.alipay.com/service/rest.htm'


class AlipayWapClient(BaseAlipayClient):
    """支付宝手机网站支付客户端"""

    def __init__(
        self,
        identity,
        notify_url: Optional[str] = None,
        refund_notify_url: Optional[str] = None,
        success_url: Optional[str] = None,
        abort_url: Optional[str] = None,
        sign_type: str = '0001',
        **kwargs
    ):
        """
        Args:
            success_url: 支付成功后页面跳转地址（同步通知）
            abort_url: 用户中途放弃支付时的跳转地址
            sign_type: '0001' 表示 RSA，'MD5' 表示 MD5
        """
        super().__init__(identity, notify_url, refund_notify_url, **kwargs)
        SignType.from_tag(sign_type)
        self.success_url = success_url
        self.abort_url = abort_url
        self.sign_type = sign_type

    @classmethod
    def from_settings(cls, settings, **kwargs):
        return super().from_settings(
            settings,
            success_url=settings.ALIPAY_WAP_SUCCESS_URL or None,
            abort_url=settings.ALIPAY_WAP_ABORT_URL or None,
            sign_type=settings.ALIPAY_WAP_SIGN_TYPE,
            **kwargs
        )

    # ==================== 下单 ====================

    def authorize_trade(self, order_no: str, fee: Any, expiry: Optional[str] = None,
                        subject: str = ' ') -> str:
        """申请授权，返回 request_token"""
        request_data = (
            '<direct_trade_create_req>'
            f'<notify_url>{self.notify_url or ""}</notify_url>'
            f'<call_back_url>{self.success_url or ""}</call_back_url>'
            f'<seller_account_name>{self.seller}</seller_account_name>'
            f'<out_trade_no>{order_no}</out_trade_no>'
            f'<subject>{subject}</subject>'
            f'<total_fee>{to_text(fee)}</total_fee>'
            f'<merchant_url>{self.abort_url or ""}</merchant_url>'
            f'<pay_expire>{expiry or ""}</pay_expire>'
            '</direct_trade_create_req>'
        )

        now = self.clock()
        params = {
            '_input_charset': 'utf-8',
            'format': 'xml',
            'partner': self.partner,
            'req_data': request_data,
            'req_id': now.strftime('%Y%m%d%H%M%S') + uniqid(now),
            'sec_id': self.sign_type,
            'service': 'alipay.wap.trade.create.direct',
            'v': '2.0',
        }
        params['sign'] = self.sign_request(canonicalize(params), self.sign_type)

        response = self._post_form(GATEWAY_URL, params)
        return self.parse_authorize_response(response.text)

    def parse_authorize_response(self, body: str) -> str:
        """验签并解析授权返回，返回 request_token"""
        data = dict(urllib.parse.parse_qsl(body, keep_blank_values=True))
        if 'res_error' in data:
            detail = xml_fields(data['res_error']).get('detail', '')
            logger.warning(f"手机网站支付授权失败: {detail}")
            raise AuthorizationFailed(detail)

        self.notifications.ensure_authentic(data, 'sec_id')
        return xml_fields(data.get('res_data', '')).get('request_token', '')

    def prepare_trade(self, order_no: str, fee: Any, expiry: Optional[str] = None,
                      subject: str = ' ') -> WapTradeForm:
        """
        生成手机网站支付表单

        Args:
            order_no: 商户订单号
            fee: 金额（元），范围 [0.01, 100000000.00]
            expiry: 超时时间（分钟），默认 60，范围 [1, 21600]
            subject: 商品名称

        Returns:
            表单参数与提交地址
        """
        token = self.authorize_trade(order_no, fee, expiry, subject)

        request_data = (
            '<auth_and_execute_req>'
            f'<request_token>{token}</request_token>'
            '</auth_and_execute_req>'
        )
        params = {
            '_input_charset': 'utf-8',
            'format': 'xml',
            'partner': self.partner,
            'req_data': request_data,
            'sec_id': self.sign_type,
            'service': 'alipay.wap.auth.authAndExecute',
            'v': '2.0',
        }
        params['sign'] = self.sign_request(canonicalize(params), self.sign_type)

        return WapTradeForm(params=params, form_action=GATEWAY_URL)

    # ==================== 通知 ====================

    def trade_paid(self, notification: Mapping[str, Any]) -> WapPaymentResult:
        """
        同步通知：用户付款成功后跳转到 success_url 时调用

        通知中既没有 sign_type 也没有 sec_id 时，签名方式以本地配置为准。
        """
        notification = dict(notification)
        if 'sign_type' in notification:
            sign_type_key = 'sign_type'
        else:
            sign_type_key = 'sec_id'
            notification.setdefault('sec_id', self.sign_type)

        self.notifications.ensure_authentic(notification, sign_type_key)

        return WapPaymentResult(
            trade_no=notification.get('trade_no', ''),
            order_no=notification.get('out_trade_no', ''),
            status=notification.get('result', '').upper(),
            authorize_token=notification.get('request_token'),
        )

    def trade_updated(self, notification: Mapping[str, Any], callback: TradeCallback) -> Optional[str]:
        """
        异步通知：交易状态变更

        只有 service、v、sec_id、notify_data 参与验签，且顺序固定、不排序；
        RSA 方式下 notify_data 需先用商户私钥解密。
        """
        if 'sec_id' not in notification:
            raise ForgedNotification('sec_id')

        notify_data = notification.get('notify_data', '')
        if SignType.from_tag(notification['sec_id']) == SignType.RSA:
            notify_data = self.signature.decrypt(notify_data)

        # 键的顺序不可修改
        used = {
            'service': notification.get('service', ''),
            'v': notification.get('v', ''),
            'sec_id': notification['sec_id'],
            'notify_data': notify_data,
            'sign': notification.get('sign'),
        }
        self.notifications.ensure_authentic(used, 'sec_id', 'sign', keep_sign_type=True, sort=False)

        trade = self.notifications.parse_wap_trade(notify_data)
        return self.notifications.acknowledge_trade(trade, callback)
