"""
回调处理路由
接收支付宝交易/退款结果通知，响应体必须为 success 或 fail
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ..exceptions import AlipayError
from ..services import AlipayClient, AlipayWapClient, get_alipay_client, get_alipay_wap_client
from ..services.notification import ACK_FAIL, RefundCallback, TradeCallback

logger = logging.getLogger(__name__)


async def _form_params(request: Request) -> Dict[str, str]:
    form_data = await request.form()
    return {k: v for k, v in form_data.items()}


def _rejected(kind: str, error: AlipayError) -> PlainTextResponse:
    logger.warning(f"{kind}处理失败: {error.error_code} {error.message}")
    return PlainTextResponse(ACK_FAIL, status_code=400)


def _failed(kind: str, error: Exception) -> PlainTextResponse:
    logger.error(f"处理{kind}异常: {error!r}")
    return PlainTextResponse(ACK_FAIL, status_code=500)


def create_callback_router(on_trade_paid: TradeCallback, on_refund: RefundCallback) -> APIRouter:
    """
    创建回调路由

    Args:
        on_trade_paid: 交易付款成功/完成时的业务处理，返回真值表示处理成功
        on_refund: 退款结果的业务处理，返回真值表示处理成功
    """
    router = APIRouter(prefix="/callback", tags=["回调处理"])

    @router.post("/trade", response_class=PlainTextResponse)
    async def trade_callback(request: Request, client: AlipayClient = Depends(get_alipay_client)):
        """移动支付交易状态异步通知"""
        params = await _form_params(request)
        logger.info(f"收到交易通知: out_trade_no={params.get('out_trade_no')}, "
                    f"trade_status={params.get('trade_status')}")
        try:
            ack = client.trade_updated(params, on_trade_paid)
        except AlipayError as e:
            return _rejected("交易通知", e)
        except Exception as e:
            return _failed("交易通知", e)
        # 忽略的状态不作应答
        return PlainTextResponse(ack or "")

    @router.post("/refund", response_class=PlainTextResponse)
    async def refund_callback(request: Request, client: AlipayClient = Depends(get_alipay_client)):
        """退款结果异步通知"""
        params = await _form_params(request)
        logger.info(f"收到退款通知: batch_no={params.get('batch_no')}")
        try:
            ack = client.refund_trade_updated(params, on_refund)
        except AlipayError as e:
            return _rejected("退款通知", e)
        except Exception as e:
            return _failed("退款通知", e)
        return PlainTextResponse(ack)

    @router.post("/wap/trade", response_class=PlainTextResponse)
    async def wap_trade_callback(request: Request,
                                 client: AlipayWapClient = Depends(get_alipay_wap_client)):
        """手机网站支付交易状态异步通知"""
        params = await _form_params(request)
        logger.info(f"收到手机网站支付通知: service={params.get('service')}")
        try:
            ack = client.trade_updated(params, on_trade_paid)
        except AlipayError as e:
            return _rejected("手机网站支付通知", e)
        except Exception as e:
            return _failed("手机网站支付通知", e)
        return PlainTextResponse(ack or "")

    @router.get("/wap/return")
    async def wap_return(request: Request, client: AlipayWapClient = Depends(get_alipay_wap_client)):
        """手机网站支付同步返回（success_url）"""
        params = dict(request.query_params)
        try:
            result = client.trade_paid(params)
        except AlipayError as e:
            logger.warning(f"同步返回验签失败: {e.error_code}")
            return JSONResponse(e.to_dict(), status_code=400)
        logger.info(f"同步返回: order_no={result.order_no}, status={result.status}")
        return result.model_dump()

    return router
