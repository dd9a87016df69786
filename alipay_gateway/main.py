"""
支付宝对接 - FastAPI 应用入口
接收支付宝异步通知并应答
"""
import logging

from fastapi import FastAPI

from .config import settings
from .models.schemas import RefundNotification, Trade
from .routers import create_callback_router

# 配置日志
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def log_trade(trade: Trade) -> bool:
    """默认交易处理：仅记录日志"""
    logger.info(f"订单 {trade.order_no} 支付完成: trade_no={trade.trade_no}, "
                f"fee={trade.fee}, status={trade.status.value}")
    return True


def log_refund(refund: RefundNotification) -> bool:
    """默认退款处理：仅记录日志"""
    for detail in refund.details:
        logger.info(f"退款批次 {refund.batch_no}: trade_no={detail.trade_no}, "
                    f"fee={detail.fee}, status={detail.status}")
    return True


# 创建 FastAPI 应用
app = FastAPI(
    title="Alipay Gateway",
    description="支付宝通知验签与应答服务",
    version="1.0.0"
)

# 注册路由
app.include_router(create_callback_router(log_trade, log_refund))


@app.get("/health")
async def health_check():
    """健康检查"""
    errors = settings.validate()
    return {
        "status": "ok" if not errors else "warning",
        "config_errors": errors,
    }


@app.on_event("startup")
async def startup_event():
    """应用启动事件"""
    errors = settings.validate()
    if errors:
        logger.warning(f"配置警告: {errors}")
    else:
        logger.info("支付宝通知服务启动成功")
        logger.info(f"交易通知地址: {settings.ALIPAY_NOTIFY_URL}")
        logger.info(f"退款通知地址: {settings.ALIPAY_REFUND_NOTIFY_URL}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "alipay_gateway.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_DEBUG
    )
