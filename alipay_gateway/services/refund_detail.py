"""
退款明细编码与批次号生成

明细格式（支付宝按位置解析，分隔符不可更改）：
    原付款支付宝交易号^退款总金额^退款理由
    [|转出人账号^转出人用户ID^转入人账号^转入人用户ID^退款金额^退款理由]...
    [$$子交易退款金额^退款理由]
多笔交易之间以 # 连接。
"""
import random
from datetime import datetime
from typing import Iterable

from ..models.schemas import ProfitSplit, RefundItem
from .signature import to_text

REFUND_BATCH_LIMIT = 1000


def format_profit_split(split: ProfitSplit, default_reason: str) -> str:
    """分润退款数据，理由缺省时沿用交易退款理由"""
    return '^'.join([
        split.from_account,
        split.from_user_id,
        split.to_account,
        split.to_user_id,
        to_text(split.amount),
        split.reason or default_reason,
    ])


def format_refund_detail(item: RefundItem) -> str:
    detail = '^'.join([item.trade_no, to_text(item.fee), item.reason])

    for split in item.profit_splits:
        detail += '|' + format_profit_split(split, item.reason)

    if item.sub_refund is not None:
        detail += '$$' + '^'.join([
            to_text(item.sub_refund.fee),
            item.sub_refund.reason or item.reason,
        ])

    return detail


def encode_refund_details(items: Iterable[RefundItem]) -> str:
    return '#'.join(format_refund_detail(item) for item in items)


def uniqid(now: datetime) -> str:
    """基于时间的 13 位十六进制片段：秒 8 位 + 微秒 5 位"""
    return '%08x%05x' % (int(now.timestamp()), now.microsecond)


def random_suffix() -> str:
    """[1, 99999] 之间的随机数，左侧补 0 至 5 位"""
    return str(random.randint(1, 99999)).zfill(5)


def generate_batch_no(now: datetime) -> str:
    """
    生成退款批次号

    支付宝要求：退款日期(8位) + 流水号(3~24位，不能是 000)。
    这里使用 14 位日期时间 + 13 位时间片段 + 5 位随机数，只保证尽量不重复。
    """
    return now.strftime('%Y%m%d%H%M%S') + uniqid(now) + random_suffix()
