"""
支付宝对接配置管理模块
从环境变量加载商户身份、密钥与回调地址
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .models.schemas import SigningIdentity

# 加载 .env 文件
load_dotenv()


def _read_key(content: str, file_path: str) -> Optional[str]:
    """读取密钥：优先使用环境变量中的内容，其次读取文件"""
    if content:
        return content
    if file_path:
        return Path(file_path).read_text(encoding='utf-8')
    return None


class Settings:
    """应用配置类"""

    def __init__(self):
        # 商户身份
        self.ALIPAY_PARTNER: str = os.getenv("ALIPAY_PARTNER", "")
        self.ALIPAY_SELLER: str = os.getenv("ALIPAY_SELLER", "") or self.ALIPAY_PARTNER
        self.ALIPAY_SECURE_KEY: str = os.getenv("ALIPAY_SECURE_KEY", "")

        # RSA 密钥（内容或文件路径）
        self.ALIPAY_PRIVATE_KEY: str = os.getenv("ALIPAY_PRIVATE_KEY", "")
        self.ALIPAY_PRIVATE_KEY_FILE: str = os.getenv("ALIPAY_PRIVATE_KEY_FILE", "")
        self.ALIPAY_PUBLIC_KEY: str = os.getenv("ALIPAY_PUBLIC_KEY", "")
        self.ALIPAY_PUBLIC_KEY_FILE: str = os.getenv("ALIPAY_PUBLIC_KEY_FILE", "")

        # 异步通知地址
        self.ALIPAY_NOTIFY_URL: str = os.getenv("ALIPAY_NOTIFY_URL", "")
        self.ALIPAY_REFUND_NOTIFY_URL: str = os.getenv("ALIPAY_REFUND_NOTIFY_URL", "")

        # 手机网站支付
        self.ALIPAY_WAP_SUCCESS_URL: str = os.getenv("ALIPAY_WAP_SUCCESS_URL", "")
        self.ALIPAY_WAP_ABORT_URL: str = os.getenv("ALIPAY_WAP_ABORT_URL", "")
        self.ALIPAY_WAP_SIGN_TYPE: str = os.getenv("ALIPAY_WAP_SIGN_TYPE", "0001")

        # 应用配置
        self.APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
        self.APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
        self.APP_DEBUG: bool = os.getenv("APP_DEBUG", "false").lower() == "true"
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def validate(self) -> list[str]:
        """验证必要配置是否已设置"""
        errors = []
        if not self.ALIPAY_PARTNER:
            errors.append("ALIPAY_PARTNER 未配置")
        if not self.ALIPAY_SECURE_KEY:
            errors.append("ALIPAY_SECURE_KEY 未配置")
        if not (self.ALIPAY_PRIVATE_KEY or self.ALIPAY_PRIVATE_KEY_FILE):
            errors.append("ALIPAY_PRIVATE_KEY 未配置")
        if not (self.ALIPAY_PUBLIC_KEY or self.ALIPAY_PUBLIC_KEY_FILE):
            errors.append("ALIPAY_PUBLIC_KEY 未配置")
        if not self.ALIPAY_NOTIFY_URL:
            errors.append("ALIPAY_NOTIFY_URL 未配置")
        if not self.ALIPAY_REFUND_NOTIFY_URL:
            errors.append("ALIPAY_REFUND_NOTIFY_URL 未配置")
        return errors

    def signing_identity(self) -> SigningIdentity:
        """加载密钥并构造商户签名身份"""
        return SigningIdentity(
            partner_id=self.ALIPAY_PARTNER,
            seller_id=self.ALIPAY_SELLER,
            private_key=_read_key(self.ALIPAY_PRIVATE_KEY, self.ALIPAY_PRIVATE_KEY_FILE),
            public_key=_read_key(self.ALIPAY_PUBLIC_KEY, self.ALIPAY_PUBLIC_KEY_FILE),
            secure_key=self.ALIPAY_SECURE_KEY or None,
        )


settings = Settings()
