"""
请求参数规范化与签名

支付宝会按同样的规则重新拼接待签名字符串，因此拼接结果必须逐字节一致：
按 key 的字节序排序、不做任何转义、不加引号（除非调用方通过连接符自行添加）。
"""
import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional, Union

from ..models.schemas import SignatureContext, SigningIdentity, SignType
from .rsa_utils import DEFAULT_BLOCK_SIZE, rsa_decrypt, rsa_sign, rsa_verify

logger = logging.getLogger(__name__)


def to_text(value: Any) -> str:
    """将参数值转为字符串，None 视为空串，整数值的浮点数不带小数部分"""
    if value is None:
        return ''
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def canonicalize(
    params: Mapping[str, Any],
    in_glue: str = '=',
    out_glue: str = '&',
    drop_empty: bool = False,
    sort: bool = True
) -> str:
    """
    拼接待签名字符串

    Args:
        params: 参数字典
        in_glue: key 与 value 之间的连接符
        out_glue: 参数之间的连接符
        drop_empty: 是否去掉空值参数
        sort: 是否按 key 排序；为 False 时保持传入顺序

    Returns:
        key<in_glue>value<out_glue>... 形式的字符串（末尾无 out_glue）
    """
    items = [
        (key, to_text(value)) for key, value in params.items()
        if not (drop_empty and to_text(value) == '')
    ]
    if sort:
        items.sort(key=lambda item: item[0].encode('utf-8'))
    return out_glue.join(f'{key}{in_glue}{value}' for key, value in items)


class RsaSigner:
    """SHA1WithRSA：商户私钥签名，支付宝公钥验签"""

    algorithm = SignType.RSA

    def __init__(self, identity: SigningIdentity):
        self._private_key = identity.private_key
        self._public_key = identity.public_key

    def sign(self, text: str) -> str:
        if not self._private_key:
            raise ValueError('需要配置商户私钥才能进行 RSA 签名')
        return rsa_sign(text, self._private_key)

    def verify(self, text: str, signature: Optional[str]) -> bool:
        if not self._public_key:
            logger.warning("未配置支付宝公钥，RSA 验签视为失败")
            return False
        if not signature:
            return False
        return rsa_verify(text, signature, self._public_key)


class Md5Signer:
    """MD5：md5(待签名字符串 + 安全校验码)，结果为十六进制小写"""

    algorithm = SignType.MD5

    def __init__(self, identity: SigningIdentity):
        self._secure_key = identity.secure_key

    def sign(self, text: str) -> str:
        if not self._secure_key:
            raise ValueError('需要配置安全校验码才能进行 MD5 签名')
        return hashlib.md5((text + self._secure_key).encode('utf-8')).hexdigest()

    def verify(self, text: str, signature: Optional[str]) -> bool:
        if not self._secure_key:
            logger.warning("未配置安全校验码，MD5 验签视为失败")
            return False
        if not signature:
            return False
        return hmac.compare_digest(self.sign(text).encode('utf-8'), signature.encode('utf-8'))


class SignatureEngine:
    """按签名类型分派到对应的签名器"""

    def __init__(self, identity: SigningIdentity):
        self.identity = identity
        self._signers = {
            SignType.RSA: RsaSigner(identity),
            SignType.MD5: Md5Signer(identity),
        }

    def signer_for(self, sign_type: Union[SignType, str]):
        return self._signers[SignType.from_tag(sign_type)]

    def sign(self, text: str, sign_type: Union[SignType, str] = SignType.RSA) -> str:
        """对文本签名，未知签名类型抛出 UnsupportedSignatureAlgorithm"""
        return self.signer_for(sign_type).sign(text)

    def verify(self, text: str, signature: Optional[str],
               sign_type: Union[SignType, str] = SignType.RSA) -> bool:
        """验签失败返回 False，未知签名类型抛出 UnsupportedSignatureAlgorithm"""
        return self.signer_for(sign_type).verify(text, signature)

    def verify_context(self, context: SignatureContext) -> bool:
        return self.verify(context.text, context.signature, context.algorithm)

    def decrypt(self, cipher_text: str, block_size: int = DEFAULT_BLOCK_SIZE) -> str:
        """商户私钥分段解密（手机网站支付异步通知的 notify_data）"""
        if not self.identity.private_key:
            raise ValueError('需要配置商户私钥才能解密')
        return rsa_decrypt(cipher_text, self.identity.private_key, block_size)
