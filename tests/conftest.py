"""
测试共享夹具：商户/支付宝两对 RSA 密钥、签名身份、模拟网关
"""
import base64
import hashlib
import urllib.parse
from datetime import datetime

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from alipay_gateway.models.schemas import SigningIdentity
from alipay_gateway.services.signature import canonicalize

PARTNER = '2088701892019087'
SELLER = 'alipay@homer.com'
SECURE_KEY = 'cwygc4fpvwevu45m2jnh43w54vir9eqw'
NOTIFY_URL = 'http://localhost/trade.php'
REFUND_NOTIFY_URL = 'http://localhost/refund.php'
FIXED_NOW = datetime(2024, 5, 1, 12, 30, 45, 123456)


def _private_pem(key) -> str:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption()
    ).decode('ascii')


def _public_pem(key) -> str:
    return key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('ascii')


@pytest.fixture(scope='session')
def merchant_key():
    """商户密钥（1024 位，密文分段为 128 字节）"""
    return rsa.generate_private_key(public_exponent=65537, key_size=1024)


@pytest.fixture(scope='session')
def alipay_key():
    """模拟支付宝一方的密钥"""
    return rsa.generate_private_key(public_exponent=65537, key_size=1024)


@pytest.fixture(scope='session')
def identity(merchant_key, alipay_key):
    return SigningIdentity(
        partner_id=PARTNER,
        seller_id=SELLER,
        private_key=_private_pem(merchant_key),
        public_key=_public_pem(alipay_key),
        secure_key=SECURE_KEY,
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sign_as_alipay(alipay_key):
    """以支付宝身份对通知签名，返回带 sign 的新字典"""
    def sign(fields, sign_type_key='sign_type', keep_sign_type=False, sort=True):
        working = dict(fields)
        if not keep_sign_type:
            working.pop(sign_type_key, None)
        text = canonicalize(working, sort=sort)
        if fields[sign_type_key] == 'MD5':
            signature = hashlib.md5((text + SECURE_KEY).encode('utf-8')).hexdigest()
        else:
            raw = alipay_key.sign(text.encode('utf-8'), padding.PKCS1v15(), hashes.SHA1())
            signature = base64.b64encode(raw).decode('ascii')
        signed = dict(fields)
        signed['sign'] = signature
        return signed
    return sign


@pytest.fixture
def verify_as_alipay(merchant_key):
    """以支付宝身份校验商户签名"""
    def verify(text, signature):
        merchant_key.public_key().verify(
            base64.b64decode(signature),
            text.encode('utf-8'),
            padding.PKCS1v15(),
            hashes.SHA1()
        )
        return True
    return verify


@pytest.fixture
def encrypt_for_merchant(merchant_key):
    """支付宝使用商户公钥分段加密（每段明文 117 字节）"""
    def encrypt(plain_text):
        data = plain_text.encode('utf-8')
        public_key = merchant_key.public_key()
        cipher = b''.join(
            public_key.encrypt(data[offset:offset + 117], padding.PKCS1v15())
            for offset in range(0, len(data), 117)
        )
        return base64.b64encode(cipher).decode('ascii')
    return encrypt


class FakeGateway:
    """记录请求并返回预设响应的模拟网关"""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.body = ''

    def reply(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.body.encode('utf-8'))

    @property
    def last_form(self):
        return dict(urllib.parse.parse_qsl(self.requests[-1].content.decode('utf-8'),
                                           keep_blank_values=True))

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def gateway():
    return FakeGateway()
