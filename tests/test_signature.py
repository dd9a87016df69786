"""
Tests for canonicalization, signing and decryption
"""
import base64
import hashlib

import pytest
from cryptography.hazmat.primitives.asymmetric import padding

from alipay_gateway.exceptions import DecryptionFailed, UnsupportedSignatureAlgorithm
from alipay_gateway.models.schemas import SignType
from alipay_gateway.services.signature import SignatureEngine, canonicalize, to_text

from conftest import SECURE_KEY


# ============== canonicalize ==============

class TestCanonicalize:

    def test_sorts_keys_by_byte_value(self):
        assert canonicalize({'b': '2', 'a': '1', 'B': '3', '_c': '4'}) == 'B=3&_c=4&a=1&b=2'

    def test_values_are_not_escaped(self):
        params = {'subject': 'a&b=c', 'body': ' ', 'name': '中文'}
        assert canonicalize(params) == 'body= &name=中文&subject=a&b=c'

    def test_drop_empty(self):
        params = {'a': '1', 'b': '', 'c': None, 'd': ' '}
        assert canonicalize(params, drop_empty=True) == 'a=1&d= '
        assert canonicalize(params) == 'a=1&b=&c=&d= '

    def test_keeps_insertion_order_without_sort(self):
        params = {'service': 's', 'v': '1.0', 'sec_id': '0001', 'notify_data': '<x/>'}
        assert canonicalize(params, sort=False) == 'service=s&v=1.0&sec_id=0001&notify_data=<x/>'

    def test_quoted_glue(self):
        text = canonicalize({'b': '2', 'a': '1'}, '="', '"&') + '"'
        assert text == 'a="1"&b="2"'

    def test_empty_mapping(self):
        assert canonicalize({}) == ''

    def test_number_rendering(self):
        assert to_text(100) == '100'
        assert to_text(100.0) == '100'
        assert to_text(0.01) == '0.01'
        assert to_text(None) == ''


# ============== SignatureEngine ==============

class TestSignatureEngine:

    @pytest.fixture
    def engine(self, identity):
        return SignatureEngine(identity)

    def test_md5_sign_appends_secure_key(self, engine):
        text = 'a=1&b=2'
        expected = hashlib.md5((text + SECURE_KEY).encode('utf-8')).hexdigest()
        assert engine.sign(text, 'MD5') == expected
        assert engine.verify(text, expected, SignType.MD5)

    def test_md5_rejects_mutation(self, engine):
        signature = engine.sign('a=1&b=2', 'MD5')
        assert not engine.verify('a=1&b=3', signature, 'MD5')
        assert not engine.verify('a=1&b=2', signature[:-1] + ('0' if signature[-1] != '0' else '1'), 'MD5')

    def test_rsa_sign_is_base64(self, engine):
        signature = engine.sign('a=1&b=2', 'RSA')
        assert len(base64.b64decode(signature)) == 128

    def test_rsa_sign_verifies_with_merchant_key(self, engine, verify_as_alipay):
        text = '_input_charset=utf-8&partner=2088701892019087'
        assert verify_as_alipay(text, engine.sign(text, SignType.RSA))

    def test_rsa_verify_gateway_signature(self, engine, sign_as_alipay):
        fields = sign_as_alipay({'a': '1', 'sign_type': 'RSA'})
        assert engine.verify('a=1', fields['sign'], 'RSA')
        assert engine.verify('a=1', fields['sign'], '0001')
        assert not engine.verify('a=2', fields['sign'], 'RSA')

    def test_rsa_verify_fails_closed(self, engine):
        assert not engine.verify('a=1', 'not-base64!!', 'RSA')
        assert not engine.verify('a=1', '', 'RSA')
        assert not engine.verify('a=1', None, 'RSA')

    def test_rsa_rejects_mutated_signature(self, engine, sign_as_alipay):
        signature = sign_as_alipay({'a': '1', 'sign_type': 'RSA'})['sign']
        raw = bytearray(base64.b64decode(signature))
        raw[0] ^= 0x01
        assert not engine.verify('a=1', base64.b64encode(bytes(raw)).decode('ascii'), 'RSA')

    @pytest.mark.parametrize('sign_type', ['DSA', 'rsa', '', None])
    def test_unsupported_sign_type(self, engine, sign_type):
        with pytest.raises(UnsupportedSignatureAlgorithm):
            engine.sign('a=1', sign_type)
        with pytest.raises(UnsupportedSignatureAlgorithm):
            engine.verify('a=1', 'x', sign_type)

    def test_sign_requires_key_material(self):
        from alipay_gateway.models.schemas import SigningIdentity
        engine = SignatureEngine(SigningIdentity(partner_id='2088000000000000'))
        with pytest.raises(ValueError):
            engine.sign('a=1', 'RSA')
        with pytest.raises(ValueError):
            engine.sign('a=1', 'MD5')

    def test_verify_without_key_material_fails_closed(self):
        from alipay_gateway.models.schemas import SigningIdentity
        engine = SignatureEngine(SigningIdentity(partner_id='2088000000000000'))
        assert engine.verify('a=1', 'x', 'RSA') is False
        assert engine.verify('a=1', 'x', 'MD5') is False


# ============== decrypt ==============

class TestDecrypt:

    def test_decrypts_multiple_blocks(self, identity, encrypt_for_merchant):
        plain = '<notify>' + 'x' * 300 + '中文</notify>'
        engine = SignatureEngine(identity)
        assert engine.decrypt(encrypt_for_merchant(plain)) == plain

    def test_broken_block_aborts(self, identity, encrypt_for_merchant):
        cipher = base64.b64decode(encrypt_for_merchant('short payload'))
        broken = base64.b64encode(cipher + b'\x00' * 10).decode('ascii')

        with pytest.raises(DecryptionFailed) as exc_info:
            SignatureEngine(identity).decrypt(broken)
        assert exc_info.value.details['block_index'] == 1
        assert exc_info.value.error_code == 'alipay:crypto:decryption_failed'

    def test_non_utf8_plaintext(self, identity, merchant_key):
        cipher = merchant_key.public_key().encrypt(b'\xff\xfe\xfd', padding.PKCS1v15())

        with pytest.raises(DecryptionFailed) as exc_info:
            SignatureEngine(identity).decrypt(base64.b64encode(cipher).decode('ascii'))
        assert exc_info.value.details['block_index'] == 0
