"""支付宝 XML 报文解析"""
import xml.etree.ElementTree as ET
from typing import Dict, Union


def xml_fields(document: Union[str, bytes]) -> Dict[str, str]:
    """取根节点下各直接子节点的文本，如 <alipay><is_success>T</is_success></alipay>"""
    if isinstance(document, str):
        document = document.encode('utf-8')
    root = ET.fromstring(document)
    return {child.tag: (child.text or '').strip() for child in root}
