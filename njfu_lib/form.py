import logging
from dataclasses import dataclass
from typing import Dict, List

from lxml import etree

from .errors import FormParseError

logger = logging.getLogger(__name__)

# 字段名 -> 提取规则。属性顺序不影响 XPath 匹配, 多处命中时取第一个。
FIELD_RULES: Dict[str, str] = {
    "lt": '//input[@name="lt"]/@value',
    "salt": '//input[@id="pwdDefaultEncryptSalt"]/@value',
    "dllt": '//input[@name="dllt"]/@value',
    "execution": '//input[@name="execution"]/@value',
    "event_id": '//input[@name="_eventId"]/@value',
    "rm_shown": '//input[@name="rmShown"]/@value',
}


@dataclass(frozen=True)
class LoginFormFields:
    """统一认证登录页上的隐藏字段"""
    lt: str
    salt: str
    dllt: str
    execution: str
    event_id: str
    rm_shown: str


def extract_form_fields(html: str) -> LoginFormFields:
    """
    从 CAS 登录页 HTML 中提取登录所需的六个隐藏字段。

    六个字段缺一不可 (空值也算缺失), 任何一个缺失都会抛出 FormParseError,
    不会返回部分结果。

    参数:
        html (str): 登录页 HTML.

    返回:
        LoginFormFields

    异常:
        FormParseError: 页面为空、无法解析或缺少字段.
    """
    if not html or not html.strip():
        raise FormParseError(FIELD_RULES, "登录页为空")

    try:
        tree = etree.HTML(html)
    except (etree.ParserError, ValueError) as e:
        raise FormParseError(FIELD_RULES, f"登录页无法解析: {e}") from e
    if tree is None:
        raise FormParseError(FIELD_RULES, "登录页无法解析")

    values: Dict[str, str] = {}
    for name, rule in FIELD_RULES.items():
        matches = tree.xpath(rule)
        if matches and matches[0]:
            values[name] = str(matches[0])

    missing: List[str] = [name for name in FIELD_RULES if name not in values]
    if missing:
        logger.error(f"登录表单缺少字段: {missing}")
        raise FormParseError(missing)

    return LoginFormFields(**values)
