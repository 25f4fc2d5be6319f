import logging
import time
from datetime import datetime
from typing import Any, Dict, List

import httpx
from lxml import etree

from .client import proxy_cookie, send
from .config import BEIJING_TZ, TRAFFIC_URL
from .errors import AuthError, QueryError
from .session import Session

logger = logging.getLogger(__name__)

TOTAL_CAPACITY = 2749

# 页面上用 20px 大字显示"总座位"和"剩余座位"两个数字
_NUMBER_SPANS = '//span[contains(translate(@style, " ", ""), "font-size:20px")]/text()'


def parse_traffic_numbers(html: str) -> List[int]:
    if not html or not html.strip():
        return []
    tree = etree.HTML(html)
    if tree is None:
        return []
    return [int(text.strip()) for text in tree.xpath(_NUMBER_SPANS) if text.strip().isdigit()]


async def get_current_traffic(client: httpx.AsyncClient, session: Session) -> Dict[str, int]:
    """
    获取当前在馆人数。

    返回:
        dict: count / total / remaining / timestamp.

    异常:
        QueryError: 请求失败或页面结构变化.
    """
    try:
        response = await send(client, "GET", TRAFFIC_URL, headers=proxy_cookie(session.proxy_ticket))
    except AuthError as e:
        raise QueryError(f"获取流量数据失败: {e}") from e

    session.absorb_ticket(response)
    if not response.is_success:
        raise QueryError(f"流量监控：请求失败，状态码 {response.status_code}")

    numbers = parse_traffic_numbers(response.text)
    if len(numbers) < 2:
        raise QueryError("流量监控：页面结构解析失败，未找到足够的数字")

    # 大的是总座位数, 小的是剩余座位数
    total = max(numbers[0], numbers[1])
    remaining = min(numbers[0], numbers[1])
    count = total - remaining
    logger.info(f"流量监控：当前在馆人数 {count}/{total} (剩余{remaining})")

    return {
        "count": count,
        "total": total,
        "remaining": remaining,
        "timestamp": int(time.time()),
    }


async def get_traffic(client: httpx.AsyncClient, session: Session) -> Dict[str, Any]:
    traffic = await get_current_traffic(client, session)
    now = datetime.now(BEIJING_TZ)
    percentage = round(traffic["count"] / traffic["total"] * 100, 1) if traffic["total"] > 0 else 0.0

    return {
        "current_count": traffic["count"],
        "total_capacity": traffic["total"],
        "remaining": traffic["remaining"],
        "timestamp": traffic["timestamp"],
        "percentage": percentage,
        "time": now.strftime("%H:%M:%S"),
        "updated_at": now.strftime("%Y-%m-%d %H:%M:%S"),
    }
