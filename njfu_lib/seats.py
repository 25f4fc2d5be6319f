import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from .client import send
from .config import BEIJING_TZ, LIB_VPN_PARAM, WEBVPN_HOST, date_string, lib_url
from .errors import AuthError, QueryError
from .session import Session

logger = logging.getLogger(__name__)

RESERVE_URL = lib_url("ic-web/reserve")

# 区域名 -> 房间配置
AREAS: Dict[str, Dict[str, Any]] = {
    "二层A区": {"roomId": 100455344, "floor": 2, "area": "A"},
    "二层B区": {"roomId": 100455346, "floor": 2, "area": "B"},
    "三层A区": {"roomId": 100455350, "floor": 3, "area": "A"},
    "三层B区": {"roomId": 100455352, "floor": 3, "area": "B"},
    "三层C区": {"roomId": 100455354, "floor": 3, "area": "C"},
    "三楼夹层": {"roomId": 111488386, "floor": 3, "area": "夹层"},
    "四层A区": {"roomId": 100455356, "floor": 4, "area": "A"},
    "四层夹层": {"roomId": 111488388, "floor": 4, "area": "夹层"},
    "五层A区": {"roomId": 100455358, "floor": 5, "area": "A"},
    "六层A区": {"roomId": 100455360, "floor": 6, "area": "A"},
    "七层北侧": {"roomId": 106658017, "floor": 7, "area": "北"},
    "七层南侧": {"roomId": 111488396, "floor": 7, "area": "南"},
}

RESV_STATUS_TEXT = {
    1027: "预约中",
    1093: "使用中",
}


@dataclass
class SeatStats:
    total: int = 0
    available: int = 0
    occupied: int = 0
    rate: float = 0.0


def occupancy_rate(occupied: int, total: int) -> float:
    """占用率百分比, 保留一位小数"""
    return round(occupied / total * 100, 1) if total > 0 else 0.0


def check_days_offset(days_offset: int) -> int:
    if days_offset not in (0, 1):
        raise ValueError("日期参数错误")
    return days_offset


def convert_timestamp(timestamp: Optional[int]) -> str:
    """毫秒时间戳 -> 北京时间 HH:MM"""
    if not timestamp:
        return ""
    return datetime.fromtimestamp(timestamp / 1000, BEIJING_TZ).strftime("%H:%M")


async def fetch_room_seats(client: httpx.AsyncClient,
                           session: Session,
                           room_id: int,
                           date_str: str) -> Optional[List[Dict[str, Any]]]:
    """
    获取指定房间某天的座位及预约数据。

    返回:
        list: 座位列表, 请求或解析失败时返回 None。
    """
    params = {
        LIB_VPN_PARAM: "",
        "roomIds": str(room_id),
        "resvDates": date_str,
        "sysKind": "8",
    }
    headers = {
        **session.auth_headers(),
        "Referer": lib_url(""),
        "Origin": WEBVPN_HOST,
    }
    try:
        response = await send(client, "GET", RESERVE_URL, params=params, headers=headers)
    except AuthError as e:
        logger.error(f"获取座位数据过程出错: {e}")
        return None

    session.absorb_ticket(response)
    if not response.is_success:
        logger.error(f"获取座位数据请求失败，状态码：{response.status_code}")
        return None

    try:
        result = response.json()
    except ValueError as e:
        logger.error(f"座位数据无法解析: {e}")
        return None

    if not isinstance(result, dict) or result.get("code") != 0:
        logger.error(f"获取座位数据失败: {result.get('message') if isinstance(result, dict) else result}")
        return None

    seats = result.get("data")
    if seats is None:
        seats = []
    if not isinstance(seats, list) or not all(isinstance(seat, dict) for seat in seats):
        logger.error(f"座位数据格式异常: {type(seats).__name__}")
        return None
    logger.info(f"成功获取房间 {room_id} 的座位数据，共 {len(seats)} 个座位")
    return seats


def analyze_seats(seats: Optional[List[Dict[str, Any]]]) -> SeatStats:
    """没有任何预约记录的座位视为空闲"""
    if not seats:
        return SeatStats()

    total = len(seats)
    occupied = sum(1 for seat in seats if seat.get("resvInfo"))
    available = total - occupied
    return SeatStats(total, available, occupied, occupancy_rate(occupied, total))


def floor_summary(areas: Dict[str, Dict[str, Any]]) -> Dict[int, Dict[str, Any]]:
    """按楼层汇总各区域统计"""
    floors: Dict[int, Dict[str, Any]] = {}
    for name, data in areas.items():
        stats = data["stats"]
        floor = floors.setdefault(data["floor"], {
            "floor": data["floor"],
            "total": 0,
            "available": 0,
            "occupied": 0,
            "areas": [],
        })
        floor["total"] += stats["total"]
        floor["available"] += stats["available"]
        floor["occupied"] += stats["occupied"]
        floor["areas"].append({"name": name, "stats": stats})

    for floor in floors.values():
        floor["rate"] = occupancy_rate(floor["occupied"], floor["total"])
    return floors


async def get_all_areas(client: httpx.AsyncClient, session: Session, date_str: str) -> Dict[str, Dict[str, Any]]:
    """逐个区域查询, 查询失败的区域按空区域统计"""
    summary: Dict[str, Dict[str, Any]] = {}
    for name, config in AREAS.items():
        seats = await fetch_room_seats(client, session, config["roomId"], date_str)
        if seats is None:
            logger.warning(f"查询区域 {name} 失败, 按空区域处理")
        summary[name] = {
            "floor": config["floor"],
            "area": config["area"],
            "roomId": config["roomId"],
            "stats": asdict(analyze_seats(seats)),
            "seats": seats or [],
        }
    return summary


async def get_seats_summary(client: httpx.AsyncClient, session: Session, days_offset: int = 0) -> Dict[str, Any]:
    date_str = date_string(check_days_offset(days_offset))
    areas = await get_all_areas(client, session, date_str)

    total = SeatStats()
    for data in areas.values():
        total.total += data["stats"]["total"]
        total.available += data["stats"]["available"]
        total.occupied += data["stats"]["occupied"]
    total.rate = occupancy_rate(total.occupied, total.total)

    return {
        "date": date_str,
        "total": asdict(total),
        "floors": floor_summary(areas),
        "areas": areas,
    }


async def get_seats_detail(client: httpx.AsyncClient,
                           session: Session,
                           area_name: str,
                           days_offset: int = 0) -> Dict[str, Any]:
    """
    获取单个区域的座位详情, 预约时间转换为 HH:MM。

    异常:
        QueryError: 区域不存在或查询失败.
    """
    config = AREAS.get(area_name)
    if config is None:
        raise QueryError("区域不存在")

    date_str = date_string(check_days_offset(days_offset))
    seats = await fetch_room_seats(client, session, config["roomId"], date_str)
    if seats is None:
        raise QueryError("获取座位数据失败")

    processed = []
    for seat in seats:
        resv_info = seat.get("resvInfo") or []
        processed.append({
            "devId": seat.get("devId"),
            "devName": seat.get("devName"),
            "devStatus": seat.get("devStatus"),
            "isAvailable": not resv_info,
            "reservations": [
                {
                    "startTime": convert_timestamp(resv.get("startTime")),
                    "endTime": convert_timestamp(resv.get("endTime")),
                    "status": RESV_STATUS_TEXT.get(resv.get("resvStatus"), "未知"),
                }
                for resv in resv_info
            ],
        })

    return {
        "area": area_name,
        "date": date_str,
        "seats": processed,
    }
