"""Tests for the seat and traffic queries."""

from __future__ import annotations

from datetime import datetime

import httpx
import pytest

from conftest import FakeServer, run
from njfu_lib import seats, traffic
from njfu_lib.config import BEIJING_TZ, TRAFFIC_URL
from njfu_lib.errors import QueryError
from njfu_lib.seats import (AREAS, RESERVE_URL, SeatStats, analyze_seats,
                            convert_timestamp, floor_summary)
from njfu_lib.session import Session


def _ms(hour: int, minute: int) -> int:
    return int(datetime(2025, 5, 1, hour, minute, tzinfo=BEIJING_TZ).timestamp() * 1000)


SEATS = [
    {"devId": 1, "devName": "2A001", "devStatus": 0, "resvInfo": []},
    {"devId": 2, "devName": "2A002", "devStatus": 0,
     "resvInfo": [{"startTime": _ms(8, 0), "endTime": _ms(12, 30), "resvStatus": 1093}]},
    {"devId": 3, "devName": "2A003", "devStatus": 0,
     "resvInfo": [{"startTime": _ms(14, 0), "endTime": _ms(18, 0), "resvStatus": 1027}]},
    {"devId": 4, "devName": "2A004", "devStatus": 0},
]


class TestSeatStatistics:
    def test_analyze(self) -> None:
        assert analyze_seats(SEATS) == SeatStats(total=4, available=2, occupied=2, rate=50.0)

    @pytest.mark.parametrize("empty", [None, []])
    def test_analyze_empty(self, empty) -> None:
        assert analyze_seats(empty) == SeatStats(0, 0, 0, 0.0)

    def test_rate_rounding(self) -> None:
        stats = analyze_seats(SEATS[1:])
        assert stats.rate == 66.7

    def test_floor_summary(self) -> None:
        areas = {
            "二层A区": {"floor": 2, "stats": {"total": 10, "available": 5, "occupied": 5}},
            "二层B区": {"floor": 2, "stats": {"total": 10, "available": 10, "occupied": 0}},
            "三层A区": {"floor": 3, "stats": {"total": 0, "available": 0, "occupied": 0}},
        }
        floors = floor_summary(areas)
        assert floors[2]["total"] == 20
        assert floors[2]["occupied"] == 5
        assert floors[2]["rate"] == 25.0
        assert [a["name"] for a in floors[2]["areas"]] == ["二层A区", "二层B区"]
        assert floors[3]["rate"] == 0.0

    def test_convert_timestamp(self) -> None:
        assert convert_timestamp(_ms(8, 5)) == "08:05"
        assert convert_timestamp(None) == ""


class TestSeatQueries:
    def test_detail(self, server: FakeServer, client: httpx.AsyncClient, session: Session) -> None:
        server.add("GET", RESERVE_URL, json={"code": 0, "data": SEATS})

        detail = run(seats.get_seats_detail(client, session, "二层A区"))

        assert detail["area"] == "二层A区"
        assert [s["isAvailable"] for s in detail["seats"]] == [True, False, False, True]
        assert detail["seats"][1]["reservations"] == [
            {"startTime": "08:00", "endTime": "12:30", "status": "使用中"}
        ]
        assert detail["seats"][2]["reservations"][0]["status"] == "预约中"
        (request,) = server.requests
        assert request.url.params["roomIds"] == str(AREAS["二层A区"]["roomId"])
        assert request.url.params["sysKind"] == "8"
        assert request.headers["token"] == "tok-abc"

    def test_detail_unknown_area(self, client: httpx.AsyncClient, session: Session) -> None:
        with pytest.raises(QueryError, match="区域不存在"):
            run(seats.get_seats_detail(client, session, "八层"))

    def test_detail_upstream_failure(self, server: FakeServer, client: httpx.AsyncClient,
                                     session: Session) -> None:
        server.add("GET", RESERVE_URL, json={"code": 500, "message": "系统繁忙"})
        with pytest.raises(QueryError):
            run(seats.get_seats_detail(client, session, "二层A区"))

    def test_bad_days_offset(self, client: httpx.AsyncClient, session: Session) -> None:
        with pytest.raises(ValueError):
            run(seats.get_seats_detail(client, session, "二层A区", days_offset=2))

    def test_summary(self, server: FakeServer, client: httpx.AsyncClient, session: Session) -> None:
        server.add("GET", RESERVE_URL, json={"code": 0, "data": SEATS})
        server.add("GET", RESERVE_URL, 500)

        summary = run(seats.get_seats_summary(client, session, days_offset=1))

        assert len(server.requests) == len(AREAS)
        first_area = next(iter(AREAS))
        assert summary["areas"][first_area]["stats"]["total"] == 4
        assert summary["total"] == {"total": 4, "available": 2, "occupied": 2, "rate": 50.0}
        assert len(summary["date"]) == 8

    @pytest.mark.parametrize("data", [{"unexpected": 1}, "oops", [1, 2], [{"devId": 1}, "x"]])
    def test_summary_counts_malformed_area_as_empty(self, server: FakeServer, client: httpx.AsyncClient,
                                                    session: Session, data) -> None:
        server.add("GET", RESERVE_URL, json={"code": 0, "data": data})
        server.add("GET", RESERVE_URL, json={"code": 0, "data": SEATS})

        summary = run(seats.get_seats_summary(client, session))

        first_area, second_area = list(AREAS)[:2]
        assert summary["areas"][first_area]["stats"]["total"] == 0
        assert summary["areas"][first_area]["seats"] == []
        assert summary["areas"][second_area]["stats"]["total"] == 4
        assert summary["total"]["total"] == 4 * (len(AREAS) - 1)

    def test_detail_malformed_data(self, server: FakeServer, client: httpx.AsyncClient,
                                   session: Session) -> None:
        server.add("GET", RESERVE_URL, json={"code": 0, "data": {"unexpected": 1}})
        with pytest.raises(QueryError, match="获取座位数据失败"):
            run(seats.get_seats_detail(client, session, "二层A区"))

    def test_null_data_is_an_empty_area(self, server: FakeServer, client: httpx.AsyncClient,
                                        session: Session) -> None:
        server.add("GET", RESERVE_URL, json={"code": 0, "data": None})
        assert run(seats.get_seats_detail(client, session, "二层A区"))["seats"] == []


TRAFFIC_PAGE = """
<html><body>
  <div>总座位 <span style="color:red; font-size:20px">2749</span></div>
  <div>剩余 <span style="font-size: 20px;">1749</span></div>
  <span style="font-size:12px">7</span>
</body></html>
"""


class TestTraffic:
    def test_parse_numbers(self) -> None:
        assert traffic.parse_traffic_numbers(TRAFFIC_PAGE) == [2749, 1749]

    def test_get_traffic(self, server: FakeServer, client: httpx.AsyncClient, session: Session) -> None:
        server.add("GET", TRAFFIC_URL, text=TRAFFIC_PAGE)

        data = run(traffic.get_traffic(client, session))

        assert data["current_count"] == 1000
        assert data["total_capacity"] == 2749
        assert data["remaining"] == 1749
        assert data["percentage"] == 36.4
        assert server.requests[0].headers["Cookie"] == "my_client_ticket=TICKET-1"

    def test_page_changed(self, server: FakeServer, client: httpx.AsyncClient, session: Session) -> None:
        server.add("GET", TRAFFIC_URL, text="<html><span style='font-size:20px'>5</span></html>")
        with pytest.raises(QueryError, match="页面结构解析失败"):
            run(traffic.get_traffic(client, session))

    def test_request_failure(self, server: FakeServer, client: httpx.AsyncClient, session: Session) -> None:
        server.fail("GET", TRAFFIC_URL)
        with pytest.raises(QueryError):
            run(traffic.get_traffic(client, session))
