import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from njfu_lib import seats, traffic
from njfu_lib.authenticator import LibraryAuthenticator
from njfu_lib.cache import SessionCache
from njfu_lib.client import create_client
from njfu_lib.config import (ENV_EDU_PASSWORD, ENV_LIB_PASSWORD, ENV_USERNAME,
                             Settings)
from njfu_lib.errors import AuthError, ConfigError, QueryError

logger = logging.getLogger("njfu_lib.main")

EXIT_OK = 0
EXIT_BAD_INPUT = 1
EXIT_UNAVAILABLE = 2


def setup_logging(verbose: bool = False) -> None:
    # 输出到 stderr, stdout 只留给 JSON 结果
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )
    # 将 httpx 的日志级别调高，避免过多的 DEBUG 输出
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='南京林业大学图书馆实时流量和座位查询')
    parser.add_argument('--username', '-u', help=f'学号 (默认读取环境变量 {ENV_USERNAME})')
    parser.add_argument('--edu-password', help=f'统一认证密码 (默认读取 {ENV_EDU_PASSWORD})')
    parser.add_argument('--lib-password', help=f'图书馆系统密码 (默认读取 {ENV_LIB_PASSWORD})')
    parser.add_argument('--timeout', type=float, default=10.0, help='单次请求超时 (秒)')
    parser.add_argument('--retry', '-r', type=int, default=3, help='图书馆登录最大尝试次数')
    parser.add_argument('--delay', '-d', type=float, default=1.0, help='图书馆登录重试间隔 (秒)')
    parser.add_argument('--verbose', '-v', action='store_true', help='输出 DEBUG 日志')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('login', help='仅执行认证并输出会话信息')
    sub.add_parser('traffic', help='当前在馆人数')
    summary = sub.add_parser('summary', help='全部区域座位摘要')
    summary.add_argument('--days-offset', type=int, default=0, choices=[0, 1])
    detail = sub.add_parser('detail', help='单个区域座位详情')
    detail.add_argument('--area', required=True, help='区域名, 例如 二层A区')
    detail.add_argument('--days-offset', type=int, default=0, choices=[0, 1])
    sub.add_parser('areas', help='列出所有区域 (无需认证)')
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        ENV_USERNAME: args.username,
        ENV_EDU_PASSWORD: args.edu_password,
        ENV_LIB_PASSWORD: args.lib_password,
    }
    return Settings.from_env(
        overrides=overrides,
        timeout=args.timeout,
        max_attempts=args.retry,
        retry_delay=args.delay,
    )


async def run_command(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    """认证 (带缓存) 后执行子命令, 返回可序列化的结果"""
    async with create_client(timeout=settings.timeout) as client:
        cache = SessionCache(LibraryAuthenticator.from_settings(client, settings), ttl=settings.session_ttl)
        session = await cache.get_or_create()

        if args.command == 'login':
            return {
                "accNo": session.account_number,
                "created_at": session.created_at.isoformat(),
            }
        if args.command == 'traffic':
            return await traffic.get_traffic(client, session)
        if args.command == 'summary':
            return await seats.get_seats_summary(client, session, args.days_offset)
        if args.command == 'detail':
            return await seats.get_seats_detail(client, session, args.area, args.days_offset)
        raise ValueError(f"未知命令: {args.command}")


def emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    """主程序入口：解析命令行参数并启动 asyncio 循环。"""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == 'areas':
        emit({"success": True, "areas": seats.AREAS})
        return EXIT_OK

    try:
        settings = load_settings(args)
    except ConfigError as e:
        logger.error(str(e))
        emit({"success": False, "error": str(e)})
        return EXIT_BAD_INPUT

    try:
        result = asyncio.run(run_command(args, settings))
    except AuthError as e:
        logger.error(f"认证失败: {e}")
        emit({"success": False, "error": f"认证失败: {e}"})
        return EXIT_UNAVAILABLE
    except QueryError as e:
        logger.error(str(e))
        payload = {"success": False, "error": str(e)}
        if args.command == 'traffic':
            payload["total_capacity"] = traffic.TOTAL_CAPACITY
        emit(payload)
        return EXIT_BAD_INPUT
    except KeyboardInterrupt:
        logger.info("--- 用户手动中断程序 ---")
        return EXIT_BAD_INPUT

    emit({"success": True, **result})
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
