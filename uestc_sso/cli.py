"""
命令行入口: python -m uestc_sso <login|wechat|logout|status>

    python -m uestc_sso login -u 学号 -p 密码
    python -m uestc_sso wechat --timeout 120
    python -m uestc_sso --async status
"""

import argparse
import asyncio
import io
import logging
import os
import sys

from .client import UestcBlockingClient, UestcClient
from .config import ClientConfig
from .errors import UestcClientError

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """解析命令行参数"""
    parser = argparse.ArgumentParser(prog='uestc_sso', description='电子科技大学统一身份认证登录工具')
    parser.add_argument('--cookie-file', '-c', default=None, help='Cookie 持久化文件路径')
    parser.add_argument('--async', dest='use_async', action='store_true', help='使用协程客户端 (httpx)')
    parser.add_argument('--debug', action='store_true', help='输出调试日志')

    subparsers = parser.add_subparsers(dest='command', required=True)

    login_parser = subparsers.add_parser('login', help='用户名密码登录')
    login_parser.add_argument('--username', '-u', default=os.environ.get('UESTC_USERNAME'),
                              help='统一身份认证用户名 (默认读取 UESTC_USERNAME)')
    login_parser.add_argument('--password', '-p', default=os.environ.get('UESTC_PASSWORD'),
                              help='统一身份认证密码 (默认读取 UESTC_PASSWORD)')

    wechat_parser = subparsers.add_parser('wechat', help='微信扫码登录')
    wechat_parser.add_argument('--timeout', '-t', type=float, default=None,
                               help='等待扫码的最长时间 (秒)，默认不限')

    subparsers.add_parser('logout', help='登出并删除 Cookie 文件')
    subparsers.add_parser('status', help='检查当前会话是否有效')

    args = parser.parse_args(argv)
    if args.command == 'login' and not (args.username and args.password):
        parser.error('login 需要用户名和密码 (-u/-p 或 UESTC_USERNAME/UESTC_PASSWORD)')
    return args


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8'),
    )
    # 将 HTTP 库的日志级别调高，避免过多的 DEBUG 输出
    for name in ("httpx", "httpcore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


def run_blocking(args, config: ClientConfig) -> bool:
    with UestcBlockingClient(config=config) as client:
        if args.command == 'login':
            client.login(args.username, args.password)
        elif args.command == 'wechat':
            client.wechat_login(timeout=args.timeout)
        elif args.command == 'logout':
            client.logout()
            return True
        return client.is_session_active()


async def run_async(args, config: ClientConfig) -> bool:
    async with UestcClient(config=config) as client:
        if args.command == 'login':
            await client.login(args.username, args.password)
        elif args.command == 'wechat':
            await client.wechat_login(timeout=args.timeout)
        elif args.command == 'logout':
            await client.logout()
            return True
        return await client.is_session_active()


def main(argv=None) -> int:
    args = parse_arguments(argv)
    setup_logging(args.debug)
    config = ClientConfig.from_env(args.cookie_file)

    try:
        if args.use_async:
            active = asyncio.run(run_async(args, config))
        else:
            active = run_blocking(args, config)
    except KeyboardInterrupt:
        logger.info("--- 用户手动中断程序 ---")
        return 1
    except UestcClientError as e:
        logger.error(f"{e}")
        return 1

    if args.command == 'logout':
        return 0
    if active:
        logger.info(f"会话有效，Cookie 已保存到 {config.cookie_file}")
        return 0
    logger.warning("会话无效")
    return 1
