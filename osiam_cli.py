#!/usr/bin/env python3
"""
OSIAM User CLI
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from osiam_client import (
    InvalidAttributeError,
    OsiamClientError,
    OsiamUserService,
    Query,
    QueryBuilder,
    ResourceType,
    SortOrder,
    User,
    load_config,
)


console = Console(stderr=True)

FILTER_OPERATORS = {
    "eq": "equal_to",
    "co": "contains",
    "sw": "starts_with",
    "gt": "greater_than",
    "ge": "greater_equals",
    "lt": "less_than",
    "le": "less_equals",
    "pr": "present",
}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_json(file: str) -> dict | list:
    path = Path(file)
    if not path.exists():
        return []
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def get_service(args) -> tuple[OsiamUserService, str]:
    config = load_config(args.config)
    if not config.token:
        raise InvalidAttributeError("缺少 access token (配置文件 token 或环境变量 OSIAM_TOKEN)")
    return OsiamUserService.from_config(config), config.token


def user_to_dict(user: User) -> dict:
    return user.to_dict()


def print_users(users: list[User], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps([user_to_dict(u) for u in users], indent=2, ensure_ascii=False))
        return
    for u in users:
        status = "✓" if u.active else "✗"
        print(f"  {status} {u.userName} ({u.displayName}) [id: {u.id}]")


def split_attributes(value: str | None) -> list[str]:
    if not value:
        return []
    return [a.strip() for a in value.split(",") if a.strip()]


def build_query(args) -> Query:
    """--query 原样解析，否则用 --where 条件构建"""
    if args.query:
        return Query.parse(args.query)

    builder = QueryBuilder(ResourceType.USER)
    for i, clause in enumerate(args.where or []):
        if len(clause) < 2:
            raise InvalidAttributeError(f"条件格式错误: {' '.join(clause)}")
        attribute, op, *value = clause
        if op not in FILTER_OPERATORS:
            raise InvalidAttributeError(f"不支持的操作符: {op}")

        if i == 0:
            filter = builder.query(attribute)
        elif args.any:
            filter = builder.or_(attribute)
        else:
            filter = builder.and_(attribute)

        method = getattr(filter, FILTER_OPERATORS[op])
        if op == "pr":
            method()
        else:
            method(" ".join(value))

    if args.sort:
        builder.with_sort_order(SortOrder(args.sort))
    if args.count is not None:
        builder.count_per_page(args.count)
    if args.start_index is not None:
        builder.start_index(args.start_index)
    return builder.build()


# ========== 用户命令 ==========

def cmd_user_get(args, service: OsiamUserService, token: str):
    user = service.get_user(args.id, token, *split_attributes(args.attributes))
    print(json.dumps(user_to_dict(user), indent=2, ensure_ascii=False))


def cmd_user_me(args, service: OsiamUserService, token: str):
    user = service.get_me(token, *split_attributes(args.attributes))
    print(json.dumps(user_to_dict(user), indent=2, ensure_ascii=False))


def cmd_user_list(args, service: OsiamUserService, token: str):
    users = service.get_all_users(token, *split_attributes(args.attributes))
    if args.format != "json":
        print(f"共 {len(users)} 个用户:\n")
    print_users(users, args.format)


def cmd_user_search(args, service: OsiamUserService, token: str):
    query = build_query(args)
    result = service.search_users(query, token)
    if args.format != "json":
        print(f"查询: {query}")
        print(f"共 {result.total_results} 个结果，本页 {len(result.resources)} 个:\n")
    print_users(result.resources, args.format)


def cmd_user_create(args, service: OsiamUserService, token: str):
    data = load_json(args.file)
    users = data if isinstance(data, list) else [data]
    has_error = False
    for u in users:
        try:
            user = User.from_dict(u)
            if not user.userName:
                raise InvalidAttributeError("userName 是必填字段")
            result = service.create_user(user, token)
            print(f"✓ 创建: {result.userName} [id: {result.id}]")
        except OsiamClientError as e:
            print(f"✗ {u.get('userName', '?')}: {e}")
            has_error = True
    return 1 if has_error else 0


def cmd_user_replace(args, service: OsiamUserService, token: str):
    data = load_json(args.file)
    if not isinstance(data, dict) or not data:
        raise InvalidAttributeError(f"文件不存在或格式错误: {args.file}")
    result = service.replace_user(args.id, User.from_dict(data), token)
    print(f"✓ 替换: {result.userName} [id: {result.id}]")


def cmd_user_delete(args, service: OsiamUserService, token: str):
    service.delete_user(args.id, token)
    print(f"✓ 删除: {args.id}")


# ========== 主函数 ==========

def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(prog='osiam-cli', description='OSIAM User CLI')
    parser.add_argument('-c', '--config', default='osiam-config.json', help='配置文件')
    parser.add_argument('-v', '--verbose', action='store_true', help='输出调试日志')
    subparsers = parser.add_subparsers(dest='command', help='命令')

    # user 命令
    user_parser = subparsers.add_parser('user', help='用户管理')
    user_sub = user_parser.add_subparsers(dest='action')

    p = user_sub.add_parser('get', help='获取用户')
    p.add_argument('id')
    p.add_argument('--attributes', help='返回的属性，逗号分隔')
    p.set_defaults(func=cmd_user_get)

    p = user_sub.add_parser('me', help='获取当前 token 对应的用户')
    p.add_argument('--attributes', help='返回的属性，逗号分隔')
    p.set_defaults(func=cmd_user_me)

    p = user_sub.add_parser('list', help='列出所有用户')
    p.add_argument('--attributes', help='返回的属性，逗号分隔')
    p.add_argument('--format', choices=['table', 'json'], default='table')
    p.set_defaults(func=cmd_user_list)

    p = user_sub.add_parser('search', help='搜索用户')
    p.add_argument('--where', nargs='+', action='append', metavar='ATTR OP VALUE',
                   help='条件，例如 --where userName eq bjensen，可重复')
    p.add_argument('--any', action='store_true', help='条件之间用 or 连接 (默认 and)')
    p.add_argument('--query', help='完整查询字符串，例如 \'userName eq "bjensen"&count=20\'')
    p.add_argument('--sort', choices=[s.value for s in SortOrder])
    p.add_argument('--count', type=int)
    p.add_argument('--start-index', type=int)
    p.add_argument('--format', choices=['table', 'json'], default='table')
    p.set_defaults(func=cmd_user_search)

    p = user_sub.add_parser('create', help='创建用户')
    p.add_argument('file', help='JSON 文件')
    p.set_defaults(func=cmd_user_create)

    p = user_sub.add_parser('replace', help='替换用户')
    p.add_argument('id')
    p.add_argument('file', help='JSON 文件')
    p.set_defaults(func=cmd_user_replace)

    p = user_sub.add_parser('delete', help='删除用户')
    p.add_argument('id')
    p.set_defaults(func=cmd_user_delete)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return 0

    if not hasattr(args, 'func'):
        parser.parse_args([args.command, '-h'])
        return 0

    try:
        service, token = get_service(args)
    except OsiamClientError as e:
        print(f"错误: {e}")
        return 1

    with service:
        try:
            return args.func(args, service, token) or 0
        except OsiamClientError as e:
            print(f"✗ {e}")
            return 1


if __name__ == "__main__":
    sys.exit(main())
