"""
客户端配置

从 osiam-config.json 读取，环境变量优先:
- OSIAM_ENDPOINT
- OSIAM_TOKEN

示例:
    {
        "endpoint": "http://localhost:8080/osiam",
        "token": "...",
        "connect_timeout": 2.5,
        "read_timeout": 5.0,
        "version": "3"
    }
"""

import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import InvalidAttributeError


DEFAULT_CONFIG_FILE = "osiam-config.json"


class Version(str, Enum):
    """OSIAM 服务端版本"""
    OSIAM_2_LEGACY_SCHEMAS = "2-legacy-schemas"
    OSIAM_2 = "2"
    OSIAM_3 = "3"


@dataclass
class OsiamConfig:
    endpoint: str
    token: str | None = None
    connect_timeout: float = 2.5
    read_timeout: float = 5.0
    version: Version = Version.OSIAM_3

    def __post_init__(self):
        if not self.endpoint:
            raise InvalidAttributeError("endpoint 是必填字段")
        try:
            if not isinstance(self.version, Version):
                # JSON 里可能写成数字 3
                self.version = Version(str(self.version))
        except ValueError as e:
            raise InvalidAttributeError(f"未知的 OSIAM 版本: {self.version}") from e
        try:
            self.connect_timeout = float(self.connect_timeout)
            self.read_timeout = float(self.read_timeout)
        except (TypeError, ValueError) as e:
            raise InvalidAttributeError(f"超时时间必须是数字: {e}") from e


def load_config(path: str | Path = DEFAULT_CONFIG_FILE) -> OsiamConfig:
    """
    加载配置

    文件不存在时只使用环境变量。

    Raises:
        InvalidAttributeError: 缺少 endpoint、版本或超时时间非法
    """
    data: dict = {}
    path = Path(path)
    if path.exists():
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

    endpoint = os.environ.get("OSIAM_ENDPOINT") or data.get("endpoint", "")
    token = os.environ.get("OSIAM_TOKEN") or data.get("token")

    return OsiamConfig(
        endpoint=endpoint,
        token=token,
        connect_timeout=data.get("connect_timeout", 2.5),
        read_timeout=data.get("read_timeout", 5.0),
        version=data.get("version", Version.OSIAM_3),
    )
