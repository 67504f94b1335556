"""
OSIAM User HTTP Client

使用 httpx 实现，处理 OSIAM 资源服务器的行为：
- 每次调用传入 AccessToken，放入 Authorization 头
- startIndex/count 分页
- OSIAM 3 使用 /Me，旧版本使用 /me (BasicUser)
- OSIAM 2 旧版 schema URN
"""

import logging
import warnings
from typing import Iterator

from httpx import Client, Timeout, TransportError

from .config import OsiamConfig, Version
from .errors import ConnectionInitializationError, InvalidAttributeError, check_response
from .models import (
    LEGACY_USER_SCHEMA,
    USER_SCHEMA,
    AccessToken,
    BasicUser,
    SearchResult,
    UpdateUser,
    User,
)
from .query import Query


logger = logging.getLogger(__name__)

CONNECTION_SETUP_ERROR = "Unable to setup connection to OSIAM"
DESERIALIZE_ERROR = "Unable to deserialize OSIAM response"


class OsiamUserService:
    """
    OSIAM User 服务

    不保存任何调用间状态，token 随每次调用传入；
    并发安全性取决于底层 httpx.Client。
    """

    USERS_PATH = "/Users"
    PAGE_SIZE = 100

    def __init__(
        self,
        endpoint: str,
        connect_timeout: float = 2.5,
        read_timeout: float = 5.0,
        version: Version | str = Version.OSIAM_3,
        transport=None,
    ):
        """
        初始化客户端

        Args:
            endpoint: 资源服务器地址，例如 http://localhost:8080/osiam
            connect_timeout: 连接超时 (秒)
            read_timeout: 读取超时 (秒)
            version: 服务端版本
            transport: 自定义 httpx transport (测试时使用 MockTransport)
        """
        self.version = Version(version)
        self.client = Client(
            base_url=endpoint.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=Timeout(read_timeout, connect=connect_timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: OsiamConfig, transport=None) -> "OsiamUserService":
        return cls(
            config.endpoint,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            version=config.version,
            transport=transport,
        )

    def close(self):
        """关闭连接"""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ============ 底层请求方法 ============

    @staticmethod
    def _bearer(access_token: AccessToken | str | None) -> AccessToken:
        if isinstance(access_token, str):
            access_token = AccessToken(token=access_token)
        if access_token is None or not access_token.token:
            raise InvalidAttributeError("The given accessToken can't be null.")
        return access_token

    @staticmethod
    def _check_id(resource_id: str | None) -> None:
        if not resource_id:
            raise InvalidAttributeError("The given id can't be null or empty.")

    @staticmethod
    def _attributes_params(attributes: tuple[str, ...]) -> dict:
        if not attributes:
            return {}
        return {"attributes": ",".join(attributes)}

    def _request(
        self,
        method: str,
        path: str,
        access_token: AccessToken | str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict | None:
        """
        发送请求并解释响应

        Returns:
            响应 JSON 或 None (204 / 空响应体)

        Raises:
            InvalidAttributeError: token 为空
            ConnectionInitializationError: 网络错误或响应体不是 JSON
            OsiamRequestError: 服务端返回错误状态
        """
        token = self._bearer(access_token)
        headers = {"Authorization": f"Bearer {token.token}"}
        try:
            resp = self.client.request(method, path, params=params, json=json, headers=headers)
        except TransportError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            raise ConnectionInitializationError(CONNECTION_SETUP_ERROR) from e

        logger.debug("%s %s -> %s", method, path, resp.status_code)
        check_response(resp, token)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ConnectionInitializationError(DESERIALIZE_ERROR) from e

    @staticmethod
    def _deserialize(factory, data):
        """
        把响应体转换为模型

        Raises:
            ConnectionInitializationError: 响应体为空、不是 JSON 对象或字段无法解析
        """
        if not isinstance(data, dict) or not data:
            raise ConnectionInitializationError(DESERIALIZE_ERROR)
        try:
            return factory(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise ConnectionInitializationError(DESERIALIZE_ERROR) from e

    def _schemas(self, user: User) -> list[str]:
        schema = LEGACY_USER_SCHEMA if self.version is Version.OSIAM_2_LEGACY_SCHEMAS else USER_SCHEMA
        return [schema] + list(user.extensions or {})

    def _user_path(self, user_id: str) -> str:
        return f"{self.USERS_PATH}/{user_id}"

    # ============ 当前用户 ============

    def get_me(self, access_token: AccessToken | str, *attributes: str) -> User:
        """
        获取 token 对应的用户

        OSIAM 3 直接读取 /Me，旧版本先读取 /me 再按 id 获取。
        旧版本的 /me 不支持 attributes，attributes 会用在随后的 /Users/{id} 请求上。
        """
        if self.version is Version.OSIAM_3:
            data = self._request("GET", "/Me", access_token, params=self._attributes_params(attributes))
            return self._deserialize(User.from_dict, data)
        basic = self._get_basic_user(access_token)
        return self.get_user(basic.id, access_token, *attributes)

    def get_current_user_basic(self, access_token: AccessToken | str) -> BasicUser:
        """已废弃：OSIAM 3 请使用 get_me()"""
        warnings.warn(
            "get_current_user_basic() is deprecated, use get_me() with OSIAM 3",
            DeprecationWarning,
            stacklevel=2,
        )
        return self._get_basic_user(access_token)

    def get_current_user(self, access_token: AccessToken | str) -> User:
        """已废弃：OSIAM 3 请使用 get_me()"""
        warnings.warn(
            "get_current_user() is deprecated, use get_me() with OSIAM 3",
            DeprecationWarning,
            stacklevel=2,
        )
        basic = self._get_basic_user(access_token)
        return self.get_user(basic.id, access_token)

    def _get_basic_user(self, access_token: AccessToken | str) -> BasicUser:
        data = self._request("GET", "/me", access_token)
        basic = self._deserialize(BasicUser.from_dict, data)
        if not basic.id:
            raise ConnectionInitializationError(DESERIALIZE_ERROR)
        return basic

    # ============ User 操作 ============

    def get_user(self, user_id: str, access_token: AccessToken | str, *attributes: str) -> User:
        """
        获取单个用户

        Raises:
            NoResultError: 用户不存在
            UnauthorizedError: token 无效或过期
            ConnectionInitializationError: 无法完成请求
        """
        self._check_id(user_id)
        data = self._request("GET", self._user_path(user_id), access_token, params=self._attributes_params(attributes))
        return self._deserialize(User.from_dict, data)

    def list_users(self, access_token: AccessToken | str, *attributes: str) -> Iterator[User]:
        """
        列出所有用户 (自动分页)

        Yields:
            User 对象
        """
        start_index = 1
        while True:
            params = {"startIndex": start_index, "count": self.PAGE_SIZE}
            params.update(self._attributes_params(attributes))
            result = self._deserialize(SearchResult.from_dict, self._request("GET", self.USERS_PATH, access_token, params=params))
            logger.debug("Fetched %d users from index %d of %d", len(result.resources), start_index, result.total_results)

            yield from result.resources

            start_index += len(result.resources)
            if not result.resources or start_index > result.total_results:
                break

    def get_all_users(self, access_token: AccessToken | str, *attributes: str) -> list[User]:
        """列出所有用户 (返回列表)"""
        return list(self.list_users(access_token, *attributes))

    def search_users(self, query: Query | str, access_token: AccessToken | str) -> SearchResult:
        """
        按 QueryBuilder 生成的查询搜索用户

        Args:
            query: Query 或其字符串形式
        """
        if query is None:
            raise InvalidAttributeError("The given query can't be null.")
        if isinstance(query, str):
            query = Query.parse(query)
        data = self._request("GET", self.USERS_PATH, access_token, params=query.params())
        return self._deserialize(SearchResult.from_dict, data)

    def create_user(self, user: User, access_token: AccessToken | str) -> User:
        """创建用户，返回服务端生成 id 后的用户"""
        if user is None:
            raise InvalidAttributeError("The given User can't be null.")
        body = user.to_dict(include_id=False, schemas=self._schemas(user))
        data = self._request("POST", self.USERS_PATH, access_token, json=body)
        return self._deserialize(User.from_dict, data)

    def replace_user(self, user_id: str, user: User, access_token: AccessToken | str) -> User:
        """
        替换用户 (PUT)

        Raises:
            InvalidAttributeError: user 为空或 user_id 为空
        """
        if user is None:
            raise InvalidAttributeError("The given User can't be null.")
        if not user_id:
            raise InvalidAttributeError("The given User ID can't be null or empty.")
        body = user.to_dict(schemas=self._schemas(user))
        data = self._request("PUT", self._user_path(user_id), access_token, json=body)
        return self._deserialize(User.from_dict, data)

    def update_user(self, user_id: str, update_user: UpdateUser, access_token: AccessToken | str) -> User | None:
        """
        部分更新用户 (PATCH)

        已废弃：OSIAM 3 已移除 PATCH，请使用 replace_user()。
        """
        warnings.warn(
            "update_user() is deprecated, PATCH has been removed in OSIAM 3; use replace_user()",
            DeprecationWarning,
            stacklevel=2,
        )
        if update_user is None:
            raise InvalidAttributeError("The given updateUser can't be null.")
        self._check_id(user_id)
        schema = LEGACY_USER_SCHEMA if self.version is Version.OSIAM_2_LEGACY_SCHEMAS else USER_SCHEMA
        data = self._request("PATCH", self._user_path(user_id), access_token, json=update_user.to_dict(schema))
        return self._deserialize(User.from_dict, data) if data else None

    def delete_user(self, user_id: str, access_token: AccessToken | str) -> None:
        """删除用户"""
        self._check_id(user_id)
        self._request("DELETE", self._user_path(user_id), access_token)
