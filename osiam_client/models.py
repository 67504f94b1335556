"""
OSIAM SCIM 数据模型

对应 OSIAM 资源服务器返回的 SCIM 2 User 结构：
- User 及其复合属性 name / meta
- 多值属性 (emails, phoneNumbers, ims, photos, groups, entitlements, roles, x509Certificates)
- addresses 单独建模 (没有 value)
- 日期统一按 ISO-8601 (毫秒 + 时区) 读写
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
LEGACY_USER_SCHEMA = "urn:scim:schemas:core:2.0:User"
LIST_RESPONSE_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:ListResponse"

CORE_SCHEMAS = (USER_SCHEMA, LEGACY_USER_SCHEMA)


def parse_date(value: str | None) -> datetime | None:
    """解析 ISO-8601 日期，无时区时按 UTC 处理"""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: datetime | None) -> str | None:
    """输出 ISO-8601，精确到毫秒，例如 2013-08-08T19:46:20.638+02:00"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="milliseconds")


# ============ 认证 ============

@dataclass(frozen=True)
class AccessToken:
    """
    Bearer token

    由外部 OAuth 流程签发，本库只读取 token 放入 Authorization 头。
    """
    token: str
    expires_at: datetime | None = None
    refresh_token: str | None = None
    scopes: tuple[str, ...] = ()
    client_id: str | None = None
    user_name: str | None = None
    user_id: str | None = None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= datetime.now(timezone.utc)

    @classmethod
    def from_dict(cls, data: dict) -> "AccessToken":
        """从 OAuth token 响应解析 (access_token / expires_in / scope ...)"""
        expires_at = None
        if data.get("expires_at"):
            expires_at = parse_date(data["expires_at"])
        elif data.get("expires_in") is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))

        scope = data.get("scope") or ""
        return cls(
            token=data.get("access_token", ""),
            expires_at=expires_at,
            refresh_token=data.get("refresh_token"),
            scopes=tuple(scope.split()),
            client_id=data.get("client_id"),
            user_name=data.get("user_name"),
            user_id=data.get("user_id"),
        )

    def __str__(self) -> str:
        return self.token


# ============ User 复合属性 ============

@dataclass
class Name:
    """用户姓名 (name)"""
    formatted: str | None = None
    familyName: str | None = None
    givenName: str | None = None
    middleName: str | None = None
    honorificPrefix: str | None = None
    honorificSuffix: str | None = None

    def to_dict(self) -> dict:
        """只返回有值的字段"""
        d = {}
        if self.formatted is not None:
            d["formatted"] = self.formatted
        if self.familyName is not None:
            d["familyName"] = self.familyName
        if self.givenName is not None:
            d["givenName"] = self.givenName
        if self.middleName is not None:
            d["middleName"] = self.middleName
        if self.honorificPrefix is not None:
            d["honorificPrefix"] = self.honorificPrefix
        if self.honorificSuffix is not None:
            d["honorificSuffix"] = self.honorificSuffix
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Name":
        return cls(
            formatted=data.get("formatted"),
            familyName=data.get("familyName"),
            givenName=data.get("givenName"),
            middleName=data.get("middleName"),
            honorificPrefix=data.get("honorificPrefix"),
            honorificSuffix=data.get("honorificSuffix"),
        )


@dataclass
class Meta:
    """
    资源元数据 (meta)，服务端维护

    attributes 只在旧版 PATCH 中使用，列出要删除的属性。
    """
    created: datetime | None = None
    lastModified: datetime | None = None
    location: str | None = None
    version: str | None = None
    resourceType: str | None = None
    attributes: list[str] | None = None

    def to_dict(self) -> dict:
        d = {}
        if self.created is not None:
            d["created"] = format_date(self.created)
        if self.lastModified is not None:
            d["lastModified"] = format_date(self.lastModified)
        if self.location is not None:
            d["location"] = self.location
        if self.version is not None:
            d["version"] = self.version
        if self.resourceType is not None:
            d["resourceType"] = self.resourceType
        if self.attributes is not None:
            d["attributes"] = list(self.attributes)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Meta":
        return cls(
            created=parse_date(data.get("created")),
            lastModified=parse_date(data.get("lastModified")),
            location=data.get("location"),
            version=data.get("version"),
            resourceType=data.get("resourceType"),
            attributes=data.get("attributes"),
        )


# ============ 多值属性 ============

@dataclass
class MultiValuedAttribute:
    """
    通用多值属性条目 (emails, phoneNumbers, ims, photos, groups, ...)

    operation 只在旧版 PATCH 中出现，值为 "delete" 时表示删除该条目。
    """
    value: str | None = None
    display: str | None = None
    primary: bool | None = None
    type: str | None = None
    operation: str | None = None
    ref: str | None = None  # 对应 $ref

    def to_dict(self) -> dict:
        d = {}
        if self.value is not None:
            d["value"] = self.value
        if self.display is not None:
            d["display"] = self.display
        if self.primary is not None:
            d["primary"] = self.primary
        if self.type is not None:
            d["type"] = self.type
        if self.operation is not None:
            d["operation"] = self.operation
        if self.ref is not None:
            d["$ref"] = self.ref
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "MultiValuedAttribute":
        return cls(
            value=data.get("value"),
            display=data.get("display"),
            primary=data.get("primary"),
            type=data.get("type"),
            operation=data.get("operation"),
            ref=data.get("$ref"),
        )


@dataclass
class Address:
    """地址 (addresses)"""
    formatted: str | None = None
    streetAddress: str | None = None
    locality: str | None = None
    region: str | None = None
    postalCode: str | None = None
    country: str | None = None
    type: str | None = None
    primary: bool | None = None
    operation: str | None = None

    def to_dict(self) -> dict:
        d = {}
        for key in ("formatted", "streetAddress", "locality", "region", "postalCode",
                    "country", "type", "primary", "operation"):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Address":
        return cls(
            formatted=data.get("formatted"),
            streetAddress=data.get("streetAddress"),
            locality=data.get("locality"),
            region=data.get("region"),
            postalCode=data.get("postalCode"),
            country=data.get("country"),
            type=data.get("type"),
            primary=data.get("primary"),
            operation=data.get("operation"),
        )


# ============ User 资源 ============

SIMPLE_USER_ATTRIBUTES = (
    "externalId",
    "displayName",
    "nickName",
    "profileUrl",
    "title",
    "userType",
    "preferredLanguage",
    "locale",
    "timezone",
    "active",
    "password",
)

MULTI_VALUED_USER_ATTRIBUTES = (
    "emails",
    "phoneNumbers",
    "ims",
    "photos",
    "groups",
    "entitlements",
    "roles",
    "x509Certificates",
)


@dataclass
class User:
    """
    SCIM User 资源

    - userName 必填 (本地构建时校验，解析响应时跳过)
    - extensions: 以 schema URN 为 key 的扩展属性，原样透传
    """
    userName: str

    id: str | None = None
    externalId: str | None = None
    displayName: str | None = None
    nickName: str | None = None
    profileUrl: str | None = None
    title: str | None = None
    userType: str | None = None
    preferredLanguage: str | None = None
    locale: str | None = None
    timezone: str | None = None
    active: bool | None = None
    password: str | None = None

    name: Name | None = None

    emails: list[MultiValuedAttribute] | None = None
    phoneNumbers: list[MultiValuedAttribute] | None = None
    ims: list[MultiValuedAttribute] | None = None
    photos: list[MultiValuedAttribute] | None = None
    groups: list[MultiValuedAttribute] | None = None
    entitlements: list[MultiValuedAttribute] | None = None
    roles: list[MultiValuedAttribute] | None = None
    x509Certificates: list[MultiValuedAttribute] | None = None
    addresses: list[Address] | None = None

    extensions: dict[str, dict] | None = None

    # 只读
    meta: Meta | None = None
    schemas: list[str] | None = None

    # 内部标记，跳过验证（用于 from_dict）
    _skip_validation: bool = field(default=False, repr=False, compare=False)

    def __post_init__(self):
        if self._skip_validation:
            return
        # 延迟导入，errors 依赖本模块
        from .errors import InvalidAttributeError
        if not self.userName:
            raise InvalidAttributeError("userName 是必填字段")

    def to_dict(self, include_id: bool = True, schemas: list[str] | None = None) -> dict:
        """
        转换为 API 请求格式

        Args:
            include_id: 是否包含 id
            schemas: 覆盖 schemas，为 None 时使用自身的 schemas
        """
        d: dict = {}

        schemas = schemas if schemas is not None else self.schemas
        if schemas:
            d["schemas"] = list(schemas)
        if include_id and self.id is not None:
            d["id"] = self.id

        d["userName"] = self.userName

        for key in SIMPLE_USER_ATTRIBUTES:
            value = getattr(self, key)
            if value is not None:
                d[key] = value

        if self.name is not None:
            name_dict = self.name.to_dict()
            if name_dict:
                d["name"] = name_dict

        for key in MULTI_VALUED_USER_ATTRIBUTES:
            values = getattr(self, key)
            if values:
                d[key] = [v.to_dict() for v in values]
        if self.addresses:
            d["addresses"] = [a.to_dict() for a in self.addresses]

        if self.extensions:
            for urn, ext in self.extensions.items():
                d[urn] = dict(ext)

        if self.meta is not None:
            meta_dict = self.meta.to_dict()
            if meta_dict:
                d["meta"] = meta_dict

        return d

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        """从 API 响应解析"""
        name = None
        if data.get("name"):
            name = Name.from_dict(data["name"])

        multi_valued = {}
        for key in MULTI_VALUED_USER_ATTRIBUTES:
            if data.get(key):
                multi_valued[key] = [MultiValuedAttribute.from_dict(v) for v in data[key]]

        addresses = None
        if data.get("addresses"):
            addresses = [Address.from_dict(a) for a in data["addresses"]]

        extensions = {
            key: value for key, value in data.items()
            if key.startswith("urn:") and key not in CORE_SCHEMAS and isinstance(value, dict)
        }

        meta = None
        if data.get("meta"):
            meta = Meta.from_dict(data["meta"])

        return cls(
            id=data.get("id"),
            userName=data.get("userName", ""),
            **{key: data.get(key) for key in SIMPLE_USER_ATTRIBUTES},
            name=name,
            **multi_valued,
            addresses=addresses,
            extensions=extensions or None,
            meta=meta,
            schemas=data.get("schemas"),
            _skip_validation=True,  # API 响应不验证
        )


# ============ 旧版接口 (OSIAM 2.x) ============

@dataclass
class BasicUser:
    """
    /me 端点返回的精简用户信息

    已废弃：OSIAM 3 使用 /Me 返回完整 User。
    """
    id: str
    userName: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    link: str | None = None
    gender: str | None = None
    locale: str | None = None
    timezone: int | None = None
    verified: bool | None = None
    updated_time: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BasicUser":
        return cls(
            id=data.get("id", ""),
            userName=data.get("userName"),
            name=data.get("name"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            email=data.get("email"),
            link=data.get("link"),
            gender=data.get("gender"),
            locale=data.get("locale"),
            timezone=data.get("timezone"),
            verified=data.get("verified"),
            updated_time=parse_date(data.get("updated_time")),
        )


@dataclass
class UpdateUser:
    """
    旧版 PATCH 请求体

    OSIAM 3 已移除 PATCH，仅为兼容 OSIAM 2 保留。
    - replace: 要新增/替换的单值属性 (name 等复合属性传 dict)
    - add: 要新增的多值条目
    - delete_values: 要删除的多值条目 (按 value 匹配)
    - delete_attributes: 要整体删除的属性，写入 meta.attributes
    """
    replace: dict = field(default_factory=dict)
    add: dict[str, list[MultiValuedAttribute]] = field(default_factory=dict)
    delete_values: dict[str, list[str]] = field(default_factory=dict)
    delete_attributes: list[str] = field(default_factory=list)

    def update_field(self, attribute: str, value) -> "UpdateUser":
        self.replace[attribute] = value
        return self

    def add_value(self, attribute: str, value: MultiValuedAttribute) -> "UpdateUser":
        self.add.setdefault(attribute, []).append(value)
        return self

    def delete_value(self, attribute: str, value: str) -> "UpdateUser":
        self.delete_values.setdefault(attribute, []).append(value)
        return self

    def delete_attribute(self, attribute: str) -> "UpdateUser":
        self.delete_attributes.append(attribute)
        return self

    def to_dict(self, schema: str = USER_SCHEMA) -> dict:
        d: dict = {"schemas": [schema]}
        d.update(self.replace)

        for attribute in list(self.add) + [a for a in self.delete_values if a not in self.add]:
            entries = [v.to_dict() for v in self.add.get(attribute, [])]
            entries += [{"value": v, "operation": "delete"} for v in self.delete_values.get(attribute, [])]
            d[attribute] = entries

        if self.delete_attributes:
            d["meta"] = {"attributes": list(self.delete_attributes)}
        return d


# ============ 响应类型 ============

@dataclass
class SearchResult:
    """
    列表/搜索响应

    start_index 按 SCIM 约定从 1 开始
    """
    total_results: int
    resources: list[User]
    items_per_page: int | None = None
    start_index: int | None = None
    schemas: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SearchResult":
        return cls(
            total_results=data.get("totalResults", 0),
            resources=[User.from_dict(r) for r in data.get("Resources", [])],
            items_per_page=data.get("itemsPerPage"),
            start_index=data.get("startIndex"),
            schemas=data.get("schemas"),
        )


@dataclass
class ErrorResponse:
    """
    错误响应

    OSIAM 3 返回 SCIM 2 格式 (status/detail)，
    OSIAM 2 返回 error_code/description。
    """
    status: int
    detail: str | None = None
    scim_type: str | None = None
    error_code: str | None = None

    @classmethod
    def from_dict(cls, data: dict, status_code: int = 0) -> "ErrorResponse":
        status = data.get("status", status_code)
        try:
            status = int(status)
        except (TypeError, ValueError):
            status = status_code
        return cls(
            status=status,
            detail=data.get("detail") or data.get("description") or data.get("message"),
            scim_type=data.get("scimType"),
            error_code=data.get("error_code"),
        )

    def __str__(self) -> str:
        return f"[{self.status}] {self.detail or 'Unknown error'}"
