"""
可查询属性表

每种资源类型对应一组合法属性名，外加三个固定的复合前缀：
- meta.    -> META_ATTRIBUTES
- emails.  -> MULTI_VALUED_ATTRIBUTES
- name.    -> NAME_ATTRIBUTES

属性名比较不区分大小写。

根属性表包含 SCIM 通用属性 id 和 externalId，旧版客户端只允许 User 自身声明的字段，不能按这两个属性查询。
"""

from enum import Enum


class ResourceType(str, Enum):
    USER = "User"
    GROUP = "Group"


def _lowered(*names: str) -> frozenset[str]:
    return frozenset(n.lower() for n in names)


USER_ATTRIBUTES = _lowered(
    "id",
    "externalId",
    "userName",
    "name",
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
    "emails",
    "phoneNumbers",
    "ims",
    "photos",
    "addresses",
    "groups",
    "entitlements",
    "roles",
    "x509Certificates",
    "extensions",
)

GROUP_ATTRIBUTES = _lowered(
    "id",
    "externalId",
    "displayName",
    "members",
)

META_ATTRIBUTES = _lowered(
    "created",
    "lastModified",
    "location",
    "version",
    "resourceType",
    "attributes",
)

NAME_ATTRIBUTES = _lowered(
    "formatted",
    "familyName",
    "givenName",
    "middleName",
    "honorificPrefix",
    "honorificSuffix",
)

MULTI_VALUED_ATTRIBUTES = _lowered(
    "value",
    "display",
    "primary",
    "type",
    "operation",
    "ref",
)

ROOT_ATTRIBUTES: dict[ResourceType, frozenset[str]] = {
    ResourceType.USER: USER_ATTRIBUTES,
    ResourceType.GROUP: GROUP_ATTRIBUTES,
}

NESTED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "meta.": META_ATTRIBUTES,
    "emails.": MULTI_VALUED_ATTRIBUTES,
    "name.": NAME_ATTRIBUTES,
}


def is_attribute_valid(attribute: str, attributes: frozenset[str]) -> bool:
    """
    检查属性名是否合法

    以已知前缀开头时，去掉第一个 "." 之前的部分，递归检查对应的子属性表；
    递归时仍先匹配前缀，所以 "meta.name.givenName" 会按 name 表检查。

    未知前缀 (如 "phoneNumbers.value") 不做拆分，整体与当前属性表比较，
    因为属性表里没有带 "." 的名字，结果总是不合法。
    """
    for prefix, nested in NESTED_ATTRIBUTES.items():
        if attribute.startswith(prefix):
            return is_attribute_valid(attribute[len(prefix):], nested)
    return attribute.lower() in attributes
