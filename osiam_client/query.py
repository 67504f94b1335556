"""
SCIM 查询构建器

按调用顺序拼接 filter 表达式，不做优先级处理，也不加括号:

    >>> query = (QueryBuilder(ResourceType.USER)
    ...     .query("name.familyName").equal_to("Doe")
    ...     .and_("active").equal_to("true")
    ...     .count_per_page(20)
    ...     .build())
    >>> str(query)
    'name.familyName eq "Doe" and active eq "true"&count=20'

注意: 值里的双引号不会转义。
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Self

from .errors import InvalidAttributeError, QueryStateError
from .models import format_date
from .schema import ROOT_ATTRIBUTES, ResourceType, is_attribute_valid


DEFAULT_START_INDEX = 0
DEFAULT_COUNT_PER_PAGE = 100


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class BuilderState(Enum):
    AWAITING_ATTRIBUTE = "awaiting_attribute"
    AWAITING_OPERATOR = "awaiting_operator"
    BUILT = "built"


@dataclass(frozen=True)
class Query:
    """
    构建完成的查询

    str(query) 得到 OSIAM 查询字符串，params() 得到 HTTP 查询参数。
    """
    filter: str = ""
    sort_order: SortOrder | None = None
    count: int = DEFAULT_COUNT_PER_PAGE
    start_index: int = DEFAULT_START_INDEX

    def params(self) -> dict:
        """只包含非默认值的参数"""
        p: dict = {}
        if self.filter:
            p["filter"] = self.filter
        if self.sort_order is not None:
            p["sortOrder"] = self.sort_order.value
        if self.count != DEFAULT_COUNT_PER_PAGE:
            p["count"] = self.count
        if self.start_index != DEFAULT_START_INDEX:
            p["startIndex"] = self.start_index
        return p

    def __str__(self) -> str:
        parts = [self.filter]
        if self.sort_order is not None:
            parts.append(f"&sortOrder={self.sort_order.value}")
        if self.count != DEFAULT_COUNT_PER_PAGE:
            parts.append(f"&count={self.count}")
        if self.start_index != DEFAULT_START_INDEX:
            parts.append(f"&startIndex={self.start_index}")
        return "".join(parts)

    @classmethod
    def parse(cls, text: str) -> "Query":
        """
        解析 str(query) 的输出

        filter 部分原样保留；值里含 "&" 时无法正确拆分。
        """
        filter_part, *rest = text.split("&")
        kwargs: dict = {}
        parsers = {
            "sortOrder": ("sort_order", SortOrder),
            "count": ("count", int),
            "startIndex": ("start_index", int),
        }
        for part in rest:
            key, _, value = part.partition("=")
            if key not in parsers:
                raise InvalidAttributeError(f"Unknown query parameter: {key}")
            field_name, parser = parsers[key]
            try:
                kwargs[field_name] = parser(value)
            except ValueError as e:
                raise InvalidAttributeError(f"Invalid value for {key}: {value!r}") from e
        return cls(filter=filter_part, **kwargs)


def _format_condition(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_date(value)
    return str(value)


class Filter:
    """
    已写入属性名、等待比较操作符的子上下文

    每个 Filter 只能使用一次，比较方法返回所属的 QueryBuilder。
    """

    def __init__(self, builder: "QueryBuilder"):
        self._builder = builder

    def _add_filter(self, operator: str, condition=None) -> "QueryBuilder":
        return self._builder._apply_filter(self, operator, condition)

    def equal_to(self, condition) -> "QueryBuilder":
        return self._add_filter(" eq ", condition)

    def contains(self, condition) -> "QueryBuilder":
        return self._add_filter(" co ", condition)

    def starts_with(self, condition) -> "QueryBuilder":
        return self._add_filter(" sw ", condition)

    def present(self) -> "QueryBuilder":
        """属性存在 (无值)"""
        return self._add_filter(" pr ")

    def greater_than(self, condition) -> "QueryBuilder":
        return self._add_filter(" gt ", condition)

    def greater_equals(self, condition) -> "QueryBuilder":
        return self._add_filter(" ge ", condition)

    def less_than(self, condition) -> "QueryBuilder":
        return self._add_filter(" lt ", condition)

    def less_equals(self, condition) -> "QueryBuilder":
        return self._add_filter(" le ", condition)


class QueryBuilder:
    """
    查询构建器

    状态:
    - AWAITING_ATTRIBUTE: 可以调用 query / and_ / or_ / build
    - AWAITING_OPERATOR: 必须先在返回的 Filter 上调用比较方法
    - BUILT: build() 之后不可再使用

    非线程安全，一个实例只用于一次构建。
    """

    def __init__(self, resource_type: ResourceType | str = ResourceType.USER):
        try:
            self.resource_type = ResourceType(resource_type)
        except ValueError as e:
            raise InvalidAttributeError(f"Unknown resource type: {resource_type}") from e
        self._attributes = ROOT_ATTRIBUTES[self.resource_type]
        self._parts: list[str] = []
        self._sort_order: SortOrder | None = None
        self._start_index = DEFAULT_START_INDEX
        self._count_per_page = DEFAULT_COUNT_PER_PAGE
        self._state = BuilderState.AWAITING_ATTRIBUTE
        self._pending: Filter | None = None

    @property
    def state(self) -> BuilderState:
        return self._state

    def _require(self, state: BuilderState) -> None:
        if self._state is BuilderState.BUILT:
            raise QueryStateError("QueryBuilder has already been built")
        if self._state is not state:
            raise QueryStateError(f"QueryBuilder is {self._state.value}, expected {state.value}")

    # ============ filter ============

    def query(self, attribute_name: str) -> Filter:
        """
        在属性上开始一个 filter 条件

        Raises:
            InvalidAttributeError: 属性不能用于查询
            QueryStateError: 上一个 Filter 还未完成
        """
        self._require(BuilderState.AWAITING_ATTRIBUTE)
        if not attribute_name or not is_attribute_valid(attribute_name, self._attributes):
            raise InvalidAttributeError("Querying for this attribute is not supported")

        self._parts.append(attribute_name)
        self._pending = Filter(self)
        self._state = BuilderState.AWAITING_OPERATOR
        return self._pending

    def and_(self, attribute_name: str) -> Filter:
        """逻辑与，先写入 " and " 再按 query() 校验"""
        self._require(BuilderState.AWAITING_ATTRIBUTE)
        self._parts.append(" and ")
        return self.query(attribute_name)

    def or_(self, attribute_name: str) -> Filter:
        """逻辑或，先写入 " or " 再按 query() 校验"""
        self._require(BuilderState.AWAITING_ATTRIBUTE)
        self._parts.append(" or ")
        return self.query(attribute_name)

    def _apply_filter(self, filter: Filter, operator: str, condition) -> Self:
        if self._state is BuilderState.BUILT:
            raise QueryStateError("QueryBuilder has already been built")
        if filter is not self._pending:
            raise QueryStateError("This filter has already been applied")

        self._parts.append(operator)
        if condition is not None:
            text = _format_condition(condition)
            if text:
                self._parts.append(f'"{text}"')

        self._pending = None
        self._state = BuilderState.AWAITING_ATTRIBUTE
        return self

    # ============ 排序 / 分页 ============

    def with_sort_order(self, sort_order: SortOrder | str) -> Self:
        self._require_not_built()
        self._sort_order = SortOrder(sort_order)
        return self

    def start_index(self, start_index: int) -> Self:
        self._require_not_built()
        self._start_index = start_index
        return self

    def count_per_page(self, count: int) -> Self:
        self._require_not_built()
        self._count_per_page = count
        return self

    def _require_not_built(self) -> None:
        if self._state is BuilderState.BUILT:
            raise QueryStateError("QueryBuilder has already been built")

    # ============ build ============

    def build(self) -> Query:
        """生成 Query，之后该构建器不可再使用"""
        self._require(BuilderState.AWAITING_ATTRIBUTE)
        self._state = BuilderState.BUILT
        return Query(
            filter="".join(self._parts),
            sort_order=self._sort_order,
            count=self._count_per_page,
            start_index=self._start_index,
        )
