"""
OSIAM Client

OSIAM (SCIM 2) 资源服务器的 Python 客户端：User 管理与查询构建。
"""

from .models import (
    AccessToken,
    Address,
    BasicUser,
    ErrorResponse,
    Meta,
    MultiValuedAttribute,
    Name,
    SearchResult,
    UpdateUser,
    User,
)

from .errors import (
    BadRequestError,
    ConflictError,
    ConnectionInitializationError,
    ForbiddenError,
    InvalidAttributeError,
    NoResultError,
    OsiamClientError,
    OsiamRequestError,
    QueryStateError,
    UnauthorizedError,
)

from .config import OsiamConfig, Version, load_config
from .schema import ResourceType
from .query import Filter, Query, QueryBuilder, SortOrder
from .client import OsiamUserService

__all__ = [
    # Client
    "OsiamUserService",
    "Version",
    # Config
    "OsiamConfig",
    "load_config",
    # Query
    "QueryBuilder",
    "Filter",
    "Query",
    "SortOrder",
    "ResourceType",
    # Models
    "AccessToken",
    "User",
    "Name",
    "Meta",
    "MultiValuedAttribute",
    "Address",
    "BasicUser",
    "UpdateUser",
    "SearchResult",
    "ErrorResponse",
    # Errors
    "OsiamClientError",
    "InvalidAttributeError",
    "QueryStateError",
    "ConnectionInitializationError",
    "OsiamRequestError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NoResultError",
    "ConflictError",
]
