"""
OSIAM 客户端错误

错误分类:
- InvalidAttributeError: 参数/查询属性非法，调用时同步抛出
- QueryStateError: QueryBuilder 调用顺序错误
- OsiamRequestError 及其子类: 服务端拒绝请求 (400/401/403/404/409/...)
- ConnectionInitializationError: 传输层失败 (网络、响应体无法解析)

不做任何重试，重试策略交给调用方。
"""

from httpx import Response

from .models import AccessToken, ErrorResponse


class OsiamClientError(Exception):
    """OSIAM 客户端错误基类"""
    def __init__(self, message: str, error: ErrorResponse | None = None):
        super().__init__(message)
        self.error = error


class InvalidAttributeError(OsiamClientError, ValueError):
    """属性非法或必填参数为空"""
    pass


class QueryStateError(OsiamClientError):
    """QueryBuilder 状态错误"""
    pass


class ConnectionInitializationError(OsiamClientError):
    """无法完成请求 (网络错误或响应无法解析)"""
    pass


class OsiamRequestError(OsiamClientError):
    """服务端返回非 2xx 状态"""
    def __init__(self, message: str, status_code: int, error: ErrorResponse | None = None):
        super().__init__(message, error)
        self.status_code = status_code


class BadRequestError(OsiamRequestError):
    pass


class UnauthorizedError(OsiamRequestError):
    """token 被拒绝或已过期，需要重新认证"""
    pass


class ForbiddenError(OsiamRequestError):
    """token 的 scope 不足"""
    pass


class NoResultError(OsiamRequestError):
    """资源不存在"""
    pass


class ConflictError(OsiamRequestError):
    pass


_STATUS_ERRORS: dict[int, type[OsiamRequestError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NoResultError,
    409: ConflictError,
}


def check_response(resp: Response, access_token: AccessToken | None = None) -> None:
    """
    解释响应状态，非 2xx 时抛出对应错误

    Args:
        resp: HTTP 响应
        access_token: 本次请求使用的 token，用于 401 时判断是否过期

    Raises:
        OsiamRequestError: 状态码对应的子类
    """
    if resp.is_success:
        return

    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = ErrorResponse.from_dict(data, resp.status_code)
    else:
        error = ErrorResponse(status=resp.status_code, detail=resp.text or None)

    status = resp.status_code
    if status == 401 and access_token is not None and access_token.is_expired():
        message = "Your access token has expired"
    elif status == 401:
        message = error.detail or "You are not authorized to access OSIAM. Please make sure your access token is valid"
    elif status == 403:
        message = error.detail or "Insufficient scope to perform this operation"
    elif status == 404:
        message = error.detail or "No resource found"
    else:
        message = str(error)

    error_cls = _STATUS_ERRORS.get(status, OsiamRequestError)
    raise error_cls(message, status, error)
