from bot.middlewares.db_middleware import DatabaseMiddleware
from bot.middlewares.auth_middleware import PrincipalMiddleware, IsAdmin, IsCountry
from bot.middlewares.rate_limit_middleware import RateLimitMiddleware

__all__ = [
    "DatabaseMiddleware", "PrincipalMiddleware", "IsAdmin", "IsCountry",
    "RateLimitMiddleware",
]
