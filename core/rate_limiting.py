"""
Redis-based rate limiting for write endpoints.
Implements a fixed window counter per view and client.
"""
import logging
from functools import lru_cache

import redis
from django.conf import settings
from django.http import JsonResponse
from rest_framework import status

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_redis_client():
    """Return a shared Redis client, or None when Redis cannot be reached."""
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5
        )
        client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"Redis connection failed: {e}. Rate limiting will be disabled.")
        return None
    return client


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR', 'unknown')
    return ip


class RateLimitMixin:
    """
    Mixin for class-based views that limits requests per client.

    Only methods listed in ``rate_limited_methods`` are counted. The limit
    is read from the setting named by ``rate_limit_setting`` when present.

    Usage:
        class OrderListCreateView(RateLimitMixin, generics.ListCreateAPIView):
            rate_limit_setting = 'ORDER_RATE_LIMIT'
    """
    rate_limit_max_requests = 20
    rate_limit_window_seconds = 60
    rate_limit_setting = None
    rate_limited_methods = ('POST',)

    def get_rate_limit(self) -> int:
        if self.rate_limit_setting:
            return getattr(settings, self.rate_limit_setting, self.rate_limit_max_requests)
        return self.rate_limit_max_requests

    def rate_limit_key(self, request, *args, **kwargs) -> str:
        return f"rate_limit:{self.__class__.__name__}:{get_client_ip(request)}"

    def dispatch(self, request, *args, **kwargs):
        if request.method not in self.rate_limited_methods:
            return super().dispatch(request, *args, **kwargs)
        if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
            return super().dispatch(request, *args, **kwargs)

        client = get_redis_client()
        if client is None:
            return super().dispatch(request, *args, **kwargs)

        max_requests = self.get_rate_limit()
        try:
            key = self.rate_limit_key(request, *args, **kwargs)
            current_count = client.incr(key)
            if current_count == 1:
                client.expire(key, self.rate_limit_window_seconds)
            ttl = client.ttl(key)
        except redis.RedisError as e:
            # Fail open
            logger.error(f"Redis error in rate limiting: {e}")
            return super().dispatch(request, *args, **kwargs)

        if current_count > max_requests:
            logger.warning(f"Rate limit exceeded for {key}")
            response = JsonResponse(
                {
                    'error': 'Rate limit exceeded',
                    'detail': f'Maximum {max_requests} requests per {self.rate_limit_window_seconds} seconds allowed.',
                    'retry_after': ttl
                },
                status=status.HTTP_429_TOO_MANY_REQUESTS,
                headers={
                    'X-RateLimit-Limit': str(max_requests),
                    'X-RateLimit-Remaining': '0',
                    'X-RateLimit-Reset': str(ttl),
                    'Retry-After': str(ttl)
                }
            )
            return response

        response = super().dispatch(request, *args, **kwargs)
        response['X-RateLimit-Limit'] = str(max_requests)
        response['X-RateLimit-Remaining'] = str(max(0, max_requests - current_count))
        response['X-RateLimit-Reset'] = str(ttl)
        return response
