"""
Soltip Rate Limiting

IP-keyed DRF throttles, one per limiter scope. Rates are configured in
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] and accept a window multiplier,
e.g. ``100/15m`` allows 100 requests per 15 minutes.

All throttles are bypassed when settings.RATE_LIMIT_ENABLED is False
(the development default).
"""

import re

from django.conf import settings
from rest_framework.throttling import SimpleRateThrottle

_PERIODS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}
_PERIOD_PATTERN = re.compile(r'^(\d*)([smhd])')


class IPRateThrottle(SimpleRateThrottle):
    """Base throttle keyed on the client IP address."""

    def parse_rate(self, rate):
        if rate is None:
            return (None, None)
        num, period = rate.split('/')
        match = _PERIOD_PATTERN.match(period)
        if match is None:
            raise ValueError(f"Invalid throttle rate: {rate}")
        multiplier = int(match.group(1) or 1)
        return int(num), multiplier * _PERIODS[match.group(2)]

    def get_cache_key(self, request, view):
        return self.cache_format % {'scope': self.scope, 'ident': self.get_ident(request)}

    def allow_request(self, request, view):
        if not settings.RATE_LIMIT_ENABLED:
            return True
        return super().allow_request(request, view)


class GlobalRateThrottle(IPRateThrottle):
    scope = 'global'


class AuthRateThrottle(IPRateThrottle):
    scope = 'auth'


class PasswordResetRateThrottle(IPRateThrottle):
    scope = 'password_reset'


class ApiRateThrottle(IPRateThrottle):
    scope = 'api'


class AdminRateThrottle(IPRateThrottle):
    scope = 'admin'


class FinancialRateThrottle(IPRateThrottle):
    scope = 'financial'


class UserCreationRateThrottle(IPRateThrottle):
    scope = 'user_creation'
