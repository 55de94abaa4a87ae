"""
Offset/limit slicing and named orderings shared by the list endpoints.
"""
from rest_framework.exceptions import ValidationError

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _parse_non_negative(params, name, default):
    raw = params.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError({name: 'Must be an integer.'})
    if value < 0:
        raise ValidationError({name: 'Must not be negative.'})
    return value


class OffsetLimitOrderingMixin:
    """
    Apply ``?order=``, ``?offset=`` and ``?limit=`` to a list view's queryset.

    Subclasses declare ``orderings`` (name -> order_by fields) and
    ``default_ordering``. Unknown order names fall back to the default.
    """
    orderings = {
        'newest': ('-created_at',),
        'oldest': ('created_at',),
    }
    default_ordering = 'newest'

    def order_and_slice(self, queryset):
        params = self.request.query_params
        offset = _parse_non_negative(params, 'offset', 0)
        limit = min(_parse_non_negative(params, 'limit', DEFAULT_LIMIT), MAX_LIMIT)

        order = params.get('order', self.default_ordering)
        fields = self.orderings.get(order, self.orderings[self.default_ordering])
        return queryset.order_by(*fields)[offset:offset + limit]
