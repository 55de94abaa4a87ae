"""
Django Admin configuration for order models.
"""
from django.contrib import admin
from .models import Order, OrderItem
from .services import calculate_order_total


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'unit_price', 'subtotal']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def subtotal(self, obj):
        return f"${obj.subtotal}"
    subtotal.short_description = 'Subtotal'


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'status', 'total', 'item_count', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['id', 'user__email']
    ordering = ['-created_at']
    readonly_fields = ['user', 'created_at', 'updated_at']
    inlines = [OrderItemInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user').prefetch_related('items')

    def total(self, obj):
        return f"${calculate_order_total(obj.items.all())}"
    total.short_description = 'Total'

    def item_count(self, obj):
        return obj.item_count
    item_count.short_description = 'Items'
