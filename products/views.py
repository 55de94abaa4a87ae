"""
Product API Views.

Implements:
- GET /products - List with category filter, ordering and offset/limit
- POST /products - Create a product
- GET/PATCH/DELETE /products/{id} - Single product operations
"""
from rest_framework import generics

from core.listing import OffsetLimitOrderingMixin
from .models import Product
from .serializers import ProductSerializer


class ProductListCreateView(OffsetLimitOrderingMixin, generics.ListCreateAPIView):
    """
    GET: List products

    Query Parameters:
        - category: Filter by category (e.g. ELECTRONICS)
        - order: newest (default), oldest, priceLowest, priceHighest
        - offset, limit: Window into the ordered list
    """
    serializer_class = ProductSerializer
    orderings = {
        'newest': ('-created_at',),
        'oldest': ('created_at',),
        'priceLowest': ('price', '-created_at'),
        'priceHighest': ('-price', '-created_at'),
    }

    def get_queryset(self):
        queryset = Product.objects.all()
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        return self.order_and_slice(queryset)


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PATCH: Update product fields
    DELETE: Delete a product
    """
    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']
