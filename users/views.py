"""
User API Views.

Implements:
- GET/POST /users - List and create users (with preference)
- GET/PATCH/DELETE /users/{id}
- GET/POST /users/{id}/saved-products - Read and toggle saved products
- GET /users/{id}/orders
"""
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.listing import OffsetLimitOrderingMixin
from core.rate_limiting import RateLimitMixin, get_client_ip
from orders.models import Order
from orders.serializers import OrderListSerializer
from products.serializers import ProductSerializer
from .models import User
from .serializers import UserSerializer, SavedProductToggleSerializer
from .services import get_saved_products, toggle_saved_product


class UserListCreateView(OffsetLimitOrderingMixin, generics.ListCreateAPIView):
    """
    GET: List users, newest first by default (order=oldest reverses)
    POST: Create a user and its preference atomically
    """
    serializer_class = UserSerializer

    def get_queryset(self):
        return self.order_and_slice(User.objects.select_related('preference'))


class UserDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a user
    PATCH: Update user fields and nested preference
    DELETE: Delete a user (preference and orders cascade)
    """
    serializer_class = UserSerializer
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        return User.objects.select_related('preference')


class SavedProductsView(RateLimitMixin, APIView):
    """
    GET: Current saved products of a user
    POST: Toggle one product in the saved set

    Request Body (POST):
    {
        "productId": "1d6c6a3e-..."
    }
    """
    rate_limit_setting = 'TOGGLE_RATE_LIMIT'

    def rate_limit_key(self, request, *args, **kwargs) -> str:
        return f"rate_limit:saved_products:{kwargs.get('pk')}:{get_client_ip(request)}"

    def get(self, request, pk):
        products = get_saved_products(pk)
        return Response(ProductSerializer(products, many=True).data)

    def post(self, request, pk):
        serializer = SavedProductToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        products = toggle_saved_product(pk, serializer.validated_data['product_id'])
        return Response(ProductSerializer(products, many=True).data, status=status.HTTP_200_OK)


class UserOrdersView(generics.ListAPIView):
    """
    GET: Orders placed by a user, newest first
    """
    serializer_class = OrderListSerializer

    def get_queryset(self):
        user = get_object_or_404(User, pk=self.kwargs['pk'])
        return Order.objects.filter(user=user).prefetch_related('items').order_by('-created_at')
