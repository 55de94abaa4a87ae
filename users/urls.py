"""
URL routing for user API endpoints.
"""
from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    path('users', views.UserListCreateView.as_view(), name='user-list'),
    path('users/<uuid:pk>', views.UserDetailView.as_view(), name='user-detail'),
    path('users/<uuid:pk>/saved-products', views.SavedProductsView.as_view(), name='user-saved-products'),
    path('users/<uuid:pk>/orders', views.UserOrdersView.as_view(), name='user-orders'),
]
