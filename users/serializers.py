"""
Serializers for user models.
"""
from rest_framework import serializers

from .models import User, Preference
from .services import create_user, update_user


class PreferenceSerializer(serializers.ModelSerializer):
    receiveEmail = serializers.BooleanField(source='receive_email', required=False)

    class Meta:
        model = Preference
        fields = ['receiveEmail']


class UserSerializer(serializers.ModelSerializer):
    """
    User with nested preference.

    The preference is created with the user and updated through the same
    PATCH request; both writes share one transaction.
    """
    firstName = serializers.CharField(source='first_name', max_length=100)
    lastName = serializers.CharField(source='last_name', max_length=100)
    address = serializers.CharField(max_length=300, required=False, allow_blank=True)
    preference = PreferenceSerializer(required=False)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'firstName', 'lastName', 'address',
            'preference', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id']

    def create(self, validated_data):
        preference_fields = validated_data.pop('preference', None)
        return create_user(validated_data, preference_fields)

    def update(self, instance, validated_data):
        preference_fields = validated_data.pop('preference', None)
        return update_user(instance, validated_data, preference_fields)


class SavedProductToggleSerializer(serializers.Serializer):
    """Request body for POST /users/{id}/saved-products"""
    productId = serializers.UUIDField(source='product_id')
