from rest_framework import serializers

from .models import Company, CompanyMembership


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ["public_id", "name", "slug", "default_currency", "is_active"]


class MembershipSerializer(serializers.ModelSerializer):
    company = CompanySerializer(read_only=True)
    permissions = serializers.SlugRelatedField(many=True, read_only=True, slug_field="code")

    class Meta:
        model = CompanyMembership
        fields = ["public_id", "company", "role", "is_active", "permissions"]


class SwitchCompanySerializer(serializers.Serializer):
    company_id = serializers.UUIDField()
