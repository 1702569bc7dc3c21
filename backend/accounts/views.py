from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import CompanyMembership
from .serializers import CompanySerializer, MembershipSerializer, SwitchCompanySerializer


class MeView(APIView):
    """GET /api/auth/me/ -> current user, active company and membership."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        membership = None
        if user.active_company_id:
            membership = CompanyMembership.objects.filter(
                user=user,
                company_id=user.active_company_id,
                is_active=True,
            ).select_related("company").prefetch_related("permissions").first()
        return Response({
            "email": user.email,
            "name": user.name,
            "active_company": CompanySerializer(user.active_company).data if user.active_company else None,
            "membership": MembershipSerializer(membership).data if membership else None,
        })


class SwitchCompanyView(APIView):
    """POST /api/auth/switch-company/ -> change the tenant used by later requests."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = SwitchCompanySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = CompanyMembership.objects.filter(
            user=request.user,
            company__public_id=serializer.validated_data["company_id"],
            is_active=True,
        ).select_related("company").first()
        if not membership:
            return Response(
                {"detail": "You are not an active member of that company.", "code": "forbidden"},
                status=status.HTTP_403_FORBIDDEN,
            )

        request.user.active_company = membership.company
        request.user.save(update_fields=["active_company"])
        return Response(CompanySerializer(membership.company).data)
