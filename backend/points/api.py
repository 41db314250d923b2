from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from core.throttling import PointsBalanceThrottle
from points.serializers import PointsLedgerEntrySerializer
from points.services import points_balance, recent_entries


class PointsBalanceView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [PointsBalanceThrottle]

    def get(self, request):
        entries = recent_entries(request.user)
        return Response(
            {
                "balance": points_balance(request.user),
                "entries": PointsLedgerEntrySerializer(entries, many=True).data,
            }
        )
