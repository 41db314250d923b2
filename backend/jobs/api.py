from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from jobs.models import Job
from jobs.queue import requeue_job
from jobs.serializers import JobSerializer


class JobViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = JobSerializer
    permission_classes = [permissions.IsAdminUser]
    filterset_fields = ["status", "task"]
    ordering_fields = ["run_at", "updated_at", "attempts"]
    ordering = ["-updated_at"]
    queryset = Job.objects.all()

    @action(detail=True, methods=["post"])
    def requeue(self, request, pk=None):
        job = self.get_object()
        if job.status != Job.FAILED:
            return Response(
                {"detail": "Only failed jobs can be requeued."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        requeue_job(job)
        return Response(self.get_serializer(job).data)
