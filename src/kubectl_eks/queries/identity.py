"""Who the current credentials are, to AWS and to the Kubernetes API."""

from __future__ import annotations

import logging

from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import KubernetesIdentity

logger = logging.getLogger(__name__)


def get_kubernetes_identity(clients: KubeClients) -> KubernetesIdentity:
    """Ask the API server via ``SelfSubjectReview``.

    A failed review is reported in ``error`` so the AWS half of the
    identity can still be shown.
    """
    from kubernetes import client

    try:
        review = clients.authentication().create_self_subject_review(
            client.V1SelfSubjectReview(),
        )
    except Exception as exc:
        logger.debug("SelfSubjectReview failed: %s", exc)
        return KubernetesIdentity(error=str(exc))

    user = review.status.user_info if review.status else None
    if user is None:
        return KubernetesIdentity()
    return KubernetesIdentity(
        username=user.username or "",
        uid=user.uid or "",
        groups=list(user.groups or []),
    )
