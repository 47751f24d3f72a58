"""Builder for AWS provider instances."""

from __future__ import annotations

from typing import Any

from kubernetes import client, config

from ..services.aws.client import AWSProvider
from ..utils.secrets import get_optional_secret_value, get_secret_value


def create_provider_from_spec(
    spec: dict[str, Any],
    meta: dict[str, Any],
    region: str,
) -> AWSProvider:
    """Create an AWS provider instance from CRD spec.

    Without a credentialsSecretRef the default boto3 credential chain is used
    (IRSA, instance profile, environment).

    Args:
        spec: StaticSite CRD spec
        meta: Resource metadata
        region: Region of the content bucket

    Returns:
        Configured AWS provider instance

    Raises:
        ValueError: If the credentials secret is incomplete
    """
    secret_ref = spec.get("credentialsSecretRef") or {}
    secret_name = secret_ref.get("name")
    if not secret_name:
        return AWSProvider(region=region)

    # Get Kubernetes API client
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    api = client.CoreV1Api()
    namespace = secret_ref.get("namespace") or meta.get("namespace", "default")

    access_key = get_secret_value(api, namespace, secret_name, secret_ref.get("accessKeyKey", "access-key"))
    secret_key = get_secret_value(api, namespace, secret_name, secret_ref.get("secretKeyKey", "secret-key"))
    session_token = get_optional_secret_value(
        api, namespace, secret_name, secret_ref.get("sessionTokenKey", "session-token"),
    )

    return AWSProvider(
        region=region,
        access_key=access_key,
        secret_key=secret_key,
        session_token=session_token,
    )
