"""Storage provisioner: the private content bucket."""

from __future__ import annotations

import logging

from ..constants import LABEL_MANAGED_BY, MANAGED_BY_VALUE, OBJECT_OWNERSHIP, PUBLIC_ACCESS_BLOCK
from ..services.base import SiteProvider
from ..utils.errors import ConflictError
from .models import BucketState, SiteConfig

logger = logging.getLogger(__name__)


def is_managed(tags: dict[str, str]) -> bool:
    return tags.get(LABEL_MANAGED_BY) == MANAGED_BY_VALUE


def ensure_bucket(provider: SiteProvider, config: SiteConfig, owned: bool) -> tuple[BucketState, bool]:
    """Converge the content bucket to its fixed desired state.

    The public access block and ownership mode are constants; nothing in the
    site configuration can relax them.

    Args:
        provider: Cloud provider
        config: Site configuration
        owned: Whether the state snapshot already records this bucket

    Returns:
        Tuple of (bucket state, whether any mutating call was made)

    Raises:
        ConflictError: If the bucket exists but was not created by this operator
    """
    name = config.bucket_name
    changed = False

    if provider.bucket_exists(name):
        if not owned and not is_managed(provider.get_bucket_tags(name)):
            raise ConflictError(
                f"Bucket {name} already exists and is not managed by this operator"
            )
    else:
        provider.create_bucket(name, config.region)
        provider.set_bucket_tags(name, {LABEL_MANAGED_BY: MANAGED_BY_VALUE})
        changed = True

    if provider.get_public_access_block(name) != PUBLIC_ACCESS_BLOCK:
        logger.info(f"Restricting public access on bucket {name}")
        provider.put_public_access_block(name, dict(PUBLIC_ACCESS_BLOCK))
        changed = True

    if provider.get_bucket_ownership(name) != OBJECT_OWNERSHIP:
        provider.put_bucket_ownership(name, OBJECT_OWNERSHIP)
        changed = True

    if provider.get_bucket_versioning(name) != "Enabled":
        provider.set_bucket_versioning(name, True)
        changed = True

    state = BucketState(
        name=name,
        region=config.region,
        versioning="Enabled",
        public_access_block=dict(PUBLIC_ACCESS_BLOCK),
        ownership=OBJECT_OWNERSHIP,
    )
    return state, changed


def destroy_bucket(provider: SiteProvider, name: str, force: bool) -> bool:
    """Delete the content bucket.

    Args:
        provider: Cloud provider
        name: Bucket name
        force: Empty the bucket first if it holds objects

    Returns:
        True if the bucket was deleted, False if it was already gone

    Raises:
        ConflictError: If the bucket is not empty and force is not set
    """
    if not provider.bucket_exists(name):
        return False

    if not provider.is_bucket_empty(name):
        if not force:
            raise ConflictError(f"Bucket {name} is not empty. Set forceDestroy to delete its contents.")
        provider.empty_bucket(name)

    provider.delete_bucket(name)
    return True
