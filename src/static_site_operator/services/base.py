"""Provider interface used by the resource nodes."""

from __future__ import annotations

from typing import Any, Protocol


class SiteProvider(Protocol):
    """Protocol defining the cloud operations the static site stack needs."""

    region: str

    def list_hosted_zones(self, domain: str) -> list[dict[str, Any]]:
        """List hosted zones starting at the given DNS name."""
        ...

    def get_record(self, zone_id: str, name: str, record_type: str) -> dict[str, Any] | None:
        """Get a single record set, or None if absent."""
        ...

    def upsert_record(self, zone_id: str, record_set: dict[str, Any]) -> None:
        """Create or replace a record set."""
        ...

    def delete_record(self, zone_id: str, record_set: dict[str, Any]) -> None:
        """Delete a record set."""
        ...

    def bucket_exists(self, name: str) -> bool:
        """Check if a bucket exists."""
        ...

    def create_bucket(self, name: str, region: str) -> None:
        """Create a bucket in the given region."""
        ...

    def get_bucket_tags(self, name: str) -> dict[str, str]:
        """Get bucket tags."""
        ...

    def set_bucket_tags(self, name: str, tags: dict[str, str]) -> None:
        """Set bucket tags."""
        ...

    def get_public_access_block(self, name: str) -> dict[str, bool]:
        """Get the public access block flags."""
        ...

    def put_public_access_block(self, name: str, flags: dict[str, bool]) -> None:
        """Set the public access block flags."""
        ...

    def get_bucket_ownership(self, name: str) -> str | None:
        """Get the object ownership mode."""
        ...

    def put_bucket_ownership(self, name: str, ownership: str) -> None:
        """Set the object ownership mode."""
        ...

    def get_bucket_versioning(self, name: str) -> str | None:
        """Get the versioning status."""
        ...

    def set_bucket_versioning(self, name: str, enabled: bool) -> None:
        """Set the versioning status."""
        ...

    def get_bucket_policy(self, name: str) -> dict[str, Any] | None:
        """Get the bucket policy."""
        ...

    def set_bucket_policy(self, name: str, policy: dict[str, Any]) -> None:
        """Set the bucket policy."""
        ...

    def delete_bucket_policy(self, name: str) -> None:
        """Delete the bucket policy."""
        ...

    def is_bucket_empty(self, name: str) -> bool:
        """Check if a bucket is empty."""
        ...

    def empty_bucket(self, name: str) -> None:
        """Delete all objects and versions in a bucket."""
        ...

    def delete_bucket(self, name: str) -> None:
        """Delete an empty bucket."""
        ...

    def find_origin_access_control(self, name: str) -> dict[str, Any] | None:
        """Find an origin access control by name."""
        ...

    def create_origin_access_control(self, config: dict[str, Any]) -> dict[str, Any]:
        """Create an origin access control."""
        ...

    def delete_origin_access_control(self, oac_id: str) -> None:
        """Delete an origin access control."""
        ...

    def get_distribution(self, distribution_id: str) -> dict[str, Any] | None:
        """Get a distribution and its ETag."""
        ...

    def find_distribution_by_alias(self, alias: str) -> dict[str, Any] | None:
        """Find the distribution serving an alias."""
        ...

    def create_distribution(self, config: dict[str, Any]) -> dict[str, Any]:
        """Create a distribution."""
        ...

    def update_distribution(self, distribution_id: str, config: dict[str, Any], etag: str) -> dict[str, Any]:
        """Replace a distribution's configuration."""
        ...

    def delete_distribution(self, distribution_id: str) -> None:
        """Disable and delete a distribution."""
        ...

    def find_certificates(self, domain: str) -> list[dict[str, Any]]:
        """List issued or pending certificates for a domain."""
        ...

    def request_certificate(self, domain: str, idempotency_token: str) -> str:
        """Request a DNS-validated certificate."""
        ...

    def describe_certificate(self, arn: str) -> dict[str, Any] | None:
        """Describe a certificate."""
        ...

    def delete_certificate(self, arn: str) -> None:
        """Delete a certificate."""
        ...
