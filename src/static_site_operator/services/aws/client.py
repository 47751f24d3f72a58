"""AWS client implementation for the static site stack."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ... import metrics
from ...constants import CERTIFICATE_REGION
from ...utils.rate_limit import rate_limit_aws

logger = logging.getLogger(__name__)

# Route53 and CloudFront are global services homed in us-east-1
GLOBAL_REGION = "us-east-1"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _same_name(left: str, right: str) -> bool:
    return left.rstrip(".").lower() == right.rstrip(".").lower()


class AWSProvider:
    """boto3-backed provider for Route53, S3, CloudFront and ACM."""

    def __init__(
        self,
        region: str,
        access_key: str | None = None,
        secret_key: str | None = None,
        session_token: str | None = None,
    ) -> None:
        """Initialize AWS provider.

        Args:
            region: Region of the content bucket
            access_key: Optional access key ID (default credential chain otherwise)
            secret_key: Optional secret access key
            session_token: Optional session token for temporary credentials
        """
        self.region = region

        session = boto3.session.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            aws_session_token=session_token,
        )
        # Retries are handled by call_with_retries; keep botocore's own budget small
        config = Config(retries={"mode": "standard", "max_attempts": 2})

        self.s3 = session.client("s3", region_name=region, config=config)
        self.route53 = session.client("route53", region_name=GLOBAL_REGION, config=config)
        self.cloudfront = session.client("cloudfront", region_name=GLOBAL_REGION, config=config)
        self.acm = session.client("acm", region_name=CERTIFICATE_REGION, config=config)

    def _call(self, api_type: str, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Invoke one API operation with rate limiting and call metrics."""
        start_time = time.time()
        try:
            response = rate_limit_aws(fn)(**kwargs)
            metrics.api_call_total.labels(api_type=api_type, operation=operation, result="success").inc()
            return response
        except ClientError:
            metrics.api_call_total.labels(api_type=api_type, operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type=api_type, operation=operation).observe(duration)

    # Route53

    def list_hosted_zones(self, domain: str) -> list[dict[str, Any]]:
        """List hosted zones starting at the given DNS name."""
        try:
            response = self._call(
                "route53", "list_hosted_zones_by_name", self.route53.list_hosted_zones_by_name,
                DNSName=domain,
            )
            return response.get("HostedZones", [])
        except ClientError as e:
            logger.error(f"Failed to list hosted zones for {domain}: {e}")
            raise

    def get_record(self, zone_id: str, name: str, record_type: str) -> dict[str, Any] | None:
        """Get a single record set, or None if absent."""
        try:
            response = self._call(
                "route53", "list_resource_record_sets", self.route53.list_resource_record_sets,
                HostedZoneId=zone_id,
                StartRecordName=name,
                StartRecordType=record_type,
                MaxItems="1",
            )
        except ClientError as e:
            logger.error(f"Failed to read record {name} {record_type} in zone {zone_id}: {e}")
            raise

        for record in response.get("ResourceRecordSets", []):
            if _same_name(record["Name"], name) and record["Type"] == record_type:
                return record
        return None

    def upsert_record(self, zone_id: str, record_set: dict[str, Any]) -> None:
        """Create or replace a record set."""
        self._change_record(zone_id, "UPSERT", record_set)

    def delete_record(self, zone_id: str, record_set: dict[str, Any]) -> None:
        """Delete a record set; missing records are ignored."""
        try:
            self._change_record(zone_id, "DELETE", record_set)
        except ClientError as e:
            if _error_code(e) == "InvalidChangeBatch" and "not found" in str(e):
                logger.info(f"Record {record_set['Name']} already absent from zone {zone_id}")
                return
            raise

    def _change_record(self, zone_id: str, action: str, record_set: dict[str, Any]) -> None:
        try:
            self._call(
                "route53", "change_resource_record_sets", self.route53.change_resource_record_sets,
                HostedZoneId=zone_id,
                ChangeBatch={"Changes": [{"Action": action, "ResourceRecordSet": record_set}]},
            )
            logger.info(f"{action} record {record_set['Name']} {record_set['Type']} in zone {zone_id}")
        except ClientError as e:
            logger.error(f"Failed to {action} record {record_set['Name']} in zone {zone_id}: {e}")
            raise

    # S3

    def bucket_exists(self, name: str) -> bool:
        """Check if bucket exists."""
        try:
            self._call("s3", "head_bucket", self.s3.head_bucket, Bucket=name)
            return True
        except ClientError as e:
            if _error_code(e) in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise

    def create_bucket(self, name: str, region: str) -> None:
        """Create a bucket in the given region."""
        create_params: dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit LocationConstraint
        if region and region != "us-east-1":
            create_params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._call("s3", "create_bucket", self.s3.create_bucket, **create_params)
            logger.info(f"Created bucket {name} in {region}")
        except ClientError as e:
            logger.error(f"Failed to create bucket {name}: {e}")
            raise

    def get_bucket_tags(self, name: str) -> dict[str, str]:
        """Get bucket tags."""
        try:
            response = self._call("s3", "get_bucket_tagging", self.s3.get_bucket_tagging, Bucket=name)
            return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}
        except ClientError as e:
            if _error_code(e) == "NoSuchTagSet":
                return {}
            logger.error(f"Failed to get tags for bucket {name}: {e}")
            raise

    def set_bucket_tags(self, name: str, tags: dict[str, str]) -> None:
        """Set bucket tags."""
        try:
            tag_set = [{"Key": k, "Value": v} for k, v in tags.items()]
            self._call(
                "s3", "put_bucket_tagging", self.s3.put_bucket_tagging,
                Bucket=name,
                Tagging={"TagSet": tag_set},
            )
        except ClientError as e:
            logger.error(f"Failed to set tags for bucket {name}: {e}")
            raise

    def get_public_access_block(self, name: str) -> dict[str, bool]:
        """Get the bucket's public access block flags ({} if unset)."""
        try:
            response = self._call("s3", "get_public_access_block", self.s3.get_public_access_block, Bucket=name)
            return response.get("PublicAccessBlockConfiguration", {})
        except ClientError as e:
            if _error_code(e) == "NoSuchPublicAccessBlockConfiguration":
                return {}
            logger.error(f"Failed to get public access block for bucket {name}: {e}")
            raise

    def put_public_access_block(self, name: str, flags: dict[str, bool]) -> None:
        """Set the bucket's public access block flags."""
        try:
            self._call(
                "s3", "put_public_access_block", self.s3.put_public_access_block,
                Bucket=name,
                PublicAccessBlockConfiguration=flags,
            )
        except ClientError as e:
            logger.error(f"Failed to set public access block for bucket {name}: {e}")
            raise

    def get_bucket_ownership(self, name: str) -> str | None:
        """Get the bucket's object ownership mode."""
        try:
            response = self._call(
                "s3", "get_bucket_ownership_controls", self.s3.get_bucket_ownership_controls, Bucket=name,
            )
            rules = response.get("OwnershipControls", {}).get("Rules", [])
            return rules[0].get("ObjectOwnership") if rules else None
        except ClientError as e:
            if _error_code(e) == "OwnershipControlsNotFoundError":
                return None
            logger.error(f"Failed to get ownership controls for bucket {name}: {e}")
            raise

    def put_bucket_ownership(self, name: str, ownership: str) -> None:
        """Set the bucket's object ownership mode."""
        try:
            self._call(
                "s3", "put_bucket_ownership_controls", self.s3.put_bucket_ownership_controls,
                Bucket=name,
                OwnershipControls={"Rules": [{"ObjectOwnership": ownership}]},
            )
        except ClientError as e:
            logger.error(f"Failed to set ownership controls for bucket {name}: {e}")
            raise

    def get_bucket_versioning(self, name: str) -> str | None:
        """Get bucket versioning status ("Enabled", "Suspended" or None)."""
        try:
            response = self._call("s3", "get_bucket_versioning", self.s3.get_bucket_versioning, Bucket=name)
            return response.get("Status")
        except ClientError as e:
            logger.error(f"Failed to get versioning for bucket {name}: {e}")
            raise

    def set_bucket_versioning(self, name: str, enabled: bool) -> None:
        """Set bucket versioning configuration."""
        try:
            self._call(
                "s3", "put_bucket_versioning", self.s3.put_bucket_versioning,
                Bucket=name,
                VersioningConfiguration={"Status": "Enabled" if enabled else "Suspended"},
            )
        except ClientError as e:
            logger.error(f"Failed to set versioning for bucket {name}: {e}")
            raise

    def get_bucket_policy(self, name: str) -> dict[str, Any] | None:
        """Get bucket policy.

        Returns:
            Policy document dict if policy exists, None if no policy is set
        """
        try:
            response = self._call("s3", "get_bucket_policy", self.s3.get_bucket_policy, Bucket=name)
            return json.loads(response["Policy"])
        except ClientError as e:
            if _error_code(e) == "NoSuchBucketPolicy":
                return None
            logger.error(f"Failed to get policy for bucket {name}: {e}")
            raise

    def set_bucket_policy(self, name: str, policy: dict[str, Any]) -> None:
        """Set bucket policy."""
        try:
            self._call(
                "s3", "put_bucket_policy", self.s3.put_bucket_policy,
                Bucket=name,
                Policy=json.dumps(policy),
            )
            logger.info(f"Applied bucket policy for {name}")
        except ClientError as e:
            logger.error(f"Failed to set policy for bucket {name}: {e}")
            raise

    def delete_bucket_policy(self, name: str) -> None:
        """Delete bucket policy."""
        try:
            self._call("s3", "delete_bucket_policy", self.s3.delete_bucket_policy, Bucket=name)
        except ClientError as e:
            logger.error(f"Failed to delete policy for bucket {name}: {e}")
            raise

    def is_bucket_empty(self, name: str) -> bool:
        """Check if a bucket holds no object versions or delete markers."""
        try:
            response = self._call(
                "s3", "list_object_versions", self.s3.list_object_versions, Bucket=name, MaxKeys=1,
            )
            return not response.get("Versions") and not response.get("DeleteMarkers")
        except ClientError as e:
            logger.error(f"Failed to check if bucket {name} is empty: {e}")
            raise

    def empty_bucket(self, name: str) -> None:
        """Empty a bucket by deleting all object versions and delete markers."""
        try:
            logger.info(f"Emptying bucket {name}")
            paginator = self.s3.get_paginator("list_object_versions")
            for page in paginator.paginate(Bucket=name):
                objects = [
                    {"Key": item["Key"], "VersionId": item["VersionId"]}
                    for item in page.get("Versions", []) + page.get("DeleteMarkers", [])
                ]
                # delete_objects accepts at most 1000 keys, which is also the page size
                if objects:
                    self._call(
                        "s3", "delete_objects", self.s3.delete_objects,
                        Bucket=name,
                        Delete={"Objects": objects, "Quiet": True},
                    )
            logger.info(f"Successfully emptied bucket {name}")
        except ClientError as e:
            logger.error(f"Failed to empty bucket {name}: {e}")
            raise

    def delete_bucket(self, name: str) -> None:
        """Delete an (empty) bucket."""
        try:
            self._call("s3", "delete_bucket", self.s3.delete_bucket, Bucket=name)
            logger.info(f"Successfully deleted bucket {name}")
        except ClientError as e:
            logger.error(f"Failed to delete bucket {name}: {e}")
            raise

    # CloudFront

    def find_origin_access_control(self, name: str) -> dict[str, Any] | None:
        """Find an origin access control by name."""
        try:
            paginator = self.cloudfront.get_paginator("list_origin_access_controls")
            for page in paginator.paginate():
                for item in page.get("OriginAccessControlList", {}).get("Items", []):
                    if item.get("Name") == name:
                        return item
            return None
        except ClientError as e:
            logger.error(f"Failed to list origin access controls: {e}")
            raise

    def create_origin_access_control(self, config: dict[str, Any]) -> dict[str, Any]:
        """Create an origin access control and return its summary."""
        try:
            response = self._call(
                "cloudfront", "create_origin_access_control", self.cloudfront.create_origin_access_control,
                OriginAccessControlConfig=config,
            )
            oac = response["OriginAccessControl"]
            logger.info(f"Created origin access control {config['Name']} ({oac['Id']})")
            return {"Id": oac["Id"], **oac["OriginAccessControlConfig"]}
        except ClientError as e:
            logger.error(f"Failed to create origin access control {config['Name']}: {e}")
            raise

    def delete_origin_access_control(self, oac_id: str) -> None:
        """Delete an origin access control."""
        try:
            response = self._call(
                "cloudfront", "get_origin_access_control", self.cloudfront.get_origin_access_control, Id=oac_id,
            )
            self._call(
                "cloudfront", "delete_origin_access_control", self.cloudfront.delete_origin_access_control,
                Id=oac_id,
                IfMatch=response["ETag"],
            )
            logger.info(f"Deleted origin access control {oac_id}")
        except ClientError as e:
            if _error_code(e) == "NoSuchOriginAccessControl":
                return
            logger.error(f"Failed to delete origin access control {oac_id}: {e}")
            raise

    def get_distribution(self, distribution_id: str) -> dict[str, Any] | None:
        """Get a distribution and its ETag.

        Returns:
            {"Distribution": ..., "ETag": ...} or None if the distribution is gone
        """
        try:
            response = self._call(
                "cloudfront", "get_distribution", self.cloudfront.get_distribution, Id=distribution_id,
            )
            return {"Distribution": response["Distribution"], "ETag": response["ETag"]}
        except ClientError as e:
            if _error_code(e) == "NoSuchDistribution":
                return None
            logger.error(f"Failed to get distribution {distribution_id}: {e}")
            raise

    def find_distribution_by_alias(self, alias: str) -> dict[str, Any] | None:
        """Find the distribution summary that serves the given alias."""
        try:
            paginator = self.cloudfront.get_paginator("list_distributions")
            for page in paginator.paginate():
                for item in page.get("DistributionList", {}).get("Items", []):
                    if alias in item.get("Aliases", {}).get("Items", []):
                        return item
            return None
        except ClientError as e:
            logger.error(f"Failed to list distributions: {e}")
            raise

    def create_distribution(self, config: dict[str, Any]) -> dict[str, Any]:
        """Create a distribution and return its description."""
        try:
            response = self._call(
                "cloudfront", "create_distribution", self.cloudfront.create_distribution,
                DistributionConfig=config,
            )
            distribution = response["Distribution"]
            logger.info(f"Created distribution {distribution['Id']} ({distribution['DomainName']})")
            return distribution
        except ClientError as e:
            logger.error(f"Failed to create distribution for {config.get('Aliases')}: {e}")
            raise

    def update_distribution(self, distribution_id: str, config: dict[str, Any], etag: str) -> dict[str, Any]:
        """Replace a distribution's configuration."""
        try:
            response = self._call(
                "cloudfront", "update_distribution", self.cloudfront.update_distribution,
                Id=distribution_id,
                IfMatch=etag,
                DistributionConfig=config,
            )
            logger.info(f"Updated distribution {distribution_id}")
            return response["Distribution"]
        except ClientError as e:
            logger.error(f"Failed to update distribution {distribution_id}: {e}")
            raise

    def delete_distribution(self, distribution_id: str) -> None:
        """Disable, wait for deployment, then delete a distribution."""
        current = self.get_distribution(distribution_id)
        if current is None:
            return

        try:
            config = current["Distribution"]["DistributionConfig"]
            etag = current["ETag"]
            if config.get("Enabled"):
                config = {**config, "Enabled": False}
                self.update_distribution(distribution_id, config, etag)
            logger.info(f"Waiting for distribution {distribution_id} to finish deploying")
            self.cloudfront.get_waiter("distribution_deployed").wait(Id=distribution_id)
            etag = self._call(
                "cloudfront", "get_distribution", self.cloudfront.get_distribution, Id=distribution_id,
            )["ETag"]
            self._call(
                "cloudfront", "delete_distribution", self.cloudfront.delete_distribution,
                Id=distribution_id,
                IfMatch=etag,
            )
            logger.info(f"Deleted distribution {distribution_id}")
        except ClientError as e:
            logger.error(f"Failed to delete distribution {distribution_id}: {e}")
            raise

    # ACM

    def find_certificates(self, domain: str) -> list[dict[str, Any]]:
        """List issued or pending certificate summaries for a domain."""
        try:
            paginator = self.acm.get_paginator("list_certificates")
            matches = []
            for page in paginator.paginate(CertificateStatuses=["ISSUED", "PENDING_VALIDATION"]):
                for item in page.get("CertificateSummaryList", []):
                    if item.get("DomainName") == domain:
                        matches.append(item)
            return matches
        except ClientError as e:
            logger.error(f"Failed to list certificates for {domain}: {e}")
            raise

    def request_certificate(self, domain: str, idempotency_token: str) -> str:
        """Request a DNS-validated certificate and return its ARN."""
        try:
            response = self._call(
                "acm", "request_certificate", self.acm.request_certificate,
                DomainName=domain,
                ValidationMethod="DNS",
                IdempotencyToken=idempotency_token,
            )
            logger.info(f"Requested certificate for {domain}: {response['CertificateArn']}")
            return response["CertificateArn"]
        except ClientError as e:
            logger.error(f"Failed to request certificate for {domain}: {e}")
            raise

    def describe_certificate(self, arn: str) -> dict[str, Any] | None:
        """Describe a certificate, or None if it no longer exists."""
        try:
            response = self._call(
                "acm", "describe_certificate", self.acm.describe_certificate, CertificateArn=arn,
            )
            return response["Certificate"]
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                return None
            logger.error(f"Failed to describe certificate {arn}: {e}")
            raise

    def delete_certificate(self, arn: str) -> None:
        """Delete a certificate."""
        try:
            self._call("acm", "delete_certificate", self.acm.delete_certificate, CertificateArn=arn)
            logger.info(f"Deleted certificate {arn}")
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                return
            logger.error(f"Failed to delete certificate {arn}: {e}")
            raise
