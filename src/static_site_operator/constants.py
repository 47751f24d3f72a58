"""Constants for the Static Site Operator."""

# API Group
API_GROUP = "sites.cloud37.dev"
API_GROUP_VERSION = f"{API_GROUP}/v1alpha1"

# Resource Kinds
KIND_STATIC_SITE = "StaticSite"

# Labels / tags
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
MANAGED_BY_VALUE = "static-site-operator"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Spec defaults
DEFAULT_DOMAIN = "example.org"
DEFAULT_REGION = "us-east-1"
DEFAULT_VALIDATION_TIMEOUT_SECONDS = 2700

# ACM certificates used by CloudFront must live in us-east-1
CERTIFICATE_REGION = "us-east-1"

# Fixed desired state
PRICE_CLASS = "PriceClass_100"
MINIMUM_PROTOCOL_VERSION = "TLSv1.2_2021"
SSL_SUPPORT_METHOD = "sni-only"
DEFAULT_ROOT_OBJECT = "index.html"
ERROR_PAGE_PATH = "/404.html"
ERROR_CODE = 404
CACHE_METHODS = ["GET", "HEAD"]
VIEWER_PROTOCOL_POLICY = "redirect-to-https"
OBJECT_OWNERSHIP = "BucketOwnerPreferred"
PUBLIC_ACCESS_BLOCK = {
    "BlockPublicAcls": True,
    "IgnorePublicAcls": True,
    "BlockPublicPolicy": True,
    "RestrictPublicBuckets": True,
}
OAC_ORIGIN_TYPE = "s3"
OAC_SIGNING_BEHAVIOR = "always"
OAC_SIGNING_PROTOCOL = "sigv4"
VALIDATION_RECORD_TTL = 60

# CloudFront distributions always live in this hosted zone
CLOUDFRONT_HOSTED_ZONE_ID = "Z2FDTNDATAQYW2"
DISTRIBUTION_COMMENT_PREFIX = "managed by static-site-operator:"

# Graph node names
NODE_ZONE = "zone"
NODE_BUCKET = "bucket"
NODE_ORIGIN_ACCESS_CONTROL = "origin_access_control"
NODE_CERTIFICATE = "certificate"
NODE_VALIDATION_RECORDS = "validation_records"
NODE_CERTIFICATE_VALIDATION = "certificate_validation"
NODE_DISTRIBUTION = "distribution"
NODE_BUCKET_POLICY = "bucket_policy"
NODE_APEX_ALIAS = "apex_alias"

# Node states
STATE_PENDING = "pending"
STATE_APPLIED = "applied"
STATE_ISSUED = "issued"
STATE_FAILED = "failed"
STATE_CANCELLED = "cancelled"
STATE_DESTROYED = "destroyed"

# Condition Types
COND_READY = "Ready"
COND_CERTIFICATE_PENDING = "CertificatePending"
COND_CONFLICT = "Conflict"
COND_APPLY_FAILED = "ApplyFailed"
COND_ZONE_NOT_FOUND = "ZoneNotFound"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_SUCCEEDED = "ValidateSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_SITE_READY = "SiteReady"
EVENT_REASON_CERTIFICATE_PENDING = "CertificatePending"
EVENT_REASON_POLICY_REBOUND = "PolicyRebound"
EVENT_REASON_SITE_DESTROYED = "SiteDestroyed"
