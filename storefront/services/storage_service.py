import logging
import boto3
from botocore.config import Config as BotoConfig
from flask import current_app

logger = logging.getLogger(__name__)


def _get_client():
    return boto3.client(
        "s3",
        endpoint_url=current_app.config["S3_ENDPOINT_URL"] or None,
        aws_access_key_id=current_app.config["S3_ACCESS_KEY"],
        aws_secret_access_key=current_app.config["S3_SECRET_KEY"],
        region_name=current_app.config["S3_REGION"],
        config=BotoConfig(signature_version="s3v4"),
    )


def upload(storage_key, data, content_type="image/jpeg"):
    """Upload bytes to S3 as a publicly readable object."""
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]

    client.put_object(
        Bucket=bucket,
        Key=storage_key,
        Body=data,
        ContentType=content_type,
        ACL="public-read",
    )


def get_public_url(storage_key):
    """Return the public CDN URL for a storage key."""
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    return f"{base}/{storage_key}"


def key_from_url(url):
    """Map a public URL back to its storage key.

    Returns None for URLs that are not served from our bucket.
    """
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    if not url or not base or not url.startswith(base + "/"):
        return None
    key = url[len(base) + 1:].split("?", 1)[0]
    return key or None


def delete(storage_key):
    """Delete an object from S3."""
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]
    client.delete_object(Bucket=bucket, Key=storage_key)


def delete_many(storage_keys):
    """Delete multiple objects from S3."""
    if not storage_keys:
        return
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]
    objects = [{"Key": k} for k in storage_keys]
    client.delete_objects(
        Bucket=bucket,
        Delete={"Objects": objects},
    )


def delete_by_url(url):
    """Delete the object behind a public URL.

    Returns False when the URL does not belong to our bucket.
    """
    key = key_from_url(url)
    if key is None:
        logger.info("Not an asset store URL, skipping delete: %s", url)
        return False
    delete(key)
    return True
