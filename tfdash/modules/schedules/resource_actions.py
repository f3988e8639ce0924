import boto3
from botocore.exceptions import ClientError
from tfdash.config import settings
from typing import Protocol, runtime_checkable
import logging

logger = logging.getLogger(__name__)


@runtime_checkable
class ResourceActions(Protocol):
    """Starts and stops already-provisioned compute resources."""

    def start_resource(self, resource_id: str) -> None:
        ...

    def stop_resource(self, resource_id: str) -> None:
        ...


class Ec2ResourceActions:
    def __init__(self, ec2_client=None):
        if ec2_client is None:
            client_kwargs = {"region_name": settings.aws_region}
            # Fall back to the default credential chain when keys are not configured
            if settings.aws_access_key_id and settings.aws_secret_access_key:
                client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
                client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
            ec2_client = boto3.client("ec2", **client_kwargs)
        self.ec2_client = ec2_client

    def start_resource(self, resource_id: str) -> None:
        try:
            self.ec2_client.start_instances(InstanceIds=[resource_id])
            logger.info(f"Started instance {resource_id}")
        except ClientError as e:
            logger.error(f"Failed to start instance {resource_id}: {str(e)}")
            raise

    def stop_resource(self, resource_id: str) -> None:
        try:
            self.ec2_client.stop_instances(InstanceIds=[resource_id])
            logger.info(f"Stopped instance {resource_id}")
        except ClientError as e:
            logger.error(f"Failed to stop instance {resource_id}: {str(e)}")
            raise
