"""Role assumption for the target registry account."""

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import CredentialsError


logger = logging.getLogger(__name__)


def assume_role_session(base_session: boto3.Session, role_arn: str,
                        external_id: Optional[str] = None,
                        duration_seconds: int = 3600,
                        session_name: str = "docker-reassembler") -> boto3.Session:
    """Return a session holding temporary credentials for ``role_arn``."""
    params = {
        'RoleArn': role_arn,
        'RoleSessionName': session_name,
        'DurationSeconds': duration_seconds
    }
    if external_id:
        params['ExternalId'] = external_id

    try:
        response = base_session.client('sts').assume_role(**params)
    except (ClientError, BotoCoreError) as e:
        raise CredentialsError(f"error assuming role {role_arn}: {e}") from e

    credentials = response['Credentials']
    logger.debug(f"Assumed role {role_arn}, credentials expire at {credentials.get('Expiration')}")
    return boto3.Session(
        aws_access_key_id=credentials['AccessKeyId'],
        aws_secret_access_key=credentials['SecretAccessKey'],
        aws_session_token=credentials['SessionToken'],
        region_name=base_session.region_name
    )


def caller_account_id(session: boto3.Session) -> str:
    """Account id of the session's identity, used as the registry id."""
    try:
        return session.client('sts').get_caller_identity()['Account']
    except (ClientError, BotoCoreError) as e:
        raise CredentialsError(f"error getting caller identity: {e}") from e
