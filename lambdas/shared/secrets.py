"""SSM Parameter Store helpers.

Only the Claude provider needs a secret; Mistral on Bedrock authenticates
with the Lambda role.
"""

import os
from functools import lru_cache

import boto3
from aws_lambda_powertools import Logger

logger = Logger(child=True)

# SSM Parameter name for the Anthropic API key
ANTHROPIC_API_KEY_PARAM = "/clause-guard/dev/secrets/anthropic_api_key"


@lru_cache(maxsize=1)
def get_anthropic_api_key() -> str:
    """Retrieve the Anthropic API key from SSM Parameter Store.

    Read when the analyzer is built with MODEL_PROVIDER=claude, and
    cached so a warm container reads the parameter once.
    Uses WithDecryption=True for SecureString parameters.

    Returns:
        The Anthropic API key string

    Raises:
        ClientError: If SSM parameter not found
    """
    param_name = os.environ.get("ANTHROPIC_API_KEY_PARAM", ANTHROPIC_API_KEY_PARAM)

    client = boto3.client("ssm")
    response = client.get_parameter(Name=param_name, WithDecryption=True)
    logger.info("Retrieved Anthropic API key from SSM Parameter Store")
    return response["Parameter"]["Value"]
