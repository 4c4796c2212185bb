"""Bedrock client for Mistral model invocation."""

import json
from typing import TYPE_CHECKING

import boto3
from aws_lambda_powertools import Logger
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from shared.exceptions import (
    FatalProviderError,
    MalformedOutputError,
    TransientProviderError,
)
from shared.modes import Policy
from shared.usage_ledger import estimate_tokens

from .analyzer import AnalyzerResponse
from .parser import parse_analysis_text
from .prompts import build_mistral_prompt

if TYPE_CHECKING:
    from mypy_boto3_bedrock_runtime import BedrockRuntimeClient

logger = Logger(child=True)

PROVIDER = "mistral"

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ThrottlingException",
        "ServiceUnavailableException",
        "ModelTimeoutException",
        "InternalServerException",
        "ModelNotReadyException",
    }
)


class BedrockClient:
    """Wrapper for Mistral via AWS Bedrock."""

    name = PROVIDER
    TIMEOUT_SECONDS = 60
    TEMPERATURE = 0.2

    def __init__(self, model_id: str, region: str = "us-east-1"):
        """Initialize Bedrock client.

        The model is fixed by configuration and does not change with mode.
        botocore retries are disabled; the orchestrator owns retry policy.

        Args:
            model_id: Bedrock model identifier
            region: AWS region for Bedrock
        """
        self.model_id = model_id
        self.client: BedrockRuntimeClient = boto3.client(
            "bedrock-runtime",
            region_name=region,
            config=BotoConfig(
                read_timeout=self.TIMEOUT_SECONDS,
                connect_timeout=10,
                retries={"total_max_attempts": 1, "mode": "standard"},
            ),
        )

    def model_for(self, policy: Policy) -> str:
        """Bedrock model is fixed by configuration."""
        return self.model_id

    def generate(
        self,
        prompt: str,
        schema: dict,
        max_output_tokens: int,
        model: str,
    ) -> AnalyzerResponse:
        """Invoke Mistral and parse its JSON reply.

        Mistral doesn't return token counts, so both are estimated from
        character length.

        Args:
            prompt: Chunk or reduce prompt
            schema: JSON schema embedded in the instruction
            max_output_tokens: Output budget for this call
            model: Bedrock model identifier

        Returns:
            AnalyzerResponse with the parsed result and estimated usage

        Raises:
            TransientProviderError: Throttling, unavailability or timeout
            FatalProviderError: Any other API failure or unusable output
        """
        full_prompt = build_mistral_prompt(prompt, schema)
        body = json.dumps(
            {
                "prompt": full_prompt,
                "max_tokens": max_output_tokens,
                "temperature": self.TEMPERATURE,
            }
        )

        try:
            response = self.client.invoke_model(
                modelId=model,
                body=body,
                contentType="application/json",
                accept="application/json",
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(
                "Bedrock API error",
                extra={
                    "error_code": error_code,
                    "error_message": str(e),
                },
            )
            message = f"Bedrock error {error_code}: {e}"
            if error_code in TRANSIENT_ERROR_CODES:
                raise TransientProviderError(message, provider=PROVIDER) from e
            raise FatalProviderError(message, provider=PROVIDER) from e
        except (ReadTimeoutError, ConnectTimeoutError, EndpointConnectionError) as e:
            logger.error("Bedrock connection error", extra={"error_message": str(e)})
            raise TransientProviderError(f"Bedrock unreachable: {e}", provider=PROVIDER) from e

        try:
            payload = json.loads(response["body"].read())
            output_text = payload["outputs"][0]["text"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise MalformedOutputError(
                f"Unexpected Bedrock response shape: {e}", provider=PROVIDER
            ) from None
        result = parse_analysis_text(output_text, provider=PROVIDER)

        input_tokens = estimate_tokens(full_prompt)
        output_tokens = estimate_tokens(result.model_dump_json(exclude_none=True))

        logger.info(
            "Bedrock Mistral usage",
            extra={
                "model": model,
                "estimated_input_tokens": input_tokens,
                "estimated_output_tokens": output_tokens,
            },
        )

        return AnalyzerResponse(
            result=result,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
