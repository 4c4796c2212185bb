"""Prompt building utilities for the analyzer."""

from .chunk_prompt import build_chunk_prompt
from .mistral_format import build_mistral_prompt
from .reduce_prompt import build_reduce_prompt
from .schema import RESPONSE_SCHEMA

__all__ = [
    "RESPONSE_SCHEMA",
    "build_chunk_prompt",
    "build_mistral_prompt",
    "build_reduce_prompt",
]
