#!/usr/bin/env python3
"""
Gemini model client.

A single generate_content round-trip with an explicit timeout. There is
no retry: a failed or timed-out call is terminal for the run, and the
caller decides whether to try again.
"""

import asyncio
import time
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .logging_config import get_api_logger
from .models import RawModelOutput, UsageCounters

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_OUTPUT_TOKENS = 16384


class ModelClientError(Exception):
    """Raised when the model call fails or returns nothing usable."""
    pass


class ModelTimeoutError(ModelClientError):
    """Raised when the model call exceeds its time budget."""
    pass


class GeminiClient:
    """Thin async wrapper around the google-genai SDK."""

    def __init__(self, api_key: str, model: str,
                 timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
                 temperature: float = DEFAULT_TEMPERATURE,
                 max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
                 client: Optional[genai.Client] = None):
        """Initialize the client.

        Args:
            api_key: Gemini API key
            model: Model identifier, e.g. ``gemini-2.5-flash-lite``
            timeout_seconds: Time budget for the whole call
            temperature: Sampling temperature
            max_output_tokens: Cap on response length
            client: Pre-built SDK client (used by tests)
        """
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = client or genai.Client(api_key=api_key)
        self.api_logger = get_api_logger()

    def _build_config(self, response_schema: Optional[Any]) -> types.GenerateContentConfig:
        params = {
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }
        if response_schema is not None:
            params["response_mime_type"] = "application/json"
            params["response_schema"] = response_schema
        return types.GenerateContentConfig(**params)

    async def generate(self, prompt: str, response_schema: Optional[Any] = None) -> RawModelOutput:
        """Send the prompt and return the raw response text.

        Args:
            prompt: Full prompt text
            response_schema: Optional schema hint for structured output

        Returns:
            RawModelOutput with the response text and usage counters

        Raises:
            ModelTimeoutError: If the call exceeds ``timeout_seconds``
            ModelClientError: On API, transport or empty-response errors
        """
        self.api_logger.verbose("Calling Gemini",
                                model=self.model,
                                prompt_chars=len(prompt),
                                structured=response_schema is not None)
        start = time.time()

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=self._build_config(response_schema),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.api_logger.error("Gemini call timed out", model=self.model,
                                  timeout_seconds=self.timeout_seconds)
            raise ModelTimeoutError(
                f"Gemini API request timed out ({self.timeout_seconds:g}s). "
                f"Try --max-files to reduce input size."
            )
        except genai_errors.APIError as e:
            self.api_logger.error("Gemini API error", model=self.model, error=str(e))
            raise ModelClientError(f"Gemini API error: {e}") from e
        except (httpx.HTTPError, OSError) as e:
            self.api_logger.error("Gemini transport error", model=self.model, error=str(e))
            raise ModelClientError(
                f"Gemini request failed: {e}. Try --max-files to reduce input size."
            ) from e

        elapsed = time.time() - start
        text = response.text
        if not text:
            self.api_logger.error("Gemini returned an empty response", model=self.model)
            raise ModelClientError("Gemini returned an empty response")

        usage = self._usage(response)
        self.api_logger.info("Gemini call completed",
                             model=self.model,
                             execution_time=round(elapsed, 2),
                             prompt_tokens=usage.prompt_tokens,
                             response_tokens=usage.response_tokens,
                             response_chars=len(text))
        return RawModelOutput(text=text, usage=usage)

    @staticmethod
    def _usage(response: Any) -> UsageCounters:
        metadata = getattr(response, "usage_metadata", None)
        if metadata is None:
            return UsageCounters()
        return UsageCounters(
            prompt_tokens=getattr(metadata, "prompt_token_count", None),
            response_tokens=getattr(metadata, "candidates_token_count", None),
        )
