"""LLM Client for Groq API integration."""
import json
import time
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, LLM_MODEL, LLM_TIMEOUT_SECONDS, LLM_MAX_RETRIES

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A function call requested by the model."""
    id: str
    name: str
    arguments: Dict[str, Any]
    raw_arguments: str = "{}"


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str
    tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Default model name (defaults to LLM_MODEL from environment)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model or LLM_MODEL
        # No SDK retries: `timeout` is the whole budget of one generate call
        self.client = Groq(api_key=self.api_key, max_retries=LLM_MAX_RETRIES)
        logger.info(f"LLMClient initialized successfully (model={self.model})")

    def generate(
        self,
        prompt: Optional[str] = None,
        system: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
        tools: Optional[List[Dict[str, Any]]] = None,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        """
        Generate response using Groq API.

        Args:
            prompt: User message appended after `messages`
            system: System persona sent as the first message
            messages: Prior conversation messages ({role, content})
            model: Model name (defaults to the client's model)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            tools: Function-calling schema; enables tool calls in the response
            timeout: Request deadline in seconds

        Returns:
            LLMResponse with text, token counts, latency and any tool calls

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = model or self.model
        timeout = timeout if timeout is not None else LLM_TIMEOUT_SECONDS

        chat_messages: List[Dict[str, Any]] = []
        if system:
            chat_messages.append({"role": "system", "content": system})
        chat_messages.extend(messages or [])
        if prompt:
            chat_messages.append({"role": "user", "content": prompt})
        if len(chat_messages) == (1 if system else 0):
            raise ValueError("A prompt or at least one message is required")

        request: Dict[str, Any] = {
            "model": model,
            "messages": chat_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": timeout,
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")

            # Call Groq API
            response = self.client.chat.completions.create(**request)

            # Calculate latency
            latency_ms = int((time.time() - start_time) * 1000)

            message = response.choices[0].message
            tool_calls = self._parse_tool_calls(message) if tools else []

            # Extract response text
            text = message.content
            if not isinstance(text, str):
                if not tool_calls:
                    raise LLMClientError(LLMError(
                        code="UNEXPECTED_RESPONSE",
                        message="Unexpected response type from LLM: no text content",
                        details={
                            "model": model,
                            "latency_ms": latency_ms,
                            "content_type": type(text).__name__
                        }
                    ))
                text = ""

            # Extract token usage
            usage = getattr(response, "usage", None)
            tokens_input = getattr(usage, "prompt_tokens", 0) or 0
            tokens_output = getattr(usage, "completion_tokens", 0) or 0

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"tool_calls={len(tool_calls)}, latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model,
                tool_calls=tool_calls
            )

        except LLMClientError as e:
            logger.error(
                f"Unexpected response: model={model}, error={e.error.message}",
                extra={"error_code": e.error.code, "error_details": e.error.details}
            )
            raise

        except RateLimitError as e:
            error = self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e,
                retry_after=60  # Suggest retry after 60 seconds
            )
            raise LLMClientError(error)

        except AuthenticationError as e:
            error = self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )
            raise LLMClientError(error)

        except APITimeoutError as e:
            error = self._error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                model, start_time, e
            )
            raise LLMClientError(error)

        except APIError as e:
            error = self._error(
                "API_ERROR",
                f"Groq API error: {str(e)}",
                model, start_time, e
            )
            raise LLMClientError(error)

        except Exception as e:
            error = self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e,
                error_type=type(e).__name__
            )
            raise LLMClientError(error)

    @staticmethod
    def _parse_tool_calls(message) -> List[ToolCall]:
        """Convert SDK tool calls into ToolCall records."""
        calls = []
        for raw in getattr(message, "tool_calls", None) or []:
            raw_arguments = raw.function.arguments or "{}"
            try:
                arguments = json.loads(raw_arguments)
            except (TypeError, ValueError):
                logger.warning(f"Tool call {raw.function.name} has invalid JSON arguments")
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            calls.append(ToolCall(
                id=raw.id,
                name=raw.function.name,
                arguments=arguments,
                raw_arguments=raw_arguments
            ))
        return calls

    @staticmethod
    def _error(
        code: str,
        message: str,
        model: str,
        start_time: float,
        original: Exception,
        **extra_details
    ) -> LLMError:
        """Build and log a structured error for a failed generation."""
        latency_ms = int((time.time() - start_time) * 1000)
        details = {
            "model": model,
            "latency_ms": latency_ms,
            "original_error": str(original),
        }
        details.update(extra_details)

        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return error
