"""
LLM client using LiteLLM for multi-provider support.

Task-based model selection with automatic fallback on transient errors.
Each response records (model_version, prompt_version, prompt_hash) so an
extraction can be traced back to the exact model and prompt that produced it.

Usage:
    from tank_intake.llm.llm_client import LLMClient, LLMTask

    client = LLMClient(task=LLMTask.FIELD_EXTRACTION)
    response = client.generate("次の文章から項目を抽出...", json_mode=True)
"""

import hashlib
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import litellm
from litellm import completion, completion_cost

# Suppress verbose LiteLLM logging
litellm.suppress_debug_info = True

logging.getLogger("LiteLLM").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# MODEL CONSTANTS
# =============================================================================

MODEL_GEMINI_3_FLASH = "gemini-3-flash-preview"
MODEL_GEMINI_25_FLASH = "gemini-2.5-flash"
MODEL_CLAUDE_HAIKU_45 = "claude-haiku-4-5"
MODEL_GPT4O_MINI = "gpt-4o-mini"

MODEL_REGISTRY: Dict[str, Dict[str, Any]] = {
    MODEL_GEMINI_3_FLASH: {
        "litellm_name": "gemini/gemini-3-flash-preview",
        "provider": "google",
        "cost_per_1m_input": 0.50,
        "cost_per_1m_output": 3.00,
        "supports_json_mode": True,
    },
    MODEL_GEMINI_25_FLASH: {
        "litellm_name": "gemini/gemini-2.5-flash",
        "provider": "google",
        "cost_per_1m_input": 0.15,
        "cost_per_1m_output": 0.60,
        "supports_json_mode": True,
    },
    MODEL_CLAUDE_HAIKU_45: {
        "litellm_name": "anthropic/claude-haiku-4-5",
        "provider": "anthropic",
        "cost_per_1m_input": 1.00,
        "cost_per_1m_output": 5.00,
        "supports_json_mode": True,
    },
    MODEL_GPT4O_MINI: {
        "litellm_name": "gpt-4o-mini",
        "provider": "openai",
        "cost_per_1m_input": 0.15,
        "cost_per_1m_output": 0.60,
        "supports_json_mode": True,
    },
}


# =============================================================================
# TASK-BASED MODEL SELECTION
# =============================================================================


class LLMTask(Enum):
    """LLM task types with specific model configurations."""

    FIELD_EXTRACTION = "field_extraction"


# Task -> (primary_model, fallback_models)
TASK_MODELS: Dict[LLMTask, Tuple[str, List[str]]] = {
    # Short Japanese documents, JSON out: Flash is plenty
    LLMTask.FIELD_EXTRACTION: (MODEL_GEMINI_3_FLASH, [MODEL_GEMINI_25_FLASH, MODEL_CLAUDE_HAIKU_45]),
}


# =============================================================================
# LLM RESPONSE WITH TRACKING
# =============================================================================


@dataclass
class LLMResponse:
    """Response from any provider with tracking metadata."""

    text: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    finish_reason: Optional[str] = None

    model_version: str = ""  # Fully qualified LiteLLM model name
    prompt_version: str = ""  # Version of the prompt template used
    prompt_hash: str = ""  # SHA256 of the prompt actually sent
    timestamp: str = ""
    task: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    LLM client with task-based model selection and automatic fallback.

    - Transient errors (rate limits, 5xx, timeouts) move on to the next model
    - Permanent errors (auth, invalid request) are raised immediately
    """

    def __init__(
        self,
        task: Optional[LLMTask] = None,
        model: Optional[str] = None,
        api_keys: Optional[Dict[str, str]] = None,
        timeout_seconds: float = 60.0,
        logger=None,
    ):
        """
        Initialize LLM client.

        Args:
            task: LLM task type (determines model and fallbacks)
            model: Specific model name (overrides task, no fallbacks)
            api_keys: Dict of provider -> API key
            timeout_seconds: Per-request timeout passed to LiteLLM
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)
        self.api_keys = api_keys or {}
        self.task = task
        self.timeout_seconds = timeout_seconds

        self._setup_api_keys()

        if model:
            if model not in MODEL_REGISTRY:
                raise ValueError(f"Unknown model: {model}. Available: {list(MODEL_REGISTRY.keys())}")
            self.model_name = model
            self.fallback_models: List[str] = []
        elif task:
            primary, fallbacks = TASK_MODELS[task]
            self.model_name = primary
            self.fallback_models = list(fallbacks)
        else:
            self.model_name = MODEL_GEMINI_3_FLASH
            self.fallback_models = [MODEL_GEMINI_25_FLASH]

        self.model_config = MODEL_REGISTRY[self.model_name]

        fallback_str = f" (fallbacks: {self.fallback_models})" if self.fallback_models else ""
        self.logger.debug(f"LLM client initialized: {self.model_name}{fallback_str}")

    def _setup_api_keys(self):
        """Set API keys in environment for LiteLLM (only if not already set)."""
        key_map = {
            "GEMINI_API_KEY": self.api_keys.get("google") or self.api_keys.get("gemini"),
            "ANTHROPIC_API_KEY": self.api_keys.get("anthropic"),
            "OPENAI_API_KEY": self.api_keys.get("openai"),
        }
        for env_var, value in key_map.items():
            if value and not os.environ.get(env_var):
                os.environ[env_var] = value

    def _is_transient_error(self, error: Exception) -> bool:
        """Check if an error is transient and worth retrying with fallback."""
        error_str = str(error).lower()
        transient_indicators = [
            "rate limit",
            "quota exceeded",
            "too many requests",
            "429",
            "503",
            "502",
            "timeout",
            "connection",
            "temporary",
            "overloaded",
        ]
        return any(indicator in error_str for indicator in transient_indicators)

    def _is_permanent_error(self, error: Exception) -> bool:
        """Check if an error is permanent (auth, bad request) and must not trigger fallback."""
        error_str = str(error).lower()
        error_type = type(error).__name__.lower()
        permanent_indicators = [
            "authentication",
            "invalid api key",
            "api key",
            "unauthorized",
            "401",
            "403",
            "permission denied",
            "invalid request",
            "authenticationerror",
            "invalidrequesterror",
        ]
        return any(indicator in error_str or indicator in error_type for indicator in permanent_indicators)

    def _compute_prompt_hash(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Compute SHA256 hash of the full prompt for tracking."""
        full_prompt = f"{system_prompt or ''}|||{prompt}"
        return hashlib.sha256(full_prompt.encode()).hexdigest()[:16]

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        prompt_version: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate text using the configured model with automatic fallback.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            json_mode: Request JSON output
            prompt_version: Version string of the prompt template

        Returns:
            LLMResponse with text and tracking metadata

        Raises:
            Exception: the last provider error when every model failed, or the
                first permanent error
        """
        models_to_try = [self.model_name] + self.fallback_models
        prompt_hash = self._compute_prompt_hash(prompt, system_prompt)

        for index, model_name in enumerate(models_to_try):
            try:
                return self._generate_with_model(
                    model_name=model_name,
                    prompt=prompt,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                    prompt_version=prompt_version,
                    prompt_hash=prompt_hash,
                )
            except Exception as e:
                if self._is_permanent_error(e):
                    self.logger.error(f"Permanent error with {model_name}: {e}. Not trying fallback.")
                    raise

                if index == len(models_to_try) - 1:
                    raise

                kind = "TRANSIENT" if self._is_transient_error(e) else "UNEXPECTED"
                self.logger.warning(
                    f"{kind} error with {model_name}: {type(e).__name__}: {e}. "
                    f"Trying fallback to {models_to_try[index + 1]}..."
                )

        raise RuntimeError("No models configured")

    def _generate_with_model(
        self,
        model_name: str,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
        prompt_version: Optional[str],
        prompt_hash: str,
    ) -> LLMResponse:
        """Generate with one specific model."""
        model_config = MODEL_REGISTRY[model_name]

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {
            "model": model_config["litellm_name"],
            "messages": messages,
            "temperature": temperature,
            "timeout": self.timeout_seconds,
            "drop_params": True,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode and model_config.get("supports_json_mode"):
            kwargs["response_format"] = {"type": "json_object"}

        response = completion(**kwargs)

        if not response.choices:
            raise RuntimeError(f"LLM API returned empty choices array. Model: {model_name}")

        text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        input_tokens = 0
        output_tokens = 0
        if usage is not None:
            input_tokens = getattr(usage, "prompt_tokens", 0) or 0
            output_tokens = getattr(usage, "completion_tokens", 0) or 0

        try:
            cost = completion_cost(completion_response=response)
        except Exception:
            cost = (input_tokens / 1_000_000) * model_config["cost_per_1m_input"] + (
                output_tokens / 1_000_000
            ) * model_config["cost_per_1m_output"]

        llm_response = LLMResponse(
            text=text,
            model=model_name,
            provider=model_config["provider"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost or 0.0,
            finish_reason=response.choices[0].finish_reason,
            model_version=model_config["litellm_name"],
            prompt_version=prompt_version or "",
            prompt_hash=prompt_hash,
            timestamp=datetime.now(timezone.utc).isoformat(),
            task=self.task.value if self.task else None,
            metadata={"raw_response_id": getattr(response, "id", None)},
        )

        self.logger.debug(
            f"LLM call: {model_name} | Tokens: {input_tokens}->{output_tokens} | Cost: ${llm_response.cost_usd:.6f}"
        )
        return llm_response


def get_extraction_client(model: Optional[str] = None, timeout_seconds: float = 60.0, logger=None) -> LLMClient:
    """Get a client configured for field extraction."""
    if model:
        return LLMClient(model=model, timeout_seconds=timeout_seconds, logger=logger)
    return LLMClient(task=LLMTask.FIELD_EXTRACTION, timeout_seconds=timeout_seconds, logger=logger)
