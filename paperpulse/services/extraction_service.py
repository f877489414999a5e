"""Structured extraction of method/tasks/datasets/benchmarks from abstracts.

Talks to any OpenAI-compatible chat-completions endpoint (OpenAI, Groq, ...)
resolved from the active LLM profile, asks for a JSON object and validates
it with pydantic.  Any failure raises :class:`ExtractionError`.
"""

import json
import logging
from typing import Any, Optional

import openai
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from paperpulse.config import LLMModel, LLMProfile, load_llm_models
from paperpulse.exceptions import ExtractionError
from paperpulse.models.enrichment import ClaimedSota, StructuredExtraction
from paperpulse.utils.text import dedupe

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 900

SYSTEM_PROMPT = "\n".join([
    "Extract ONLY from the provided title and abstract. Do not speculate.",
    "Return a single JSON object with exactly these keys:",
    '  method (string or null), tasks (string[]), datasets (string[]),',
    '  benchmarks (string[]), claimed_sota ({benchmark, metric?, value?, split?}[]),',
    '  params (number of parameters in billions, or null),',
    '  tokens (training tokens in billions, or null),',
    '  compute (string or null), code_urls (string[]).',
    "- If a detail is absent, return empty array or null as appropriate; never fabricate.",
    "Never assert SOTA unless explicitly stated.",
])


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

class ClaimedSotaFields(BaseModel):
    benchmark: str
    metric: Optional[str] = None
    value: Optional[str] = None
    split: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return str(v) if isinstance(v, (int, float)) else v


class ExtractedFields(BaseModel):
    """What the model must return."""

    method: Optional[str] = None
    tasks: list[str] = Field(default_factory=list)
    datasets: list[str] = Field(default_factory=list)
    benchmarks: list[str] = Field(default_factory=list)
    claimed_sota: list[ClaimedSotaFields] = Field(default_factory=list)
    params: Optional[float] = None
    tokens: Optional[float] = None
    compute: Optional[str] = None
    code_urls: list[str] = Field(default_factory=list)

    @field_validator("tasks", "datasets", "benchmarks", "code_urls", "claimed_sota", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_record(self, paper_id: str) -> StructuredExtraction:
        return StructuredExtraction(
            paper_id=paper_id,
            method=(self.method or "").strip() or None,
            tasks=_clean_list(self.tasks),
            datasets=_clean_list(self.datasets),
            benchmarks=_clean_list(self.benchmarks),
            claimed_sota=[ClaimedSota(**c.model_dump()) for c in self.claimed_sota],
            code_urls=_clean_list(self.code_urls),
            params=self.params,
            tokens=self.tokens,
            compute=(self.compute or "").strip() or None,
        )


def _clean_list(items: list[str]) -> list[str]:
    return dedupe(s.strip() for s in items)


def build_user_prompt(title: str, abstract: str) -> str:
    """The only paper content the model ever sees."""
    return f"Title: {title}\n\nAbstract:\n{abstract}"


def parse_extraction(content: Optional[str], paper_id: str) -> StructuredExtraction:
    """Validate a raw model reply.

    Raises:
        ExtractionError: If the reply is empty, not JSON, or off-schema
    """
    if not content:
        raise ExtractionError("Empty response from language model")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model reply is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionError("Model reply is not a JSON object")
    try:
        fields = ExtractedFields.model_validate(data)
    except PydanticValidationError as e:
        raise ExtractionError(f"Model reply does not match schema: {e.error_count()} error(s)") from e
    return fields.to_record(paper_id)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ExtractionService:
    """Calls the active LLM profile to extract structured fields."""

    def __init__(
        self,
        profile: Optional[LLMProfile],
        models: Optional[list[LLMModel]] = None,
        timeout: float = 15.0,
        max_retries: int = 2,
        client: Optional[Any] = None,
    ):
        """Initialize extraction service.

        Args:
            profile: Active LLM profile (None disables extraction)
            models: Model registry; defaults to the built-in one
            timeout: Per-call timeout in seconds
            max_retries: Retries the OpenAI client performs on 429/5xx
            client: Pre-built OpenAI-compatible client (tests inject a fake)
        """
        self.profile = profile
        self.timeout = timeout
        self.max_retries = max_retries
        self._models = models if models is not None else load_llm_models()
        self._client = client

    @property
    def available(self) -> bool:
        return self.profile is not None or self._client is not None

    def _base_url(self) -> str:
        if self.profile is None:
            return DEFAULT_BASE_URL
        for m in self._models:
            if m.id == self.profile.model:
                return m.base_url
        return DEFAULT_BASE_URL

    def _get_client(self) -> Any:
        if self._client is None:
            if self.profile is None:
                raise ExtractionError("No active LLM profile configured")
            self._client = openai.OpenAI(
                api_key=self.profile.api_key,
                base_url=self._base_url(),
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self._client

    def extract(self, paper_id: str, title: str, abstract: str) -> StructuredExtraction:
        """Extract structured fields from a title and abstract.

        Args:
            paper_id: Internal id the resulting record belongs to
            title: Paper title
            abstract: Paper abstract

        Returns:
            StructuredExtraction (not yet persisted)

        Raises:
            ExtractionError: On any failure (no profile, API error, bad reply)
        """
        client = self._get_client()
        model = self.profile.model if self.profile else "gpt-4o-mini"
        logger.debug("Extracting structured fields for %s with %s", paper_id, model)
        try:
            response = client.chat.completions.create(
                model=model,
                temperature=TEMPERATURE,
                max_tokens=MAX_OUTPUT_TOKENS,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(title, abstract)},
                ],
            )
        except openai.OpenAIError as e:
            raise ExtractionError(f"Language model call failed: {e}") from e

        if not response.choices:
            raise ExtractionError("No choices returned from language model")
        return parse_extraction(response.choices[0].message.content, paper_id)
