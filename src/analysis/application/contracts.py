"""
Oracle Contracts
================

Typed structured-output schemas for every oracle call.

Each contract is a pydantic model; its JSON schema is sent to the provider
as a forced function call and the raw answer is decoded back through
``decode_oracle_output``. Anything that does not validate is an
``LLMException``: nothing half-parsed reaches a stage.
"""

from typing import Annotated, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.config import ConversationAction, OracleSchema, Priority, ValidityCategory
from src.core import LLMException

Confidence = Annotated[float, Field(ge=0.0, le=1.0)]
Tag = Annotated[str, Field(min_length=1, max_length=30)]


class OracleContract(BaseModel):
    """Base for oracle outputs: camelCase on the wire, snake_case in code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ========== Intake ==========

class TranslationOutput(OracleContract):
    needed: bool
    text: Optional[str] = None

    @model_validator(mode="after")
    def check_text_matches_need(self) -> "TranslationOutput":
        text = self.text.strip() if self.text else None
        if not self.needed and text:
            raise ValueError("translation text must be absent when translation is not needed")
        self.text = text or None
        return self


class LanguageDetectionOutput(OracleContract):
    """Detected language of a customer message."""
    language_code: str = Field(..., description="ISO 639-1 code")
    confidence: Confidence
    common_words: List[str] = Field(default_factory=list)
    script_analysis: str = ""
    translation: TranslationOutput

    @field_validator("language_code")
    @classmethod
    def validate_language_code(cls, v: str) -> str:
        v = v.strip().lower()
        if not (2 <= len(v) <= 3 and v.isalpha() and v.isascii()):
            raise ValueError("language code must be a two or three letter ISO code")
        return v


class ValidityCheckOutput(OracleContract):
    """Whether a message is a genuine support inquiry."""
    is_valid: bool
    reason: str
    category: ValidityCategory
    confidence: Confidence
    suggested_response: Optional[str] = None


class ErrorResponseOutput(OracleContract):
    """Customer-facing reply to a rejected message."""
    response_message: str = Field(..., min_length=1)
    internal_note: str = ""
    severity: Literal["low", "medium", "high"]
    suggested_actions: List[str] = Field(default_factory=list)
    translated_response: Optional[str] = None


# ========== Retrieval ==========

class SearchPhrasesOutput(OracleContract):
    """Short documentation search phrases taken from an inquiry."""
    search_phrases: List[str] = Field(..., min_length=1)
    reasoning: str = ""


class ChunkRelevanceOutput(OracleContract):
    """Relevance of one documentation chunk to an inquiry."""
    is_relevant: bool
    confidence: Confidence
    reason: str
    key_matches: List[str] = Field(default_factory=list)


# ========== Triage ==========

class PriorityOutput(OracleContract):
    """Ticket priority with reasoning."""
    priority: Priority
    reasoning: str


class TagsOutput(OracleContract):
    """One to three short ticket tags."""
    tags: List[Tag] = Field(..., min_length=1, max_length=3)
    reasoning: str


class AssignmentOutput(OracleContract):
    """Whether the ticket needs a human right away."""
    needs_assignment: bool
    reasoning: str


# ========== Response ==========

class ResponseSynthesisOutput(OracleContract):
    """First AI reply to the customer."""
    response: str = Field(..., min_length=1)
    reasoning: str
    next_steps: List[str] = Field(default_factory=list)


# ========== Conversation ==========

class ConversationAnalysisOutput(OracleContract):
    """Decision taken after a new customer message."""
    is_solved: bool
    needs_human: bool
    action: ConversationAction
    satisfaction_rating: Optional[int] = Field(None, ge=1, le=5)
    reasoning: str


class ConversationReplyOutput(OracleContract):
    """Customer-facing explanation of a conversation decision."""
    response: str = Field(..., min_length=1)
    tone: Literal["grateful", "informative", "apologetic", "helpful"]


ORACLE_CONTRACTS: Dict[OracleSchema, Type[OracleContract]] = {
    OracleSchema.LANGUAGE_DETECTION: LanguageDetectionOutput,
    OracleSchema.VALIDITY_CHECK: ValidityCheckOutput,
    OracleSchema.ERROR_RESPONSE: ErrorResponseOutput,
    OracleSchema.SEARCH_PHRASES: SearchPhrasesOutput,
    OracleSchema.CHUNK_RELEVANCE: ChunkRelevanceOutput,
    OracleSchema.PRIORITY: PriorityOutput,
    OracleSchema.TAGS: TagsOutput,
    OracleSchema.ASSIGNMENT: AssignmentOutput,
    OracleSchema.RESPONSE_SYNTHESIS: ResponseSynthesisOutput,
    OracleSchema.CONVERSATION_ANALYSIS: ConversationAnalysisOutput,
    OracleSchema.CONVERSATION_REPLY: ConversationReplyOutput,
}


def function_definition(schema: OracleSchema) -> dict:
    """Function-calling definition whose parameters are the contract's JSON schema."""
    contract = ORACLE_CONTRACTS[schema]
    return {
        "name": schema.value.replace("-", "_"),
        "description": (contract.__doc__ or schema.value).strip(),
        "parameters": contract.model_json_schema(by_alias=True),
    }


def _strip_code_fences(text: str) -> str:
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()
    if "```" in text:
        return text.split("```")[1].split("```")[0].strip()
    return text.strip()


def decode_oracle_output(schema: OracleSchema, raw: Optional[str]) -> OracleContract:
    """
    Decode a raw oracle answer against its contract.

    Args:
        schema: Contract the answer must satisfy
        raw: Function-call arguments or message content

    Returns:
        The validated contract instance

    Raises:
        LLMException: If the answer is empty, not JSON, or violates the contract
    """
    text = _strip_code_fences(raw or "")
    if not text:
        raise LLMException(f"Empty '{schema.value}' output", {"schema": schema.value})

    try:
        return ORACLE_CONTRACTS[schema].model_validate_json(text)
    except ValidationError as e:
        raise LLMException(
            f"'{schema.value}' output did not match its contract: {e.error_count()} error(s)",
            {"schema": schema.value, "errors": e.errors(include_url=False, include_context=False, include_input=False)}
        )
