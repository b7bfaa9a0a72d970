"""
Analysis Prompt Builders
========================

System instructions and user content for every oracle contract.

Following DRY principle - all prompt wording lives here, one builder per
contract, so stages only decide *what* to ask.
"""

from typing import Iterable, Optional, Sequence

from src.config import Priority
from src.analysis.domain.entities import (
    ContextSnippet,
    ConversationContext,
    LanguageAnalysis,
    ValidityAnalysis,
)
from src.analysis.domain.policies import response_tone


def _format_snippets(snippets: Sequence[ContextSnippet]) -> str:
    if not snippets:
        return "No relevant documentation was found."
    parts = []
    for i, snippet in enumerate(snippets, 1):
        parts.append(f"[{i}] (document {snippet.document_id}, similarity {snippet.similarity:.2f})\n{snippet.content}")
    return "\n\n".join(parts)


class LanguageDetectionPrompt:
    SYSTEM_PROMPT = """You are a language detection specialist for a customer support desk.

Identify the language of the customer's message:
1. Give the ISO 639-1 code (e.g. "en", "es", "de") and your confidence between 0 and 1.
2. List a few common words that support your decision.
3. Describe the script and any notable features.
4. Decide whether the message needs translating into English. If it does, provide
   the English translation. If the message is already in English, set needed to
   false and do not provide any translation text."""

    @classmethod
    def build_prompt(cls, inquiry: str) -> str:
        return f"Customer message:\n{inquiry}"


class ValidityCheckPrompt:
    SYSTEM_PROMPT = """You screen incoming customer support inquiries.

Decide whether the message is a genuine support request.

CATEGORIES:
- valid_inquiry: a question, problem report or request the support team can act on
- spam: advertising, scams, automated junk
- harassment: abusive or threatening content
- off_topic: unrelated to the product or service
- unclear: impossible to understand what the customer needs

Short or informal messages about a real problem are valid. When in doubt,
accept the inquiry: a human can always close it later, but a rejected customer
is lost. Give a short reason and your confidence between 0 and 1. You may
suggest a reply for the customer."""

    @classmethod
    def build_prompt(cls, inquiry: str, language: LanguageAnalysis) -> str:
        translated = language.translation.text
        text = translated or inquiry
        return f"""Detected language: {language.code} (confidence {language.confidence:.2f})

Message{" (translated to English)" if translated else ""}:
{text}"""


class RejectionPrompt:
    SYSTEM_PROMPT = """You write short replies to customer messages that cannot be turned into a support ticket.

Guidelines:
- Stay friendly and chat-like, never accusatory.
- spam or off_topic: politely explain what this channel is for.
- harassment: stay calm and professional, ask to keep the conversation respectful.
- unclear: ask one or two specific questions that would let us help.
- Keep it to two or three sentences.

Also give a one-line internal note for the support team, a severity
(low, medium or high) and suggested follow-up actions. When the customer did
not write in English, also provide the reply translated into their language."""

    @classmethod
    def build_prompt(
        cls,
        inquiry: str,
        language: LanguageAnalysis,
        validity: ValidityAnalysis
    ) -> str:
        return f"""Customer message:
{inquiry}

Screening category: {validity.category.value}
Screening reason: {validity.reason}
Customer language: {language.code}
Translation needed: {"yes" if language.translation.needed else "no"}"""


class SearchPhrasePrompt:
    SYSTEM_PROMPT = """You extract search phrases from customer inquiries for a documentation search.

Guidelines:
- Return two or three phrases of two to four words each.
- Focus on product names, features, error messages and technical terms.
- Remove filler and emotional words ("urgent", "please", "help").
- Explain briefly why you chose the phrases."""

    @classmethod
    def build_prompt(cls, inquiry: str) -> str:
        return f"Inquiry:\n{inquiry}"


class ChunkRelevancePrompt:
    SYSTEM_PROMPT = """You judge whether a documentation chunk helps answer a customer inquiry.

Confidence guide:
- 0.9 to 1.0: directly answers the inquiry
- 0.7 to 0.9: strongly related, answers part of it
- 0.5 to 0.7: related background
- 0.3 to 0.5: weak connection
- below 0.3: not relevant

Mark the chunk relevant only if confidence is at least 0.5. List the key terms
that matched."""

    @classmethod
    def build_prompt(cls, inquiry: str, snippet: ContextSnippet) -> str:
        return f"""Inquiry:
{inquiry}

Documentation chunk:
{snippet.content}"""


class PriorityPrompt:
    SYSTEM_PROMPT = """You assign a priority to customer support tickets.

PRIORITY LEVELS:
- low: cosmetic issues, minor inconveniences, documentation questions
- medium: standard feature requests, non-critical bugs with a workaround
- high: business-blocking problems, major bugs, severe performance issues
- urgent: outages, security incidents, data loss or corruption

Judge the actual impact, not only the customer's wording. Explain your choice."""

    @classmethod
    def build_prompt(cls, inquiry: str, snippets: Sequence[ContextSnippet]) -> str:
        return f"""Inquiry:
{inquiry}

Related documentation:
{_format_snippets(snippets)}"""


class TagPrompt:
    SYSTEM_PROMPT = """You tag customer support tickets.

Guidelines:
- Return one to three tags.
- Tags are lowercase, hyphenated, one or two words, at most 30 characters
  (e.g. "password-reset", "billing", "api-error").
- Prefer specific feature or problem names over generic words like "issue".
- Explain your choice."""

    @classmethod
    def build_prompt(
        cls,
        inquiry: str,
        priority: Optional[Priority],
        snippets: Sequence[ContextSnippet]
    ) -> str:
        return f"""Inquiry:
{inquiry}

Priority: {priority.value if priority else "unknown"}

Related documentation:
{_format_snippets(snippets)}"""


class AssignmentPrompt:
    SYSTEM_PROMPT = """You decide whether a support ticket must be handed to a human agent right away.

Only require assignment when the AI assistant clearly cannot help, for example
legal requests, refunds that need approval, or security incidents. Explain
your decision."""

    @classmethod
    def build_prompt(cls, inquiry: str, priority: Optional[Priority], tags: Iterable[str]) -> str:
        return f"""Inquiry:
{inquiry}

Priority: {priority.value if priority else "unknown"}
Tags: {", ".join(tags)}"""


class ResponsePrompt:
    SYSTEM_PROMPT = """You are a friendly customer support assistant replying in a chat.

Guidelines:
1. Use the provided documentation when it is relevant and cite it by number, e.g. [1].
2. Never invent product behavior that the documentation does not support.
3. Keep it short: a greeting, the answer or first steps, and what happens next.
4. Match the tone requested for the ticket's priority.
5. Also explain your reasoning and list concrete next steps."""

    @classmethod
    def build_prompt(
        cls,
        inquiry: str,
        customer_name: str,
        priority: Priority,
        tags: Iterable[str],
        snippets: Sequence[ContextSnippet]
    ) -> str:
        return f"""Customer: {customer_name}
Priority: {priority.value}
Tags: {", ".join(tags)}
Tone: {response_tone(priority)}

Inquiry:
{inquiry}

Documentation:
{_format_snippets(snippets)}"""


def _format_history(context: ConversationContext) -> str:
    lines = []
    for message in context.messages:
        lines.append(f"[{message.created_at.isoformat()}] {message.sender_type.value}: {message.content}")
    return "\n".join(lines) if lines else "(no messages)"


class ConversationAnalysisPrompt:
    SYSTEM_PROMPT = """You review an ongoing support conversation after the customer's latest message.

Choose exactly one action:
- close_ticket: the customer confirms the problem is solved or has nothing more to ask
- assign_human: the customer asks for a person, is frustrated, or the AI cannot make progress
- continue_conversation: anything else

If the customer expressed satisfaction, estimate a satisfaction rating from
1 (very unhappy) to 5 (delighted); otherwise leave it out. Explain your
reasoning."""

    @classmethod
    def build_prompt(cls, context: ConversationContext) -> str:
        session = context.session
        triage = ""
        if session is not None and session.processing_results.priority is not None:
            results = session.processing_results
            triage = f"\nInitial triage: priority {results.priority.value}, tags {', '.join(results.tags or ())}"
        return f"""Ticket: {context.ticket.title}
Status: {context.ticket.status.value}{triage}

Conversation:
{_format_history(context)}"""


class ConversationReplyPrompt:
    SYSTEM_PROMPT = """You write the next chat message to a customer after a decision about their ticket.

- close_ticket: thank them warmly and let them know they can reopen any time.
- assign_human: tell them who will take over and that they will follow up soon.
- continue_conversation: answer or ask the follow-up question that moves things forward.

Keep it to two or three sentences and pick the tone that fits: grateful,
informative, apologetic or helpful."""

    @classmethod
    def build_prompt(
        cls,
        context: ConversationContext,
        action: str,
        reasoning: str,
        assignee_name: Optional[str] = None
    ) -> str:
        assignee = f"\nAssigned to: {assignee_name}" if assignee_name else ""
        return f"""Action: {action}
Reason: {reasoning}{assignee}

Conversation:
{_format_history(context)}"""
