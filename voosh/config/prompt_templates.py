"""
Voosh - Prompt Templates & Canned Responses
=============================================
Centralised prompt management for the answer model, plus the fixed
strings returned when retrieval or generation cannot produce an answer.
All user-facing copy lives here so it can be reviewed independently of
application logic.

Exports
-------
SYSTEM_PROMPT, ANSWER_PROMPT_TEMPLATE,
NO_CONTEXT_RESPONSE, LLM_FAILURE_RESPONSE,
FEATURED_FALLBACK_HEADLINE, FEATURED_FALLBACK_SOURCE.
"""

# ══════════════════════════════════════════════════════════════════════
#  ANSWER MODEL PROMPTS
# ══════════════════════════════════════════════════════════════════════

SYSTEM_PROMPT: str = """You are Voosh, a news assistant.
You answer questions about recent news articles.
Rely only on the passages you are given; if they do not contain the answer, say so plainly.
When you use a passage, cite its source URL."""

ANSWER_PROMPT_TEMPLATE: str = """Answer the following query using ONLY the context provided. Include sources.

Context:
{context}

Question: {question}"""


# ══════════════════════════════════════════════════════════════════════
#  CANNED RESPONSES
# ══════════════════════════════════════════════════════════════════════

NO_CONTEXT_RESPONSE: str = "I don't have enough information in the news index to answer that."

LLM_FAILURE_RESPONSE: str = "Sorry, I couldn't generate a response."


# ══════════════════════════════════════════════════════════════════════
#  FEATURED ITEMS
# ══════════════════════════════════════════════════════════════════════

FEATURED_FALLBACK_HEADLINE: str = "Top stories"
FEATURED_FALLBACK_SOURCE: str = "VooshNews"
