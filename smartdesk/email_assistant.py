"""Email drafting helpers: reply, rewrite and summarize."""

from smartdesk.errors import UpstreamUnavailable, ValidationFailure
from smartdesk.llm import LLMClient, LLMNotConfigured, upstream_error

TONES = {
    "formal": "formal, business-appropriate, polite",
    "friendly": "friendly, warm, conversational",
    "strict": "firm, direct, no-nonsense",
}

TEMPLATES = {
    "reply": "Generate a {tone} reply to this email. Return only the reply text.\n\nEmail:\n{content}",
    "rewrite": "Rewrite this email in a {tone} tone. Keep the core meaning but adjust the style. Return only the rewritten email.\n\nEmail:\n{content}",
    "summarize": "Summarize this email in a few sentences. Do not include any preamble.\n\nEmail:\n{content}",
}


def build_email_prompt(content: str, action: str, tone: str = "formal") -> str:
    template = TEMPLATES.get(action)
    if template is None:
        raise ValidationFailure(f"Unknown email action: {action}")
    tone_desc = TONES.get(tone.lower(), tone)
    return template.format(tone=tone_desc, content=content)


async def assist_email(llm: LLMClient, content: str, action: str, tone: str = "formal") -> str:
    prompt = build_email_prompt(content, action, tone)
    try:
        result = await llm.chat_completion([{"role": "user", "content": prompt}], temperature=0.7)
    except LLMNotConfigured:
        raise UpstreamUnavailable("AI service is not configured.")
    except Exception as e:
        print(f"❌ AI Processing Error: {e}")
        raise upstream_error(e) from e
    return result.strip()
