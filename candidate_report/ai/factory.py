from candidate_report.ai.config import load_ai_config
from candidate_report.ai.providers.openai_provider import OpenAIProvider
from candidate_report.ai.types import AIClient
from candidate_report.core.config import Settings


def get_ai_client(cfg: Settings) -> AIClient:
    return OpenAIProvider(load_ai_config(cfg))
