from dataclasses import dataclass

from candidate_report.core.config import Settings


@dataclass(frozen=True)
class AIConfig:
    api_key: str
    model: str
    base_url: str | None
    temperature: float
    max_output_tokens: int
    top_p: float | None
    top_k: int | None
    request_timeout_s: float


def load_ai_config(cfg: Settings) -> AIConfig:
    return AIConfig(
        api_key=(cfg.llm_api_key or "").strip(),
        model=cfg.llm_model,
        base_url=cfg.llm_base_url,
        temperature=cfg.llm_temperature,
        max_output_tokens=cfg.llm_max_output_tokens,
        top_p=cfg.llm_top_p,
        top_k=cfg.llm_top_k,
        request_timeout_s=cfg.llm_request_timeout_s,
    )
