import os, yaml
from settings import ServiceConfig, build_service_config, settings
from llm_provider import GenerativeService, OpenAIResponsesProvider

# YAML keys that map straight onto ServiceConfig fields
_CONFIG_KEYS = (
    "api_key", "base_url",
    "classifier_prompt_id", "classifier_prompt_version",
    "merger_prompt_id", "merger_prompt_version",
    "max_output_tokens", "max_retries", "request_timeout_seconds",
)

def load_service_config(config_path: str = "llm.yaml") -> ServiceConfig:
    cfg = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{config_path} must contain a mapping")

    base = settings.service_config().model_dump()
    for key in _CONFIG_KEYS:
        if cfg.get(key) is not None:
            base[key] = cfg[key]
    # env wins for the secret so keys never need to live in the YAML file
    if os.getenv("OPENAI_API_KEY"):
        base["api_key"] = os.getenv("OPENAI_API_KEY")
    return build_service_config(**base)

def load_provider(config: ServiceConfig | None = None, config_path: str = "llm.yaml") -> GenerativeService:
    cfg = config or load_service_config(config_path)
    kind = os.getenv("CM_LLM_PROVIDER", "openai").lower()
    if kind == "openai":
        return OpenAIResponsesProvider(cfg)
    raise ValueError(f"Unknown provider: {kind}")
