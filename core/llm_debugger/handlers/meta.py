"""Service and model-listing endpoints."""

from __future__ import annotations

from llm_debugger.config import SERVER_NAME, ServerConfig
from llm_debugger.handlers.base import JsonReply, Reply, Request
from llm_debugger.llm.registry import list_model_names

BUILTIN_MODELS = ("Echo", "Robot", "Weirdo", "Thinker")

OPENAI_ENDPOINTS = (
    "GET /v1/models",
    "GET /v1/models/:model",
    "POST /v1/chat/completions",
    "POST /v1/completions",
    "POST /v1/embeddings",
    "POST /v1/responses",
    "POST /v1/images/generations",
    "POST /v1/moderations",
)


def model_names(config: ServerConfig) -> list[str]:
    """Public model names, or the built-in ones when none are configured."""
    names = list_model_names(config.model_registry, exclude_base_models=True)
    return names or list(BUILTIN_MODELS)


def list_endpoints(config: ServerConfig) -> dict[str, list[str]]:
    """Describe the routes this server answers."""
    endpoints = {
        "core": ["GET /", "GET /health"],
        "openai": list(OPENAI_ENDPOINTS),
        "anthropic": [
            "POST /v1/messages",
            "POST /v1/messages/count_tokens",
            "GET /v1/models (x-provider: anthropic)",
            "GET /v1/models/:model (x-provider: anthropic)",
        ],
        "gemini": [
            "GET /v1beta/models",
            "GET /v1beta/models/:model",
            "POST /v1beta/models/:model:generateContent",
            "POST /v1beta/models/:model:streamGenerateContent",
            "POST /v1beta/models/:model:countTokens",
        ],
    }
    if config.enable_gemini_openai_compat:
        endpoints["geminiOpenAiCompat"] = [
            endpoint.replace("/v1/", "/v1beta/openai/", 1) for endpoint in OPENAI_ENDPOINTS
        ]
    return endpoints


def root(request: Request, config: ServerConfig) -> Reply:
    """GET /."""
    del request
    return JsonReply(body={"name": SERVER_NAME, "endpoints": list_endpoints(config)})


def health(request: Request, config: ServerConfig) -> Reply:
    """GET /health."""
    del request, config
    return JsonReply(body={"status": "ok"})


def _is_anthropic(request: Request) -> bool:
    return (request.header("x-provider") or "").lower() == "anthropic"


def list_models(request: Request, config: ServerConfig) -> Reply:
    """GET /v1/models (Anthropic shape with ``x-provider: anthropic``)."""
    names = model_names(config)
    if _is_anthropic(request):
        return JsonReply(body={"data": [{"id": name, "display_name": name} for name in names]})
    return JsonReply(
        body={"object": "list", "data": [{"id": name, "object": "model", "owned_by": "dummy"} for name in names]}
    )


def get_model(request: Request, config: ServerConfig) -> Reply:
    """GET /v1/models/{model}."""
    del config
    model = request.path_params.get("model", "")
    if _is_anthropic(request):
        return JsonReply(body={"id": model, "display_name": model})
    return JsonReply(body={"id": model, "object": "model", "owned_by": "dummy"})


def list_gemini_models(request: Request, config: ServerConfig) -> Reply:
    """GET /v1beta/models."""
    del request
    return JsonReply(body={"models": [{"name": f"models/{name}", "displayName": name} for name in model_names(config)]})


def get_gemini_model(request: Request, config: ServerConfig) -> Reply:
    """GET /v1beta/models/{model}."""
    del config
    model = request.path_params.get("model", "")
    return JsonReply(body={"name": f"models/{model}", "displayName": model})
