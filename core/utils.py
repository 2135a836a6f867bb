"""
Utility functions for building the model and the flow executor
"""
from typing import Optional

from langchain_openai import ChatOpenAI, AzureChatOpenAI
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.language_models.chat_models import BaseChatModel

from coach_logging.session_logger import get_logger
from management.catalog import FlowCatalog
from .config import Settings, get_settings
from .executor import FlowExecutor
from .invoker import ChatModelInvoker


def get_llm(settings: Optional[Settings] = None) -> BaseChatModel:
    """Get configured LLM instance based on settings

    Providers:
    - "openai" (default): OPENAI_API_KEY, OPENAI_MODEL
    - "azure": AZURE_OPENAI_API_KEY, AZURE_OPENAI_ENDPOINT,
      AZURE_OPENAI_DEPLOYMENT_NAME, AZURE_OPENAI_API_VERSION
    - "gemini": GOOGLE_API_KEY, GEMINI_MODEL

    Client-side retries are disabled; the invoker owns the retry policy.
    """
    settings = settings or get_settings()
    provider = settings.llm_provider

    # Log the provider being used
    logger = get_logger()
    if logger:
        logger.set_llm_provider(provider)

    if provider == "azure":
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            azure_deployment=settings.azure_openai_deployment,
            api_version=settings.azure_openai_api_version,
            api_key=settings.azure_openai_api_key,
            temperature=settings.temperature,
            timeout=settings.flow_timeout_seconds,
            max_retries=0
        )

    elif provider == "gemini":
        return ChatGoogleGenerativeAI(
            model=settings.gemini_model,
            google_api_key=settings.google_api_key,
            temperature=settings.temperature,
            timeout=settings.flow_timeout_seconds,
            max_retries=0
        )

    elif provider == "openai":
        return ChatOpenAI(
            model=settings.openai_model,
            temperature=settings.temperature,
            timeout=settings.flow_timeout_seconds,
            max_retries=0
        )

    raise ValueError(f"Unknown LLM_PROVIDER '{provider}' (expected openai, azure or gemini)")


def create_executor(
    settings: Optional[Settings] = None,
    model: Optional[BaseChatModel] = None,
) -> FlowExecutor:
    """Wire catalog, registry, invoker and model into a ready FlowExecutor

    Args:
        settings: Runtime settings (defaults to the environment)
        model: Chat model to use instead of the configured provider
    """
    settings = settings or get_settings()
    catalog = FlowCatalog(settings.catalog_path)
    invoker = ChatModelInvoker(
        model if model is not None else get_llm(settings),
        timeout_seconds=settings.flow_timeout_seconds,
        retry_backoff_seconds=settings.retry_backoff_seconds,
    )
    return FlowExecutor(catalog.build_registry(), invoker)
