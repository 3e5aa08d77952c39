# --- Model Service Access ---
import logging
from pathlib import Path
from typing import AsyncIterator, List

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_ollama import ChatOllama
from ollama import AsyncClient

from functions.errors import ModelServiceError
from settings import Settings

logger = logging.getLogger(__name__)


def load_system_prompt(path: str) -> str:
    """Read the system instruction once; a missing file is a startup failure."""
    prompt_file = Path(path)
    if not prompt_file.is_file():
        raise FileNotFoundError(f"System prompt not found: {prompt_file}")
    return prompt_file.read_text(encoding="utf-8")


def build_chat_model(settings: Settings, model_id: str) -> ChatOllama:
    return ChatOllama(
        model=model_id,
        base_url=settings.ollama_host,
        client_kwargs={"headers": settings.auth_headers},
    )


async def stream_completion(
    settings: Settings,
    system_prompt: str,
    user_content: str,
    model_id: str,
) -> AsyncIterator[str]:
    """
    Open a streaming chat completion and yield each fragment's text as it
    arrives. Any failure, at open time or mid-stream, becomes ModelServiceError.
    """
    llm = build_chat_model(settings, model_id)
    messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_content)]
    try:
        async for part in llm.astream(messages):
            content = part.content
            yield content if isinstance(content, str) else ""
    except ModelServiceError:
        raise
    except Exception as e:
        raise ModelServiceError(f"Model service error ({model_id}): {e}") from e


def _model_name(record) -> str:
    if isinstance(record, dict):
        name = record.get("model") or record.get("name")
    else:
        name = getattr(record, "model", None) or getattr(record, "name", None)
    if not isinstance(name, str) or not name:
        raise ValueError(f"Model record without a name: {record!r}")
    return name


async def list_models(settings: Settings) -> List[str]:
    """
    Return model names from the service, in service order. Listing is
    advisory: any failure falls back to the configured default model.
    """
    try:
        client = AsyncClient(host=settings.ollama_host, headers=settings.auth_headers)
        try:
            response = await client.list()
        finally:
            await client.close()
        records = response.get("models") if isinstance(response, dict) else response.models
        return [_model_name(record) for record in records or []]
    except Exception as e:
        logger.warning("Model listing failed, falling back to %s: %s", settings.default_model, e)
        return [settings.default_model]
