from typing import Any, Dict, List, Optional, Protocol
import structlog

from langchain_core.runnables import Runnable

from agent_runtime.domain.exceptions import RuntimeConfigurationError
from agent_runtime.domain.models.character import ModelClass

logger = structlog.get_logger(__name__)


class ModelInvoker(Protocol):
    """Single abstract "invoke model" operation the generation layer is built on"""

    async def invoke(
        self,
        context: str,
        model_class: ModelClass,
        stop: Optional[List[str]],
        max_tokens: int
    ) -> str: ...


class LangChainModelInvoker:
    """Routes each model class to a langchain runnable (LLM, chat model or chain)"""

    def __init__(self, models: Dict[ModelClass, Runnable], default: Optional[Runnable] = None):
        self.models = {ModelClass(key): value for key, value in models.items()}
        self.default = default

    def resolve(self, model_class: ModelClass) -> Runnable:
        runnable = self.models.get(ModelClass(model_class), self.default)
        if runnable is None:
            raise RuntimeConfigurationError(f"No model configured for class {model_class}")
        return runnable

    async def invoke(
        self,
        context: str,
        model_class: ModelClass,
        stop: Optional[List[str]],
        max_tokens: int
    ) -> str:
        runnable = self.resolve(model_class)

        logger.debug(
            "Invoking model",
            model_class=ModelClass(model_class).value,
            runnable=type(runnable).__name__,
            stop=stop,
            max_tokens=max_tokens
        )
        result = await runnable.ainvoke(context, stop=stop or None)
        return _as_text(result)


def _as_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    content = getattr(result, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Chat models may return content blocks
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(result)
