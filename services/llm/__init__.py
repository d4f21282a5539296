from .base import LLMClient, LLMRequest, LLMResponse, LLMUnavailableError  # noqa: F401
from .chat_completions import ChatCompletionsClient, ChatCompletionsConfig  # noqa: F401
from .dispatcher import LLMRouter  # noqa: F401
