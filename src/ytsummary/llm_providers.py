import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from openai import AsyncOpenAI

from ytsummary.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ToolCallResult:
    """Raw outcome of a forced function call."""

    arguments: str | None
    usage: dict | None = None
    model: str = ""


class LLMProvider(ABC):
    model_name: str

    @abstractmethod
    async def call_tool(self, prompt: str, content: str, tool: dict) -> ToolCallResult:
        """
        Ask the model to answer by calling ``tool``.
        Args:
            prompt: System prompt/instructions
            content: Input content to process
            tool: Function declaration (name, description, JSON schema parameters)
        Returns:
            The JSON-encoded arguments of the call, plus token usage
        """


class GeminiProvider(LLMProvider):
    def __init__(self, settings: Settings) -> None:
        self.model_name = settings.gemini_model
        if not self.model_name:
            raise ValueError("GEMINI_MODEL environment variable not set.")
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY environment variable not set.")

        genai.configure(api_key=settings.gemini_api_key)

        # Summaries of arbitrary videos trip the default filters too easily
        self.safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
        }

    async def call_tool(self, prompt: str, content: str, tool: dict) -> ToolCallResult:
        model = genai.GenerativeModel(self.model_name, system_instruction=prompt)
        try:
            response = await model.generate_content_async(
                content,
                tools=[{"function_declarations": [tool]}],
                tool_config={
                    "function_calling_config": {
                        "mode": "ANY",
                        "allowed_function_names": [tool["name"]],
                    }
                },
                safety_settings=self.safety_settings,
            )
        except Exception as e:
            logger.error(f"Gemini function call error: {e}")
            raise

        arguments = None
        for candidate in response.candidates:
            for part in candidate.content.parts:
                if part.function_call and part.function_call.name == tool["name"]:
                    call = genai.protos.FunctionCall.to_dict(part.function_call)
                    arguments = json.dumps(call.get("args", {}))
                    break
            if arguments is not None:
                break

        usage = None
        if response.usage_metadata:
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count,
                "completion_tokens": response.usage_metadata.candidates_token_count,
                "total_tokens": response.usage_metadata.total_token_count,
            }
        return ToolCallResult(arguments=arguments, usage=usage, model=self.model_name)


class OpenAIProvider(LLMProvider):
    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.openai_api_key
        self.base_url = settings.openai_base_url
        self.model_name = settings.openai_model

        if not self.api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set.")
        if not self.model_name:
            raise ValueError("OPENAI_MODEL environment variable not set.")

        self.async_llm = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    async def call_tool(self, prompt: str, content: str, tool: dict) -> ToolCallResult:
        try:
            response = await self.async_llm.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": prompt},
                    {"role": "user", "content": content},
                ],
                tools=[{"type": "function", "function": tool}],
                tool_choice={"type": "function", "function": {"name": tool["name"]}},
            )
        except Exception as e:
            logger.error(f"OpenAI function call error: {e}")
            raise

        arguments = None
        if response.choices:
            tool_calls = response.choices[0].message.tool_calls or []
            if tool_calls:
                arguments = tool_calls[0].function.arguments
        usage = response.usage.model_dump() if response.usage else None
        return ToolCallResult(arguments=arguments, usage=usage, model=response.model)


def get_llm_provider(settings: Settings) -> LLMProvider:
    provider_name = settings.llm_provider.lower()
    logger.info(f"Initializing LLM provider: {provider_name}")
    if provider_name == "gemini":
        return GeminiProvider(settings)
    elif provider_name == "openai":
        return OpenAIProvider(settings)
    raise ValueError(f"Unsupported LLM provider: {provider_name}")
