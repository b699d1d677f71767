"""
LLM Client

Generation backend for the workspace: builds the CAPM system prompt from the
project context and asks each configured provider in turn until one answers.
The first turn of a conversation is answered locally with the interactive plan.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Union

import requests

from .config import StudioConfig
from .interactive_plan import InteractivePlan, build_planning_response
from .models import GenerationRequest

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_PROVIDERS = [
    {
        "name": "Claude 4 Sonnet",
        "type": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 8000,
        "temperature": 0.7
    },
    {
        "name": "GPT-4o",
        "type": "openai",
        "model": "gpt-4o",
        "max_tokens": 8000,
        "temperature": 0.7
    },
    {
        "name": "Claude 3.7 Sonnet",
        "type": "openrouter",
        "model": "anthropic/claude-3.7-sonnet",
        "max_tokens": 8000,
        "temperature": 0.7
    },
    {
        "name": "Gemini Flash",
        "type": "openrouter",
        "model": "google/gemini-2.0-flash-001",
        "max_tokens": 8000,
        "temperature": 0.7
    },
]

SYSTEM_PROMPT = """# CAPM + UI5/Fiori Elements App Generator

## Role & Objective
You are a code generation assistant specialized in building full-stack SAP applications.
Explain your plan clearly, then generate complete, working code.

**Backend**: SAP CAPM (Node.js, CDS models, SQLite/PostgreSQL)
**Frontend**: SAPUI5 / Fiori Elements apps (choose based on user requirements)

## CRITICAL: Response Format
1. **Plan Explanation**: what you'll build, the key features and the tech stack.
2. **File Generation**: every file in its own fenced block whose info string is
   the language followed by the absolute file path, for example:

```cds /db/schema.cds
namespace my.salesorder;

entity SalesOrder {
  key ID : UUID;
  orderNumber : String(20) @mandatory;
}
```

   For Fiori Elements apps generate annotated CDS, service definitions,
   manifest.json and an annotations file. For SAPUI5 apps generate CDS,
   services, XML views, controllers, manifest.json, Component.js and index.html.
3. **Next Steps**: what the user can do next.

## UI Framework Detection
- "Fiori Elements", "ListReport", "ObjectPage", "annotations": use Fiori Elements
- "SAPUI5", "custom views", "controllers", "flexible UI": use SAPUI5
- Otherwise default to Fiori Elements

## Technical Requirements
- Always provide complete, working code (no placeholders)
- Use proper CDS syntax and SAP best practices
- Include realistic sample data
- Add proper validations and error handling
- Generate package.json with correct dependencies
- Create README with setup instructions"""


class GenerationError(Exception):
    """Raised when no provider produced a response."""


def build_project_context(project_files: Dict[str, str]) -> str:
    """Render every file as ``File: <path>`` followed by its content."""
    return "\n".join(f"File: {path}\n{content}\n" for path, content in project_files.items() if content)


def build_messages(request: GenerationRequest) -> List[Dict]:
    """Build the chat messages for a generation request."""
    context = build_project_context(request.project_files)
    user_prompt = f"""## Current Project Context
Project: "{request.project_name or 'untitled'}"

Current project structure:
{context or '(empty project)'}

## User Message
{request.prompt}

Generate a complete, production-ready CAPM application with proper file structure and working code."""

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


class MultiLLMGenerator:
    """
    Generation backend with fallback across OpenAI, Anthropic and OpenRouter.

    Providers without an API key are skipped. Call the instance with a
    GenerationRequest (it is awaitable), as WorkspaceSession expects.
    """

    def __init__(self, config: Optional[StudioConfig] = None, providers: Optional[List[Dict]] = None):
        self.config = config or StudioConfig.from_env()
        self.openrouter_api_key = self.config.openrouter_api_key
        self.llm_providers = providers if providers is not None else list(DEFAULT_PROVIDERS)

        self.openai_client = None
        if self.config.openai_api_key:
            from openai import OpenAI
            self.openai_client = OpenAI(api_key=self.config.openai_api_key)

        self.anthropic_client = None
        if self.config.anthropic_api_key:
            import anthropic
            self.anthropic_client = anthropic.Anthropic(api_key=self.config.anthropic_api_key)

    @property
    def available_providers(self) -> List[Dict]:
        return [provider for provider in self.llm_providers if self._is_available(provider)]

    async def __call__(self, request: GenerationRequest) -> Union[str, InteractivePlan]:
        if request.is_first_turn:
            return build_planning_response(request.prompt)
        messages = build_messages(request)
        return await asyncio.to_thread(self.generate_with_fallback, messages)

    def generate_with_fallback(self, messages: List[Dict]) -> str:
        """
        Generate a response, trying each available provider in order.

        Raises:
            GenerationError: if no provider is configured or all of them failed
        """
        providers = self.available_providers
        if not providers:
            raise GenerationError("No LLM provider configured (set OPENAI_API_KEY, ANTHROPIC_API_KEY or OPENROUTER_API_KEY)")

        for i, config in enumerate(providers, 1):
            logger.info("Trying %s (%d/%d)", config["name"], i, len(providers))
            if config["type"] == "openai":
                response = self.call_openai(messages, config)
            elif config["type"] == "anthropic":
                response = self.call_anthropic(messages, config)
            else:
                response = self.call_openrouter(messages, config)

            if response:
                logger.info("%s responded with %d characters", config["name"], len(response))
                return response
            logger.warning("%s returned no response, falling back", config["name"])

        raise GenerationError(f"All {len(providers)} LLM providers failed")

    def call_openai(self, messages: List[Dict], config: Dict) -> Optional[str]:
        """Call OpenAI API."""
        if not self.openai_client:
            return None

        try:
            response = self.openai_client.chat.completions.create(
                model=config["model"],
                messages=messages,
                max_tokens=config["max_tokens"],
                temperature=config["temperature"],
            )
            return response.choices[0].message.content
        except Exception as e:
            logger.error("OpenAI error: %s", e)
            return None

    def call_anthropic(self, messages: List[Dict], config: Dict) -> Optional[str]:
        """Call Anthropic API."""
        if not self.anthropic_client:
            return None

        try:
            # Anthropic takes the system prompt separately
            system_message = ""
            user_messages = []
            for msg in messages:
                if msg["role"] == "system":
                    system_message = msg["content"]
                else:
                    user_messages.append(msg)

            response = self.anthropic_client.messages.create(
                model=config["model"],
                max_tokens=config["max_tokens"],
                temperature=config["temperature"],
                system=system_message,
                messages=user_messages,
            )
            return "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        except Exception as e:
            logger.error("Anthropic error: %s", e)
            return None

    def call_openrouter(self, messages: List[Dict], config: Dict) -> Optional[str]:
        """Call OpenRouter API."""
        if not self.openrouter_api_key:
            return None

        try:
            headers = {
                "Authorization": f"Bearer {self.openrouter_api_key}",
                "Content-Type": "application/json",
                "X-Title": "CAPM Studio"
            }
            payload = {
                "model": config["model"],
                "messages": messages,
                "max_tokens": config["max_tokens"],
                "temperature": config["temperature"]
            }

            response = requests.post(OPENROUTER_URL, json=payload, headers=headers, timeout=60)
            response.raise_for_status()

            data = response.json()
            return data["choices"][0]["message"]["content"]
        except Exception as e:
            logger.error("OpenRouter error: %s", e)
            return None

    def _is_available(self, provider: Dict) -> bool:
        if provider["type"] == "openai":
            return self.openai_client is not None
        if provider["type"] == "anthropic":
            return self.anthropic_client is not None
        if provider["type"] == "openrouter":
            return bool(self.openrouter_api_key)
        return False
