"""
Fix Generator

Asks a language model for a code change that addresses the errors found in
a verification pass. Provider calls follow the same shape for Anthropic,
OpenAI and a local Ollama server.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import httpx
from pydantic import ValidationError

from ..config import LLMConfig
from ..models import ErrorCollection
from ..models_fix import CodeFix

logger = logging.getLogger(__name__)


class AIProvider(Enum):
    """Supported AI providers"""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"


DEFAULT_MODELS = {
    AIProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    AIProvider.OPENAI: "gpt-4o-mini",
    AIProvider.OLLAMA: "llama3.2:3b",
}


def format_errors_for_analysis(errors: ErrorCollection) -> str:
    """Plain-text listing of every error, for prompts."""
    if not errors.errors:
        return "No errors detected."

    blocks = []
    for index, error in enumerate(errors.errors, start=1):
        text = f"Error {index} ({error.type}):\n"
        text += f"  Message: {error.message}\n"
        if error.stack:
            text += f"  Stack: {error.stack}\n"
        if error.source:
            text += f"  Source: {error.source}"
            if error.line:
                text += f":{error.line}"
                if error.column:
                    text += f":{error.column}"
            text += "\n"
        if error.context:
            text += f"  Context: {json.dumps(error.context, indent=2, default=str)}\n"
        blocks.append(text)

    return "\n".join(blocks)


class FixGenerator(ABC):
    """
    Maps an ErrorCollection (plus optional source context) to a CodeFix.

    Implementations must not touch the filesystem; applying a fix is a
    separate step.
    """

    @abstractmethod
    async def generate_fix(
        self,
        errors: ErrorCollection,
        file_content: Optional[str] = None,
        file_path: Optional[str] = None
    ) -> Optional[CodeFix]:
        ...

    async def generate_implementation_guidance(self, plan: str) -> str:
        raise NotImplementedError(f"{type(self).__name__} does not provide implementation guidance")


class LLMFixGenerator(FixGenerator):
    """Fix generator backed by a hosted or local LLM."""

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or LLMConfig()
        try:
            self.provider = AIProvider(self.config.provider)
        except ValueError:
            raise ValueError(f"Unknown LLM provider: {self.config.provider}")
        self.model = self.config.model or DEFAULT_MODELS[self.provider]

    # ==================== Prompts ====================

    async def analyze_errors(self, errors: ErrorCollection) -> str:
        prompt = f"""You are a debugging assistant. Analyze the following browser errors and provide a detailed analysis:

{format_errors_for_analysis(errors)}

Provide:
1. Root cause analysis
2. Most likely file(s) and line(s) where the issue occurs
3. Suggested fix approach

Be concise and specific."""
        return await self.complete(prompt, max_tokens=1500)

    async def generate_implementation_guidance(self, plan: str) -> str:
        prompt = f"""You are a senior web developer. A feature needs to be built from this plan:

{plan}

Provide implementation guidance:
1. Components or files to create or change
2. Key markup elements, with stable ids or selectors that tests can target
3. Data flow and state handling
4. Edge cases and likely runtime errors to avoid

Be concise and concrete."""
        return await self.complete(prompt, max_tokens=2000)

    async def generate_fix(
        self,
        errors: ErrorCollection,
        file_content: Optional[str] = None,
        file_path: Optional[str] = None
    ) -> Optional[CodeFix]:
        file_context = f"\n\nCurrent file content:\n```\n{file_content}\n```" if file_content else ""

        prompt = f"""You are a code fixing assistant. Fix the following errors in the code:

{format_errors_for_analysis(errors)}{file_context}

Provide a JSON response with this exact structure:
{{
  "file": "path/to/file.tsx",
  "changes": [
    {{
      "line": 42,
      "oldCode": "const x = null;",
      "newCode": "const x = {{}};"
    }}
  ],
  "explanation": "Brief explanation of the fix"
}}

Only include the JSON, no other text. If you cannot determine the fix, return null."""

        try:
            text = await self.complete(prompt, max_tokens=2000)
        except Exception as e:
            logger.error(f"[FIX] Error generating fix: {e}")
            return None

        return self.parse_fix_response(text, file_path)

    @staticmethod
    def parse_fix_response(text: str, file_path: Optional[str] = None) -> Optional[CodeFix]:
        """Extract a CodeFix from a model answer; anything unusable means no fix."""
        text = (text or "").strip()
        if not text or text.lower() == "null":
            return None

        match = re.search(r"\{[\s\S]*\}", text)
        if not match:
            return None

        try:
            data = json.loads(match.group(0))
            fix = CodeFix.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"[FIX] Unparsable fix response: {e}")
            return None

        if file_path:
            fix = fix.model_copy(update={"file": file_path})
        return fix

    # ==================== Providers ====================

    async def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        """Send a single-turn prompt to the configured provider and return the text."""
        if self.provider == AIProvider.ANTHROPIC:
            return await self._call_anthropic(prompt, max_tokens)
        elif self.provider == AIProvider.OPENAI:
            return await self._call_openai(prompt, max_tokens)
        return await self._call_ollama(prompt)

    async def _call_anthropic(self, prompt: str, max_tokens: int) -> str:
        if not self.config.anthropic_api_key:
            raise RuntimeError("ANTHROPIC_API_KEY not set")

        async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
            response = await client.post(
                "https://api.anthropic.com/v1/messages",
                headers={
                    "x-api-key": self.config.anthropic_api_key,
                    "anthropic-version": "2023-06-01",
                    "content-type": "application/json"
                },
                json={
                    "model": self.model,
                    "max_tokens": max_tokens,
                    "messages": [{"role": "user", "content": prompt}]
                }
            )

        if response.status_code != 200:
            raise RuntimeError(f"API error: {response.status_code}")

        data = response.json()
        return data["content"][0]["text"]

    async def _call_openai(self, prompt: str, max_tokens: int) -> str:
        if not self.config.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY not set")

        async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
            response = await client.post(
                "https://api.openai.com/v1/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.config.openai_api_key}",
                    "Content-Type": "application/json"
                },
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "max_tokens": max_tokens
                }
            )

        if response.status_code != 200:
            raise RuntimeError(f"API error: {response.status_code}")

        data = response.json()
        return data["choices"][0]["message"]["content"]

    async def _call_ollama(self, prompt: str) -> str:
        async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
            response = await client.post(
                f"{self.config.ollama_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False
                }
            )

        if response.status_code != 200:
            raise RuntimeError(f"Ollama error: {response.status_code}")

        return response.json().get("response", "")
