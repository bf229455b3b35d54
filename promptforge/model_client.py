from __future__ import annotations
"""
Promptforge: Model Client
==========================
The single capability the engine uses to talk to the generative model:

    invoke(instruction_text, model, image=None) -> raw text

Constructed once per process and injected into each ConversationController.
Anything with the same ``invoke`` signature can stand in for it (tests use a
scripted fake).

Provider failures are mapped onto the engine's error taxonomy. The client
does not retry and does not fall back to another model; the caller decides
whether to resubmit.
"""

import logging

import anthropic

from promptforge import config
from promptforge.attachments import ImagePart
from promptforge.errors import QuotaExceeded, TransportFailure

logger = logging.getLogger(__name__)


class ModelClient:
    def __init__(
        self,
        api_key: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        client: anthropic.Anthropic | None = None,
    ):
        self.api_key = api_key if api_key is not None else config.ANTHROPIC_API_KEY
        self.max_tokens = max_tokens or config.MAX_OUTPUT_TOKENS
        self.timeout = timeout or config.ANTHROPIC_TIMEOUT
        self._client = client

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not self.api_key:
                raise TransportFailure(
                    "ANTHROPIC_API_KEY not set. Add it to your .env file."
                )
            self._client = anthropic.Anthropic(
                api_key=self.api_key,
                max_retries=0,
                timeout=self.timeout,
            )
        return self._client

    @staticmethod
    def build_content(instruction_text: str, image: ImagePart | None = None) -> list[dict]:
        """User-turn content: the image block (if any) followed by the text."""
        content = []
        if image is not None:
            content.append(image.to_content_block())
        content.append({"type": "text", "text": instruction_text})
        return content

    def invoke(self, instruction_text: str, model: str, image: ImagePart | None = None) -> str:
        client = self._get_client()
        try:
            response = client.messages.create(
                model=model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": self.build_content(instruction_text, image)}],
            )
        except anthropic.RateLimitError as e:
            logger.warning(f"[model_client] Quota exceeded for {model}: {e}")
            raise QuotaExceeded("API Quota exceeded. Please try again later.")
        except anthropic.APIStatusError as e:
            if e.status_code == 429:
                logger.warning(f"[model_client] Quota exceeded for {model}: {e}")
                raise QuotaExceeded("API Quota exceeded. Please try again later.")
            logger.error(f"[model_client] API error with {model}: {e}")
            raise TransportFailure(f"Model call failed with status {e.status_code}")
        except anthropic.APITimeoutError as e:
            logger.error(f"[model_client] Timeout with {model}: {e}")
            raise TransportFailure("Model call timed out")
        except anthropic.APIError as e:
            logger.error(f"[model_client] API error with {model}: {e}")
            raise TransportFailure(f"Model call failed: {e}")

        logger.info(
            f"[model_client] model={response.model} "
            f"stop_reason={response.stop_reason} "
            f"input_tokens={response.usage.input_tokens} "
            f"output_tokens={response.usage.output_tokens}"
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return text.strip()
