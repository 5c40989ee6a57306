"""
Vision collaborator: image in, the model's text answer out.

The processors supply the prompt and model hint; this module only performs
the call. We never trust the answer here. Every response still goes through
the processor's extract + validate stages.

Graceful fallback: no API key, or any API failure → None. The pipeline turns
a None into an ExtractionError so the user is asked to retake the photo.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from .models import ProcessorMetadata

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a careful document reader for a vehicle maintenance app.
Transcribe exactly what is printed. Never correct, complete or invent values.
Follow the output format in the user's instructions precisely.
"""


class VisionClient:
    """Thin wrapper over the OpenAI chat completions API with image input."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_override: Optional[str] = None,
        client: Any = None,
    ):
        self._api_key = api_key
        self._model_override = model_override
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def read_document(
        self,
        image: bytes,
        metadata: ProcessorMetadata,
        mime_type: str = "image/jpeg",
    ) -> str | None:
        """Ask the vision model to read one document image.

        Returns:
            The model's raw text answer, or None if the call is unavailable or fails.
        """
        if not self.enabled:
            logger.info("No OPENAI_API_KEY set; vision capture disabled")
            return None

        hint = metadata.model_hint
        model = self._model_override or hint.model
        image_url = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"

        try:
            client = self._client or OpenAI(api_key=self._api_key)
            response = client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": metadata.prompt},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    },
                ],
                max_tokens=hint.max_tokens,
                temperature=hint.temperature,
            )
        except OpenAIError as e:
            logger.error("Vision call failed (%s, %s): %s", metadata.name, model, e)
            return None

        content = response.choices[0].message.content
        if not content:
            logger.error("Vision model returned empty content for %s", metadata.name)
            return None

        logger.info("Vision call succeeded for %s (%s)", metadata.name, model)
        return content
