"""
Wine label analysis through the OpenAI vision API.

One image in, one AIWineResponse out, or an AnalysisError classifying what
went wrong. Transient provider errors are retried with exponential backoff.
"""

import json
import logging
from typing import Any, Optional

from openai import APIConnectionError, OpenAI, OpenAIError, RateLimitError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from vinoscan.config import OPENAI_MAX_TOKENS, OPENAI_MODEL, OPENAI_TEMPERATURE, get_api_key
from vinoscan.constants import WineType
from vinoscan.error_handling import AnalysisError, AnalysisFailure
from vinoscan.schema import AIWineResponse

logger = logging.getLogger(__name__)

LABEL_PROMPT = (
    "Analyze this wine label. Extract the following information in JSON format: "
    "name of the wine, the maker/winery, the vintage year, the type "
    f"(categorize as exactly one of: {', '.join(WineType.values())}), "
    "and a brief professional tasting description.\n\n"
    'Return JSON only with the keys "name", "maker", "year", "type", "description".'
)


class LabelAnalyzer:
    """
    Reads wine attributes from a label photo.

    The OpenAI client is created lazily on the first call so a missing API
    key surfaces as an AnalysisError instead of failing at construction.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        max_attempts: int = 3,
        wait=None,
    ):
        """
        Initialize analyzer.

        Args:
            client: Preconfigured OpenAI-compatible client (tests inject a fake)
            api_key: API key, defaults to OPENAI_API_KEY from the environment
            model: Vision-capable chat model name
            max_attempts: Attempts for rate-limit / connection errors
            wait: tenacity wait strategy between attempts
        """
        self._client = client
        self._api_key = api_key
        self.model = model
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait or wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type((RateLimitError, APIConnectionError)),
            reraise=True,
        )

    @property
    def client(self):
        if self._client is None:
            api_key = self._api_key or get_api_key()
            if not api_key:
                raise AnalysisError(AnalysisFailure.MISSING_CREDENTIAL)
            self._client = OpenAI(api_key=api_key)
        return self._client

    def analyze(self, image: str) -> AIWineResponse:
        """
        Analyze a single label image.

        Args:
            image: Base64 data URL (a bare base64 string is treated as JPEG)

        Returns:
            AIWineResponse with placeholders for anything the provider omitted

        Raises:
            AnalysisError: With the failure kind set
        """
        if not image.startswith("data:"):
            image = f"data:image/jpeg;base64,{image}"

        client = self.client
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": LABEL_PROMPT},
                {"type": "image_url", "image_url": {"url": image}},
            ],
        }]

        try:
            completion = self._retrying(self._request, client, messages)
        except APIConnectionError as e:
            logger.warning(f"Label analysis could not reach the provider: {e}")
            raise AnalysisError(AnalysisFailure.NETWORK) from e
        except OpenAIError as e:
            logger.error(f"Label analysis provider error: {type(e).__name__} - {e}")
            raise AnalysisError(AnalysisFailure.PROVIDER_ERROR, str(e) or None) from e

        content = self._content_of(completion)
        if not content:
            logger.warning("Label analysis returned an empty response")
            raise AnalysisError(AnalysisFailure.EMPTY_RESPONSE)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON from label analysis: {e}")
            raise AnalysisError(AnalysisFailure.PARSE_FAILURE) from e

        if not isinstance(data, dict):
            logger.error(f"Label analysis JSON is not an object: {type(data).__name__}")
            raise AnalysisError(AnalysisFailure.PARSE_FAILURE)

        result = AIWineResponse.from_provider(data)
        logger.info(f"Analyzed label: {result.name} ({result.maker}, {result.year})")
        return result

    def _request(self, client, messages: list):
        logger.debug(f"Calling {self.model} for label analysis...")
        return client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=OPENAI_TEMPERATURE,
            max_tokens=OPENAI_MAX_TOKENS,
        )

    @staticmethod
    def _content_of(completion) -> str:
        choices = getattr(completion, "choices", None) or []
        if not choices:
            return ""
        return (choices[0].message.content or "").strip()
