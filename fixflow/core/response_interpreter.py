# fixflow/core/response_interpreter.py
"""
Response interpreter: maps one free-text reply to one step's expected responses.

Two tiers:
1. Regex patterns declared on the step, in declaration order. No I/O.
2. A language classifier, only when no pattern matched.

interpret_user_response never raises. Any classifier problem (timeout,
network, malformed JSON) becomes the safe default, which the engine treats
like an unclear answer.
"""
import asyncio
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fixflow.models.flow_models import ExpectedResponse, MediaType, Step
from fixflow.models.session_state import MediaReceived, ResponseInterpretation, Sentiment
from fixflow.prompts.interpreter_prompts import INTERPRETER_SYSTEM_TEMPLATE

logger = logging.getLogger(__name__)

PATTERN_MATCH_CONFIDENCE = 0.95
DEFAULT_CLASSIFIER_CONFIDENCE = 0.5

VIDEO_URL_PATTERN = re.compile(r"\.(mp4|mov|avi|webm)$", re.IGNORECASE)

LOCATION_KEYWORDS = [
    'kitchen', 'bathroom', 'bedroom', 'living room', 'lounge', 'toilet',
    'shower', 'sink', 'utility', 'basement', 'attic', 'garage',
]

_YES_WORDS = {'yes', 'yeah', 'yep', 'y'}


class LanguageClassifier(Protocol):
    """Anything that can turn (system prompt, user message) into a JSON object"""

    async def classify(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        ...


class ClassifierVerdict(BaseModel):
    """Validated shape of the classifier's JSON reply"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    matched_response_id: Optional[str] = Field(default=None, alias="matchedResponseId")
    confidence: float = DEFAULT_CLASSIFIER_CONFIDENCE
    extracted_data: Dict[str, Any] = Field(default_factory=dict, alias="extractedData")
    sentiment: Sentiment = Sentiment.NEUTRAL
    needs_clarification: bool = Field(default=False, alias="needsClarification")
    reasoning: Optional[str] = None

    @field_validator("matched_response_id", mode="before")
    @classmethod
    def _empty_id_is_none(cls, v):
        return v or None

    @field_validator("confidence", mode="before")
    @classmethod
    def _default_and_clamp_confidence(cls, v):
        # missing or zero means the model did not commit to a number
        if v is None or v == 0:
            return DEFAULT_CLASSIFIER_CONFIDENCE
        return min(1.0, max(0.0, float(v)))

    @field_validator("extracted_data", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return v if v is not None else {}

    @field_validator("sentiment", mode="before")
    @classmethod
    def _unknown_sentiment_is_neutral(cls, v):
        try:
            return Sentiment(v)
        except ValueError:
            return Sentiment.NEUTRAL

    @field_validator("needs_clarification", mode="before")
    @classmethod
    def _none_is_false(cls, v):
        return bool(v)


def _pattern_matches(pattern: str, message: str) -> bool:
    try:
        return re.search(pattern, message, re.IGNORECASE) is not None
    except re.error:
        # Not a valid regex; treat it as plain text
        return pattern.lower() in message


def try_pattern_match(message: str, expected_responses: Iterable[ExpectedResponse]) -> Optional[str]:
    """Return the id of the first expected response with a matching pattern."""
    normalized = message.lower().strip()

    for expected in expected_responses:
        for pattern in expected.patterns:
            if _pattern_matches(pattern, normalized):
                return expected.id

    return None


def detect_media(attachments: Optional[List[Mapping[str, str]]]) -> Optional[MediaReceived]:
    """
    Classify the first image or video attachment.

    Args:
        attachments: Transport attachments as {"type": mime_type, "url": url}

    Returns:
        MediaReceived for the first image/* or video/* attachment, else None
    """
    for attachment in attachments or []:
        mime_type = attachment.get("type") or ""
        if mime_type.startswith("image/"):
            return MediaReceived(type=MediaType.PHOTO, url=attachment["url"])
        if mime_type.startswith("video/"):
            return MediaReceived(type=MediaType.VIDEO, url=attachment["url"])
    return None


def media_from_urls(media_urls: Optional[List[str]]) -> Optional[MediaReceived]:
    """Media received via the chat transport; only the first URL counts."""
    if not media_urls:
        return None
    url = media_urls[0]
    media_type = MediaType.VIDEO if VIDEO_URL_PATTERN.search(url) else MediaType.PHOTO
    return MediaReceived(type=media_type, url=url)


def extract_data_from_message(message: str, data_types: Iterable[str]) -> Dict[str, Any]:
    """
    Regex-only extraction of well-known values.

    Supported data types: pressure (bar, float), temperature (degrees, float),
    location (first known room name) and yes_no ("yes"/"no"). Unknown types
    are skipped.
    """
    extracted: Dict[str, Any] = {}
    lowered = message.lower()

    for data_type in data_types:
        if data_type == 'pressure':
            match = re.search(r"(\d+\.?\d*)\s*bar", message, re.IGNORECASE)
            if match:
                extracted['pressure'] = float(match.group(1))

        elif data_type == 'temperature':
            match = re.search(r"(\d+\.?\d*)\s*(degrees?|c|celsius)", message, re.IGNORECASE)
            if match:
                extracted['temperature'] = float(match.group(1))

        elif data_type == 'location':
            for location in LOCATION_KEYWORDS:
                if location in lowered:
                    extracted['location'] = location
                    break

        elif data_type == 'yes_no':
            match = re.match(r"^(yes|no|yeah|nope|yep|nah|y|n)$", lowered)
            if match:
                extracted['yes_no'] = 'yes' if match.group(1) in _YES_WORDS else 'no'

    return extracted


def build_system_prompt(step: Step, context: Mapping[str, Any]) -> str:
    expected = [
        {"id": r.id, "semanticMatch": r.semantic_match, "examples": r.examples}
        for r in step.expected_responses
    ]
    return INTERPRETER_SYSTEM_TEMPLATE.format(
        step_template=step.template,
        expected_responses=json.dumps(expected, indent=2),
        context=json.dumps(dict(context), indent=2, default=str),
    )


class ResponseInterpreter:
    """
    Hybrid pattern + classifier interpreter.

    The classifier is injected so tests can swap in a deterministic stub.
    Without a classifier only the pattern tier runs.
    """

    def __init__(self, classifier: Optional[LanguageClassifier] = None, timeout: Optional[float] = 15.0):
        self.classifier = classifier
        self.timeout = timeout

    async def interpret_user_response(
        self,
        message: str,
        step: Step,
        context: Optional[Mapping[str, Any]] = None
    ) -> ResponseInterpretation:
        logger.info(
            f"Interpreting reply for step '{step.id}' ({step.type.value}, "
            f"{len(step.expected_responses)} expected responses): '{message[:100]}'"
        )

        matched = try_pattern_match(message, step.expected_responses)
        if matched:
            logger.debug(f"Pattern match on step '{step.id}': {matched}")
            return ResponseInterpretation(
                matched_response_id=matched,
                confidence=PATTERN_MATCH_CONFIDENCE,
                extracted_data={},
                sentiment=Sentiment.NEUTRAL,
                needs_clarification=False,
            )

        if self.classifier is None:
            logger.debug("No classifier configured, asking for clarification")
            return ResponseInterpretation.safe_default()

        try:
            system_prompt = build_system_prompt(step, context or {})
            raw = await asyncio.wait_for(
                self.classifier.classify(system_prompt, message),
                timeout=self.timeout
            )
            verdict = ClassifierVerdict.model_validate(raw)
        except asyncio.TimeoutError:
            logger.warning(f"Classifier timed out after {self.timeout}s on step '{step.id}'")
            return ResponseInterpretation.safe_default()
        except Exception as e:
            logger.error(f"Classifier interpretation failed on step '{step.id}': {e}")
            return ResponseInterpretation.safe_default()

        matched_id = verdict.matched_response_id
        if matched_id is not None and matched_id not in step.response_ids():
            logger.warning(f"Classifier returned unknown response id '{matched_id}' for step '{step.id}'")
            matched_id = None

        logger.info(
            f"Classifier verdict: matched={matched_id} confidence={verdict.confidence} "
            f"sentiment={verdict.sentiment.value} reasoning={verdict.reasoning}"
        )

        return ResponseInterpretation(
            matched_response_id=matched_id,
            confidence=verdict.confidence,
            extracted_data=verdict.extracted_data,
            sentiment=verdict.sentiment,
            needs_clarification=verdict.needs_clarification,
        )
