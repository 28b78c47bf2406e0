"""Text-to-speech rendering for Twilio."""
import re
from typing import Optional
from urllib.parse import urlencode

from twilio.twiml.voice_response import Gather, VoiceResponse

from voice_gateway.services.call_session.states import CallResponse, ResponseAction

NO_SPEECH_FALLBACK = "Sorry, I didn't catch that. Could you say that again?"

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MARKUP_TAG = re.compile(r"<[^>]+>")


def to_spoken_reply(text: Optional[str], max_sentences: int = 2, max_chars: int = 220) -> str:
    """
    Clean and shorten model output for phone delivery.

    Strips markdown and markup, keeps the first ``max_sentences`` sentences
    and caps the result at ``max_chars`` characters.
    """
    if not text or not text.strip():
        return NO_SPEECH_FALLBACK

    clean = _MARKDOWN_LINK.sub(r"\1", text)
    clean = _MARKUP_TAG.sub(" ", clean)
    clean = clean.replace("**", "").replace("`", "").replace("_", " ").replace("#", "")
    clean = re.sub(r"^\s*[-*•]\s+", "", clean, flags=re.MULTILINE)
    clean = clean.replace("\n\n", ". ").replace("\n", " ")
    clean = re.sub(r"\.(\s*\.)+", ".", clean)
    clean = re.sub(r"\s+", " ", clean).strip()

    sentences = _SENTENCE_SPLIT.split(clean)
    clean = " ".join(sentences[:max_sentences]).strip()

    if len(clean) > max_chars:
        cut = clean[:max_chars]
        # Prefer ending on a word boundary
        if " " in cut and not clean[max_chars].isspace():
            cut = cut.rsplit(" ", 1)[0]
        clean = cut.rstrip(" ,;:-")

    return clean or NO_SPEECH_FALLBACK


class TwiMLRenderer:
    """Renders call responses as TwiML documents."""

    def __init__(
        self,
        voice: str = "Polly.Matthew-Neural",
        language: str = "en-US",
        gather_path: str = "/webhooks/voice/gather",
        incoming_path: str = "/webhooks/voice/incoming",
    ):
        self.voice = voice
        self.language = language
        self.gather_path = gather_path
        self.incoming_path = incoming_path

    def _url(self, base_url: str, path: str, business_id: Optional[str]) -> str:
        url = f"{base_url.rstrip('/')}{path}"
        if business_id:
            url = f"{url}?{urlencode({'businessId': business_id})}"
        return url

    def render(self, response: CallResponse, base_url: str = "") -> str:
        """
        Render a call response.

        Args:
            response: Semantic response from the call state machine
            base_url: Public base URL used for gather and redirect actions

        Returns:
            TwiML XML string
        """
        voice = response.voice or self.voice
        language = response.language or self.language
        twiml = VoiceResponse()

        if response.action == ResponseAction.GATHER:
            gather = Gather(
                input="speech",
                action=self._url(base_url, self.gather_path, response.business_id),
                method="POST",
                language=language,
                speech_timeout="auto",
                barge_in=True,
            )
            gather.say(response.message, voice=voice, language=language)
            twiml.append(gather)
            # No speech before the gather timed out: come back through the entry point
            twiml.redirect(
                self._url(base_url, self.incoming_path, response.business_id), method="POST"
            )
        elif response.action == ResponseAction.HANGUP:
            if response.message:
                twiml.say(response.message, voice=voice, language=language)
            twiml.hangup()

        return str(twiml)
