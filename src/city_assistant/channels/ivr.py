"""Phone (IVR) adapter.

Produces a channel-neutral voice plan; an external generator turns it into
the telephony provider's markup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional

from city_assistant.ai.orchestrator import ConversationOrchestrator
from city_assistant.channels.base import ChannelAdapter
from city_assistant.channels.models import ChannelResponse
from city_assistant.config import ChannelsConfig, CityProfile
from city_assistant.core.types import Channel, Language
from city_assistant.log import get_logger
from city_assistant.nlp.language import detect_language

logger = get_logger(__name__)

GOODBYE_PHRASES = ("goodbye", "bye", "thank you", "thanks", "adios", "gracias")
ESCALATE_PHRASES = ("agent", "human", "person", "representative", "agente", "persona")
DIGIT_ESCALATE = "1"
DIGITS_HANGUP = ("0", "9")

_TEXT = {
    Language.ENGLISH: {
        "escalate_prompt": (
            "If you would like to speak with a live agent, press 1. "
            "To continue with the assistant, ask your next question."
        ),
        "continue_prompt": "Do you have another question?",
        "no_input_goodbye": "Thank you for calling the {city}. Goodbye!",
        "transfer": "We are connecting you to a live agent. Please hold.",
        "error": "I apologize, there was an issue. Please try again later. Goodbye.",
        "goodbye": "Thank you for calling the {city}. Have a great day!",
        "reprompt": "I did not catch that. Please try again.",
    },
    Language.SPANISH: {
        "escalate_prompt": (
            "Si desea hablar con un agente, presione 1. "
            "Para continuar con el asistente, haga su siguiente pregunta."
        ),
        "continue_prompt": "Tiene otra pregunta?",
        "no_input_goodbye": "Gracias por llamar a la {city_es}. Adios!",
        "transfer": "Lo estamos conectando con un agente. Por favor espere.",
        "error": "Lo siento, hubo un problema. Por favor intente de nuevo mas tarde. Adios.",
        "goodbye": "Gracias por llamar a la {city_es}. Que tenga un buen dia!",
        "reprompt": "No le entendí. Por favor intente de nuevo.",
    },
}


@dataclass(frozen=True, slots=True)
class Gather:
    prompt: str
    locale: str
    timeout: int = 8
    num_digits: Optional[int] = None
    hints: str = ""


@dataclass(frozen=True, slots=True)
class VoiceReply:
    """Ordered speech plan for one IVR turn.

    ``say`` is spoken first, then ``gather`` listens for speech or digits;
    if nothing is heard, ``after`` is spoken and ``action`` runs.
    """

    voice: str
    language: Language
    say: list[str] = field(default_factory=list)
    gather: Optional[Gather] = None
    after: list[str] = field(default_factory=list)
    action: Literal["hangup", "transfer", "none"] = "hangup"
    transfer_to: Optional[str] = None
    response: Optional[ChannelResponse] = None


class IVRChannelAdapter(ChannelAdapter):
    """Routes speech/DTMF input from a phone call."""

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        config: ChannelsConfig | None = None,
        city: CityProfile | None = None,
    ):
        super().__init__(orchestrator, config)
        self.city = city or CityProfile()

    @property
    def channel_name(self) -> str:
        return Channel.IVR

    def _voice(self, language: Language) -> str:
        ivr = self.config.ivr
        return ivr.voice_es if language == Language.SPANISH else ivr.voice_en

    def _locale(self, language: Language) -> str:
        ivr = self.config.ivr
        return ivr.locale_es if language == Language.SPANISH else ivr.locale_en

    def _text(self, language: Language, key: str) -> str:
        short = self.city.name.removeprefix("City of ").strip()
        return _TEXT[language][key].format(city=self.city.name, city_es=f"Ciudad de {short}")

    def response_plan(
        self, message: str, language: Language, escalate: bool = False, response: ChannelResponse | None = None
    ) -> VoiceReply:
        if escalate:
            gather = Gather(
                prompt=self._text(language, "escalate_prompt"),
                locale=self._locale(language),
                timeout=5,
                num_digits=1,
                hints=self.config.ivr.hints,
            )
        else:
            gather = Gather(
                prompt=self._text(language, "continue_prompt"),
                locale=self._locale(language),
                timeout=8,
                hints=self.config.ivr.hints,
            )
        return VoiceReply(
            voice=self._voice(language),
            language=language,
            say=[message],
            gather=gather,
            after=[self._text(language, "no_input_goodbye")],
            action="hangup",
            response=response,
        )

    def escalation_plan(self, language: Language) -> VoiceReply:
        return VoiceReply(
            voice=self._voice(language),
            language=language,
            say=[self._text(language, "transfer")],
            action="transfer",
            transfer_to=self.city.transfer_phone,
        )

    def goodbye_plan(self, language: Language) -> VoiceReply:
        return VoiceReply(
            voice=self._voice(language),
            language=language,
            say=[self._text(language, "goodbye")],
            action="hangup",
        )

    def error_plan(self, language: Language = Language.ENGLISH) -> VoiceReply:
        return VoiceReply(
            voice=self._voice(language),
            language=language,
            say=[self._text(language, "error")],
            action="hangup",
        )

    async def handle(self, payload: Mapping[str, Any], metadata: Optional[Mapping[str, str]] = None) -> VoiceReply:
        caller = str(payload.get("From") or "").strip()
        speech = str(payload.get("SpeechResult") or "").strip()
        digits = str(payload.get("Digits") or "").strip()
        if not caller:
            raise self.reject("'From' is required")

        logger.info("ivr_input", caller=caller, call_sid=payload.get("CallSid"), digits=digits or None)

        if digits == DIGIT_ESCALATE:
            return self.escalation_plan(Language.ENGLISH)
        if digits in DIGITS_HANGUP:
            return self.goodbye_plan(Language.ENGLISH)

        if not speech:
            return self.response_plan(self._text(Language.ENGLISH, "reprompt"), Language.ENGLISH)

        lowered = speech.lower()
        if any(phrase in lowered for phrase in GOODBYE_PHRASES):
            return self.goodbye_plan(detect_language(speech))
        if any(phrase in lowered for phrase in ESCALATE_PHRASES):
            return self.escalation_plan(detect_language(speech))

        try:
            result = await self.orchestrator.process_message(Channel.IVR, caller, speech, None, dict(metadata or {}))
        except Exception as e:
            logger.error("ivr_processing_failed", caller=caller, error=str(e))
            return self.error_plan(Language.ENGLISH)
        return self.response_plan(result.message, result.language, result.escalate, result)
