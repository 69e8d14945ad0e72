"""Bilingual system prompts, knowledge context assembly, and fixed replies."""

from __future__ import annotations

from typing import Sequence

from city_assistant.config import CityProfile
from city_assistant.core.types import Language
from city_assistant.knowledge.models import ScoredDocument
from city_assistant.nlp.sentiment import SentimentInfo

NO_CONTEXT = "No specific information found in the knowledge base for this query."
CONTEXT_SEPARATOR = "\n---\n"

_PROMPT_EN = """You are the {city} Virtual Assistant for {city_short}, {state}. Your role is to help residents, visitors, and business owners with information about city services, events, permits, parks, and more.

INSTRUCTIONS:
1. ALWAYS respond in English
2. Be friendly, professional, and helpful
3. Use the context information provided to give accurate answers
4. If you don't have specific information, suggest contacting the appropriate department
5. Provide phone numbers and addresses when relevant
6. For emergencies, always recommend calling 911

IMPORTANT CONTACT INFORMATION:
- City Hall: {address}
- Main Phone: {main_phone}
- {city_short} Police (non-emergency): {police_phone}
- Emergencies: 911

CITY WEBSITE CONTEXT:
{context}
{escalation_note}

Respond concisely but completely. If you reference information from the context, do so naturally without saying "according to the context"."""

_PROMPT_ES = """Eres el Asistente Virtual de la {city_es}, {state}. Tu rol es ayudar a los residentes, visitantes y empresarios con información sobre servicios municipales, eventos, permisos, parques, y más.

INSTRUCCIONES:
1. Responde SIEMPRE en español
2. Sé amable, profesional y servicial
3. Usa la información del contexto proporcionado para dar respuestas precisas
4. Si no tienes información específica, sugiere contactar al departamento apropiado
5. Proporciona números de teléfono y direcciones cuando sea relevante
6. Para emergencias, siempre recomienda llamar al 911

INFORMACIÓN DE CONTACTO IMPORTANTE:
- City Hall: {address}
- Teléfono Principal: {main_phone}
- Policía de {city_short} (no emergencias): {police_phone}
- Emergencias: 911

CONTEXTO DEL SITIO WEB DE LA CIUDAD:
{context}
{escalation_note}

Responde de manera concisa pero completa. Si mencionas información del contexto, hazlo naturalmente sin decir "según el contexto"."""

_ESCALATION_NOTES = {
    Language.ENGLISH: (
        "\n\nNOTE: The user seems frustrated or has an urgent request. Be especially kind and helpful. "
        "Offer to connect them with a human representative if needed."
    ),
    Language.SPANISH: (
        "\n\nNOTA: El usuario parece frustrado o tiene una solicitud urgente. Sea especialmente amable y "
        "servicial. Ofrezca conectarlos con un representante humano si es necesario."
    ),
}

FALLBACK_REPLIES = {
    Language.ENGLISH: "I apologize, I could not process your request. Please try again.",
    Language.SPANISH: "Lo siento, no pude procesar su solicitud. Por favor intente de nuevo.",
}

CONFIGURATION_ERROR_REPLIES = {
    Language.ENGLISH: "The AI service is not properly configured. Please contact support.",
    Language.SPANISH: "El servicio de IA no está configurado correctamente. Por favor contacte a soporte.",
}


def _short_name(city: str) -> str:
    return city.removeprefix("City of ").strip()


def build_context(results: Sequence[ScoredDocument]) -> str:
    """Render ranked documents as labeled source blocks for the prompt."""
    if not results:
        return NO_CONTEXT
    return CONTEXT_SEPARATOR.join(
        f"[Source {i}: {item.document.title}]\n{item.document.content}\n"
        for i, item in enumerate(results, start=1)
    )


def build_system_prompt(
    language: Language,
    context: str,
    sentiment: SentimentInfo,
    city: CityProfile | None = None,
) -> str:
    city = city or CityProfile()
    short = _short_name(city.name)
    template = _PROMPT_ES if language == Language.SPANISH else _PROMPT_EN
    return template.format(
        city=city.name,
        city_es=f"Ciudad de {short}",
        city_short=short,
        state=city.state,
        address=city.address,
        main_phone=city.main_phone,
        police_phone=city.police_phone,
        context=context,
        escalation_note=_ESCALATION_NOTES[language] if sentiment.escalates else "",
    )


def fallback_reply(language: Language) -> str:
    return FALLBACK_REPLIES[language]


def configuration_error_reply(language: Language) -> str:
    return CONFIGURATION_ERROR_REPLIES[language]
