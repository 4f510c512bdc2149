"""Canned replies for the chat widget (no network, no state)."""
from typing import Dict, Tuple

WELCOME_MESSAGE = "Welcome to Care Sync! I'm your assistant. How can I help you today?"

STATIC_RESPONSES: Dict[str, str] = {
    "hi": "Hello! How can I assist you today?",
    "hello": "Hello! How can I help you with NAMASTE codes or ICD-11?",
    "hey": "Hey! What medical or mapping query can I answer?",
    "bye": "Goodbye! Let me know anytime if you need help again.",
    "thanks": "You’re welcome! 😊",
    "thank you": "Happy to help! 🙌",

    # NAMASTE / ICD-11
    "what is namaste": "NAMASTE is an Indian traditional medicine coding system for Ayurveda, Siddha, and Unani diagnoses.",
    "namaste code": "NAMASTE codes are traditional medicine diagnosis codes used in India. Tell me your condition, and I’ll try to find its mapping.",
    "icd11": "ICD-11 is WHO’s international classification for diseases. I can help map NAMASTE → ICD-11.",
    "map namaste to icd11": "Tell me the NAMASTE code or symptom, and I’ll show you the ICD-11 mapping.",
}

# Checked in order, first keyword contained in the input wins
KEYWORD_RULES: Tuple[Tuple[str, str], ...] = (
    ("fever", "Fever usually maps to ICD-11 code: MG40. NAMASTE code depends on the system (Ayurveda/Siddha/Unani)."),
    ("cough", "Cough corresponds to ICD-11 code: CA23. NAMASTE mapping varies per traditional medicine category."),
    ("cold", "Common cold generally maps to ICD-11: RA01. You can specify Ayurveda/Siddha/Unani for NAMASTE code."),
    ("headache", "Headache maps to ICD-11: 8A80. In NAMASTE Ayurveda, it may relate to 'Shiroroga' categories."),
    ("pain", "Pain-related conditions have many ICD-11 mappings (e.g., chronic pain: MG30). Provide a location for accuracy."),
    ("ayurveda", "Ayurveda NAMASTE codes include disorders like 'Vata Vyadhi', 'Pitta Vyadhi'. Tell me a specific condition."),
    ("siddha", "Siddha NAMASTE diagnoses include Vadham, Pittam, Silethumam, etc. Tell me a condition to map."),
    ("unani", "Unani diagnoses include Balgham, Dam, Safra, and Sawda imbalances. Provide a condition for mapping."),
)

FALLBACK_REPLY = (
    "I didn’t fully understand that, but I can help with NAMASTE codes, ICD-11 mapping, "
    "symptoms, or medical classification. Try asking about a condition or code!"
)


def generate_static_reply(message: str) -> str:
    """Exact phrase first, then keyword rules, then the fallback."""
    text = (message or "").lower().strip()

    if text in STATIC_RESPONSES:
        return STATIC_RESPONSES[text]

    for keyword, reply in KEYWORD_RULES:
        if keyword in text:
            return reply

    return FALLBACK_REPLY
