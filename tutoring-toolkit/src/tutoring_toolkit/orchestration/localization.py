"""
User-facing messages in both supported languages.

Every 'ErrorKind' has an entry in 'ERROR_MESSAGES', so any failure can be turned
into a message without a fallback branch. A failed connection to the provider
reads as a technical issue; the offline notice is only shown when the
connectivity check itself fails.
"""

from tutoring_toolkit.errors import ErrorKind
from tutoring_toolkit.orchestration.data_models import Language, TutoringMode

ERROR_MESSAGES: dict[ErrorKind, dict[Language, str]] = {
    ErrorKind.OVERLOADED: {
        Language.EN: "The tutoring service is busy right now. I retried several times without success, please try again shortly.",
        Language.BM: "Perkhidmatan tutor sedang sibuk. Saya telah mencuba beberapa kali tanpa berjaya, sila cuba lagi sebentar lagi.",
    },
    ErrorKind.RATE_LIMITED: {
        Language.EN: "Too many requests. Please wait a moment before trying again.",
        Language.BM: "Terlalu banyak permintaan. Sila tunggu sebentar sebelum mencuba lagi.",
    },
    ErrorKind.AUTHENTICATION: {
        Language.EN: "API key error: the configured key was rejected. Please check the key in your deployment settings.",
        Language.BM: "Ralat kunci API: kunci yang ditetapkan telah ditolak. Sila semak kunci dalam tetapan pelaksanaan anda.",
    },
    ErrorKind.MISSING_API_KEY: {
        Language.EN: "API Key not found. Please ensure it is set in your deployment settings.",
        Language.BM: "Kunci API tidak dijumpai. Sila pastikan ia ditetapkan dalam tetapan pelaksanaan anda.",
    },
    ErrorKind.BLOCKED: {
        Language.EN: "Sorry, your request was blocked by our safety filters.",
        Language.BM: "Maaf, permintaan anda disekat oleh penapis keselamatan kami.",
    },
    ErrorKind.MALFORMED_OUTPUT: {
        Language.EN: "I encountered a technical issue. Please try again later.",
        Language.BM: "Maaf, saya menghadapi ralat teknikal. Sila cuba lagi kemudian.",
    },
    ErrorKind.NETWORK: {
        Language.EN: "I encountered a technical issue. Please try again later.",
        Language.BM: "Maaf, saya menghadapi ralat teknikal. Sila cuba lagi kemudian.",
    },
    ErrorKind.OFFLINE: {
        Language.EN: "Sorry, you are currently offline.",
        Language.BM: "Maaf, anda sedang luar talian.",
    },
    ErrorKind.UNKNOWN: {
        Language.EN: "I encountered a technical issue. Please try again later.",
        Language.BM: "Maaf, saya menghadapi ralat teknikal. Sila cuba lagi kemudian.",
    },
}

STUDY_NOTES_EMPTY: dict[Language, str] = {
    Language.EN: "Analysis failed. Please try again with clearer files.",
    Language.BM: "Analisis gagal. Sila cuba lagi dengan fail yang lebih jelas.",
}

MODE_PROMPT: dict[Language, str] = {
    Language.EN: (
        "Please choose a tutoring mode for this session before we continue:\n\n"
        "1. **Learning**: Step-by-step guidance\n"
        "2. **Exam**: Formal derivation & tips\n"
        "3. **Fast Answer**: Raw math only\n\n"
        'Reply with "**Fast**", "**Exam**", or "**Learning**".'
    ),
    Language.BM: (
        "Sila pilih mod bimbingan untuk sesi ini sebelum kita teruskan:\n\n"
        "1. **Learning**: Bimbingan langkah demi langkah\n"
        "2. **Exam**: Persediaan peperiksaan & tips\n"
        "3. **Fast Answer**: Jawapan matematik terus\n\n"
        'Balas dengan "**Fast**", "**Exam**", atau "**Learning**".'
    ),
}

MODE_SET: dict[Language, str] = {
    Language.EN: "Mode set to **{mode}**. I'm ready for your next math challenge!",
    Language.BM: "Mod ditetapkan kepada **{mode}**. Saya sedia untuk cabaran matematik anda yang seterusnya!",
}


def error_message(kind: ErrorKind, language: Language) -> str:
    return ERROR_MESSAGES[kind][language]


def mode_set_message(mode: TutoringMode, language: Language) -> str:
    return MODE_SET[language].format(mode=mode.value.upper())
