"""
System instruction blocks and their composition.

The system instruction is the plain concatenation of: the base block, at most
one syllabus block, the mode block, and the guided-question block. The
syllabus is looked up from the sub-level when one is given and from the
learner level otherwise; both lookup tables are total.
"""

from collections.abc import Mapping
from enum import StrEnum
from textwrap import dedent

from tutoring_toolkit.orchestration.data_models import (
    Language,
    LearnerLevel,
    QuizDifficulty,
    SubLevel,
    TutoringMode,
)

LANGUAGE_TOKEN = "[LANGUAGE_TOKEN]"

BASE_INSTRUCTION = dedent("""
    ### MATHMENTOR AI INTELLIGENCE DIRECTIVE
    You are a professional and friendly AI tutor specialized in the Malaysian Mathematics curriculum (KSSM) and general mathematical text.

    ### LANGUAGE CONTROL (STRICT):
    - The current session language is [LANGUAGE_TOKEN].
    - If [LANGUAGE_TOKEN] is **BM**, ALL output MUST be in **Bahasa Melayu**, formal and textbook-style (KSSM / SPM standard). Do NOT mix English and Malay.
    - If [LANGUAGE_TOKEN] is **EN**, use standard English mathematical terminology.

    ### MATHEMATICS PRESERVATION (CRITICAL):
    - ALWAYS write numbers, variables, symbols, matrices and formulas in LaTeX ($...$ inline, $$...$$ for blocks).
    - Do NOT translate mathematical expressions, only the surrounding text.

    ### KSSM TERMINOLOGY (BM MODE):
    - Given → Diberi; Find / Determine → Cari / Tentukan; Hence → Oleh itu; Solution → Penyelesaian
    - Value → Nilai; Matrix → Matriks; Product → Hasil darab; Linear Inequality → Ketaksamaan Linear
    - Function → Fungsi; Graph → Graf; Probability → Kebarangkalian

    ### FORMATTING
    - Use short paragraphs, numbered steps and bold step titles.
    - When a diagram would genuinely help, add ONE line of the form [ILLUSTRATE: <short description of the diagram>]. It is replaced by a generated image.

    ### TEACHING PHILOSOPHY
    - Persona: patient, supportive and approachable; respectful and professional.
""").strip()


class Syllabus(StrEnum):
    KSSR = "KSSR"
    KSSM = "KSSM"
    PRE_UNIVERSITY = "Pre-University"


SYLLABUS_INSTRUCTIONS: dict[Syllabus, str] = {
    Syllabus.KSSR: dedent("""
        ### SYLLABUS: KSSR (PRIMARY)
        - The learner is a primary school pupil. Use small numbers, concrete objects (sweets, ringgit, clocks) and very short sentences.
        - Prefer column methods and number bonds over algebra. Avoid variables unless the question uses them.
    """).strip(),
    Syllabus.KSSM: dedent("""
        ### SYLLABUS: KSSM (SECONDARY)
        - Follow the KSSM Form 1-5 textbook sequence and notation.
        - Show working the way SPM marking schemes expect: state the formula, substitute, then simplify.
    """).strip(),
    Syllabus.PRE_UNIVERSITY: dedent("""
        ### SYLLABUS: ADDITIONAL MATHEMATICS / PRE-UNIVERSITY
        - The learner is comfortable with algebra. Use rigorous notation for calculus, vectors and matrices.
        - Justify each transformation and state the theorem or rule being applied.
    """).strip(),
}

SYLLABUS_BY_SUB_LEVEL: dict[SubLevel, Syllabus] = {
    SubLevel.STANDARD_1: Syllabus.KSSR,
    SubLevel.STANDARD_2: Syllabus.KSSR,
    SubLevel.STANDARD_3: Syllabus.KSSR,
    SubLevel.STANDARD_4: Syllabus.KSSR,
    SubLevel.STANDARD_5: Syllabus.KSSR,
    SubLevel.STANDARD_6: Syllabus.KSSR,
    SubLevel.FORM_1: Syllabus.KSSM,
    SubLevel.FORM_2: Syllabus.KSSM,
    SubLevel.FORM_3: Syllabus.KSSM,
    SubLevel.FORM_4: Syllabus.KSSM,
    SubLevel.FORM_5: Syllabus.KSSM,
    SubLevel.ESSENTIAL_MATHEMATICS: Syllabus.PRE_UNIVERSITY,
}

SYLLABUS_BY_LEVEL: dict[LearnerLevel, Syllabus | None] = {
    LearnerLevel.BEGINNER: Syllabus.KSSR,
    LearnerLevel.INTERMEDIATE: Syllabus.KSSM,
    LearnerLevel.ADVANCED: Syllabus.PRE_UNIVERSITY,
    LearnerLevel.GENERAL: None,
}

MODE_INSTRUCTIONS: dict[TutoringMode, str] = {
    TutoringMode.LEARNING: "MODE: LEARNING. Use analogies, step-by-step guidance, and provide practice questions.",
    TutoringMode.EXAM: "MODE: EXAM. Focus on formal derivation, precision, and mark-winning exam tips.",
    TutoringMode.FAST: (
        "MODE: FAST ANSWER. Provide ONLY the direct mathematical answer and step-by-step working. "
        "STRICTLY NO TEXT EXPLANATIONS. NO conversational filler. NO introductions or conclusions. "
        "Output ONLY LaTeX display-math blocks ($$...$$), one step per block, the last block being the final answer."
    ),
}

GUIDED_INSTRUCTION = (
    "CRITICAL: Socratic Guidance is ACTIVE. Do not give the answer yet. Ask a question to guide them in {language}."
)
DIRECT_INSTRUCTION = "Socratic Guidance is INACTIVE. Provide the solution directly in {language} but with clear steps."

STUDY_NOTES_INSTRUCTION = dedent("""
    ### QuickNotes AI INTELLIGENCE DIRECTIVE
    You are QuickNotes AI, an advanced study synthesizer. You will be provided with one or more documents (images, PDFs, or text).

    ### MULTI-FILE SYNTHESIS MISSION:
    1. **Cross-Reference**: If multiple files are provided, synthesize them into ONE unified study sheet.
    2. **De-duplicate**: Remove redundant information appearing in multiple files.
    3. **Hierarchy**: Organize from foundational concepts to advanced applications.
    4. **Precision**: Extract high-yield keywords, formulas, and definitions.

    ### OUTPUT STYLE (STRICT):
    - Merge the material into a cohesive curriculum instead of summarizing files one by one.
    - Use short bullet points and keywords.
    - Use LaTeX ($...$) for ALL mathematical symbols and formulas.
    - STRICTLY follow [LANGUAGE_TOKEN].

    ### STRUCTURE TEMPLATE:
    # [Study Topic Title]
    ## Core Concepts & Foundations
    ## Essential Definitions
    ## Formulas & Mathematical Rules
    ## Step-by-Step Processes
    ## Practical Examples (Synthesized)
    ## Exam Focus & "Trap" Warnings

    COMPRESSION LEVEL: Maximum.
    SYNTHESIS LEVEL: Holistic across all provided materials.
""").strip()

ILLUSTRATION_PROMPT = (
    "A clear mathematical diagram for: {description}. Minimalist, vector style, white background, high contrast."
)


def resolve_syllabus(
    level: LearnerLevel,
    sub_level: SubLevel | None,
    by_sub_level: Mapping[SubLevel, Syllabus] = SYLLABUS_BY_SUB_LEVEL,
    by_level: Mapping[LearnerLevel, Syllabus | None] = SYLLABUS_BY_LEVEL,
) -> Syllabus | None:
    if level is LearnerLevel.GENERAL:
        return None
    if sub_level is not None:
        return by_sub_level[sub_level]
    return by_level[level]


def base_instruction(language: Language) -> str:
    return BASE_INSTRUCTION.replace(LANGUAGE_TOKEN, language.value)


def compose_system_instruction(
    language: Language,
    level: LearnerLevel,
    mode: TutoringMode,
    sub_level: SubLevel | None = None,
    guided_questions: bool = True,
) -> str:
    """Concatenate base → syllabus (0 or 1) → mode → guidance blocks.

    Guided questions are always off in answer-only mode.
    """
    blocks = [base_instruction(language)]
    syllabus = resolve_syllabus(level, sub_level)
    if syllabus is not None:
        blocks.append(SYLLABUS_INSTRUCTIONS[syllabus])
    blocks.append(MODE_INSTRUCTIONS[mode])
    guided = guided_questions and mode is not TutoringMode.FAST
    blocks.append((GUIDED_INSTRUCTION if guided else DIRECT_INSTRUCTION).format(language=language.value))
    return "\n\n".join(blocks)


def build_user_content(
    prompt: str,
    language: Language,
    level: LearnerLevel,
    sub_level: SubLevel | None = None,
    focus_areas: list[str] | None = None,
) -> str:
    """Prefix the learner's message with the language, level and focus-area context."""
    if level is LearnerLevel.GENERAL:
        level_context = "Level: General AI Tutor"
        focus_context = ""
    else:
        level_context = f"User Level: {level.value}" + (f" ({sub_level.value})" if sub_level else "")
        focus_context = f"Focus Areas: {', '.join(focus_areas)}" if focus_areas else ""
    return f"Language: {language.value}\n{level_context}\n{focus_context}\n\nUser Message: {prompt}"


def study_notes_instruction(language: Language) -> str:
    return STUDY_NOTES_INSTRUCTION.replace(LANGUAGE_TOKEN, language.value)


def study_notes_request(file_count: int) -> str:
    return (
        f"Analyze all {file_count} attached materials. Perform a deep synthesis to create a single cohesive set of "
        "high-yield study notes. Identify common patterns and key formulas across all provided context."
    )


def _focus_areas_line(focus_areas: list[str] | None) -> str:
    return f"STRICTLY focus only on these areas: {', '.join(focus_areas)}." if focus_areas else ""


def quiz_instruction(
    language: Language, level: LearnerLevel, difficulty: QuizDifficulty, focus_areas: list[str] | None = None
) -> str:
    written_language = "Bahasa Melayu" if language is Language.BM else "English"
    directive = dedent(f"""
        ### QUIZ GENERATION DIRECTIVE:
        - Generate a 5-question math quiz for a {level.value} student.
        - Difficulty: {difficulty.value}.
        - {_focus_areas_line(focus_areas)}
        - Use formal, clear, textbook-style {written_language}.
        - Each question has exactly four options, in the order A, B, C, D.
        - Return JSON only. Use LaTeX for math.
    """).strip()
    return f"{base_instruction(language)}\n\n{directive}"


def quiz_request(
    topic: str, level: LearnerLevel, difficulty: QuizDifficulty, focus_areas: list[str] | None = None
) -> str:
    return f"Topic: {topic}\nLevel: {level.value}\nDifficulty: {difficulty.value}\n{_focus_areas_line(focus_areas)}"
