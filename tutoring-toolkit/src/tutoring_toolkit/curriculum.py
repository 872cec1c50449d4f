"""
Focus-area catalogue for the Malaysian mathematics curriculum.

Focus areas are topic tags the learner switches on to bias generated content.
Which tags are offered depends on the level, the sub-level and the language:
secondary (KSSM Form 1-5) tags exist in both languages, primary tags are
translated to Bahasa Melayu, advanced tags are always English and the general
tutor has none.
"""

from tutoring_toolkit.orchestration.data_models import Language, LearnerLevel, SubLevel

PRIMARY_TRANSLATIONS: dict[str, str] = {
    "Whole Numbers (1 - 100)": "Nombor Bulat (1 - 100)",
    "Basic Operations": "Operasi Asas",
    "Fractions": "Pecahan",
    "Money": "Wang",
    "Time": "Masa",
    "Measurement": "Ukuran dan Sukatan",
    "Space": "Ruang",
    "Data Management": "Pengurusan Data",
    "Whole Numbers": "Nombor Bulat",
    "Whole Numbers up to 1000": "Nombor Bulat hingga 1000",
    "Fractions and Decimals": "Pecahan dan Perpuluhan",
    "Whole Numbers up to 10000": "Nombor Bulat hingga 10000",
    "Fractions, Decimals and Percentages": "Pecahan, Perpuluhan dan Peratus",
    "Coordinates": "Koordinat",
    "Numbers and Operations": "Nombor dan Operasi",
    "Coordinates, Ratio and Proportion": "Koordinat, Nisbah dan Kadaran",
    "Data Handling": "Pengendalian Data",
    "Whole Numbers and Operations": "Nombor Bulat dan Operasi",
    "Whole Numbers and Basic Operations": "Nombor Bulat dan Operasi Asas",
    "Data Handling and Likelihood": "Pengendalian Data dan Kebarangkalian",
}

SUB_LEVELS: dict[LearnerLevel, tuple[SubLevel, ...]] = {
    LearnerLevel.BEGINNER: (
        SubLevel.STANDARD_1,
        SubLevel.STANDARD_2,
        SubLevel.STANDARD_3,
        SubLevel.STANDARD_4,
        SubLevel.STANDARD_5,
        SubLevel.STANDARD_6,
    ),
    LearnerLevel.INTERMEDIATE: (SubLevel.FORM_1, SubLevel.FORM_2, SubLevel.FORM_3, SubLevel.FORM_4, SubLevel.FORM_5),
    LearnerLevel.ADVANCED: (SubLevel.ESSENTIAL_MATHEMATICS,),
    LearnerLevel.GENERAL: (),
}

_PRIMARY_CORE = ["Money", "Time", "Measurement", "Space"]

LEVEL_FOCUS: dict[LearnerLevel, list[str]] = {
    LearnerLevel.BEGINNER: [
        "Whole Numbers (1 - 100)",
        "Basic Operations",
        "Fractions",
        *_PRIMARY_CORE,
        "Data Management",
    ],
    LearnerLevel.INTERMEDIATE: [],
    LearnerLevel.ADVANCED: ["Calculus", "Linear Algebra", "Differential Eq.", "Discrete Math"],
    LearnerLevel.GENERAL: [],
}

SUB_LEVEL_FOCUS: dict[SubLevel, list[str]] = {
    SubLevel.STANDARD_1: ["Whole Numbers", "Basic Operations", "Fractions", *_PRIMARY_CORE, "Data Management"],
    SubLevel.STANDARD_2: [
        "Whole Numbers up to 1000",
        "Basic Operations",
        "Fractions and Decimals",
        *_PRIMARY_CORE,
        "Data Management",
    ],
    SubLevel.STANDARD_3: [
        "Whole Numbers up to 10000",
        "Basic Operations",
        "Fractions, Decimals and Percentages",
        *_PRIMARY_CORE,
        "Coordinates",
        "Data Management",
    ],
    SubLevel.STANDARD_4: [
        "Numbers and Operations",
        "Fractions, Decimals and Percentages",
        *_PRIMARY_CORE,
        "Coordinates, Ratio and Proportion",
        "Data Handling",
    ],
    SubLevel.STANDARD_5: [
        "Numbers and Operations",
        "Whole Numbers and Operations",
        "Fractions, Decimals and Percentages",
        *_PRIMARY_CORE,
        "Coordinates, Ratio and Proportion",
        "Data Handling",
    ],
    SubLevel.STANDARD_6: [
        "Whole Numbers and Basic Operations",
        "Fractions, Decimals and Percentages",
        *_PRIMARY_CORE,
        "Coordinates, Ratio and Proportion",
        "Data Handling and Likelihood",
    ],
    SubLevel.ESSENTIAL_MATHEMATICS: [
        "Fundamentals Of Algebra",
        "Functions And Graphs",
        "Matrices",
        "Sequence and Series",
        "Derivative",
        "Integration",
    ],
}

SECONDARY_FOCUS: dict[SubLevel, dict[Language, list[str]]] = {
    SubLevel.FORM_1: {
        Language.EN: [
            "Rational Numbers",
            "Factors & Multiples",
            "Squares, Roots, Cubes",
            "Ratios, Rates & Proportions",
            "Algebraic Expressions",
            "Linear Equations",
            "Geometry & Area",
            "Data Handling",
        ],
        Language.BM: [
            "Nombor Rasional",
            "Faktor & Gandaan",
            "Kuasa Dua, Punca Kuasa Dua, Kuasa Tiga & Punca Kuasa Tiga",
            "Nisbah, Kadar & Perkadaran",
            "Ungkapan Algebra",
            "Persamaan Linear",
            "Geometri & Luas",
            "Pengendalian Data",
        ],
    },
    SubLevel.FORM_2: {
        Language.EN: [
            "Patterns and Sequences",
            "Factorisation & Fractions",
            "Algebraic Formulae",
            "Polygons",
            "Circles",
            "3D Geometry",
            "Coordinate Geometry",
            "Graphs and Functions",
            "Motion (Speed/Acc.)",
            "Gradient",
            "Transformations",
            "Central Tendency",
            "Simple Probability",
        ],
        Language.BM: [
            "Pola dan Jujukan",
            "Pemfaktoran & Pecahan Algebra",
            "Rumus Algebra",
            "Poligon",
            "Bulatan",
            "Geometri Tiga Dimensi",
            "Geometri Koordinat",
            "Graf Fungsi",
            "Laju dan Pecutan",
            "Kecerunan Garis Lurus",
            "Transformasi Isometri",
            "Sukatan Kecenderungan Memusat",
            "Kebarangkalian Mudah",
        ],
    },
    SubLevel.FORM_3: {
        Language.EN: [
            "Indices",
            "Standard Form",
            "Consumer Math (Savings)",
            "Scaled Drawings",
            "Trigonometric Ratios",
            "Angles & Tangents",
            "Plans & Elevations",
            "Locus in 2D",
            "Straight Lines",
        ],
        Language.BM: [
            "Indeks",
            "Bentuk Piawai",
            "Matematik Pengguna: Simpanan dan Pelaburan",
            "Lukisan Berskala",
            "Nisbah Trigonometri",
            "Sudut & Tangen dalam Bulatan",
            "Pelan & Dongakan",
            "Lokus dalam Dua Dimensi",
            "Garis Lurus",
        ],
    },
    SubLevel.FORM_4: {
        Language.EN: [
            "Quadratic Functions",
            "Number Fundamentals",
            "Logical Reasoning",
            "Set Operations",
            "Graph Theory",
            "Linear Inequalities",
            "Motion Graphs",
            "Dispersion (Ungrouped)",
            "Combined Probability",
            "Consumer Math (Finance)",
        ],
        Language.BM: [
            "Fungsi & Persamaan Kuadratik",
            "Asas Nombor",
            "Penaakulan Logik",
            "Operasi Set",
            "Rangkaian dalam Teori Graf",
            "Ketaksamaan Linear",
            "Graf Gerakan",
            "Sukatan Serakan Data Tak Terkumpul",
            "Kebarangkalian Peristiwa Bergabung",
            "Matematik Pengguna: Pengurusan Kewangan",
        ],
    },
    SubLevel.FORM_5: {
        Language.EN: [
            "Variation",
            "Matrices",
            "Consumer Math (Insurance)",
            "Consumer Math (Taxation)",
            "Congruency & Enlargement",
            "Trig Functions & Graphs",
            "Dispersion (Grouped)",
            "Mathematical Modelling",
        ],
        Language.BM: [
            "Ubahan",
            "Matriks",
            "Matematik Pengguna: Insurans",
            "Matematik Pengguna: Percukaian",
            "Kekongruenan, Pembesaran dan Gabungan Transformasi",
            "Nisbah dan Graf Fungsi Trigonometri",
            "Sukatan Serakan Data Terkumpul",
            "Pemodelan Matematik",
        ],
    },
}


def focus_options(level: LearnerLevel, sub_level: SubLevel | None, language: Language) -> list[str]:
    """Return the focus-area labels offered for this level, sub-level and language."""
    if level is LearnerLevel.GENERAL:
        return []
    if level is LearnerLevel.INTERMEDIATE and sub_level in SECONDARY_FOCUS:
        return list(SECONDARY_FOCUS[sub_level][language])

    if sub_level in SUB_LEVEL_FOCUS:
        options = list(SUB_LEVEL_FOCUS[sub_level])
    else:
        options = list(LEVEL_FOCUS[level])

    if language is Language.BM and level is LearnerLevel.BEGINNER:
        return [PRIMARY_TRANSLATIONS.get(label, label) for label in options]
    return options


def check_sub_level(level: LearnerLevel, sub_level: SubLevel | None) -> None:
    """Raise ValueError if 'sub_level' is not one of the sub-levels offered for 'level'."""
    if sub_level is not None and sub_level not in SUB_LEVELS[level]:
        raise ValueError(f"{sub_level.value} is not a sub-level of {level.value}")
