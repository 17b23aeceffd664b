from __future__ import annotations

from google.genai import types


LEVEL_INSTRUCTIONS: dict[str, str] = {
    "Starters": (
        "Pre-A1: 25-30 words. Use patterns like \"This is a...\", \"It has got...\", "
        "\"A ... can ...\", \"I like/don't like...\". Concrete, tangible vocabulary."
    ),
    "Movers": (
        "Early A1: 45-55 words. Describe habitat, food and appearance. "
        "Present simple only, describing habits."
    ),
    "Flyers": (
        "A2 bridge: 70-90 words. Use comparatives (faster than, more intelligent than), "
        "adverbs, and describe behaviour."
    ),
    "A1": (
        "Elementary: 60-80 words. Talk about care (care, feed, clean), daily routines, "
        "forest or countryside settings."
    ),
    "A2": (
        "Pre-intermediate: 90-120 words. Talk about causes and effects: endangered, "
        "habitat loss, climate change, deforestation."
    ),
    "B1": (
        "Intermediate: 120-160 words. Use the passive voice, richer cause-effect structures "
        "and conservation vocabulary (biodiversity, ecological balance)."
    ),
    "B2": (
        "Upper-intermediate: 160-220 words. Analyse, evaluate and argue. Use complex structures "
        "such as \"Not only... but also\", \"Unless...\", \"From an ethical perspective\"."
    ),
}
GENERIC_LEVEL_INSTRUCTION = "Follow the general CEFR guidance for this level."

SCRIPT_JSON_SHAPE = """{
  "intro": "A confident opening",
  "points": ["Body sentences describing concrete details of the picture"],
  "conclusion": "A memorable closing",
  "lessonVocab": [{"word": "Key word", "ipa": "IPA", "translation": "Translation", "icon": "Emoji"}]
}"""


def level_instruction(level: str) -> str:
    return LEVEL_INSTRUCTIONS.get(str(level or "").strip(), GENERIC_LEVEL_INSTRUCTION)


def image_prompt_request(theme: str) -> str:
    return (
        "Write one highly detailed English prompt for an image generator (DALL-E/Midjourney) "
        "in a Pixar 3D style.\n"
        f"Theme: {theme}.\n"
        "Describe cinematic lighting, vivid colours, cute characters and a clear setting.\n"
        "Return only the English prompt."
    )


def default_image_prompt(theme: str) -> str:
    return f"A professional cinematic 3D Pixar style illustration of {theme}, high detail, vibrant colors."


def script_request(
    image_description: str,
    vocabulary_hints: str,
    level: str,
    learner_name: str,
    translation_language: str,
    theme_label: str = "",
) -> str:
    theme_line = f"Theme: {theme_label}.\n" if str(theme_label or "").strip() else ""
    return (
        "You are an expert writer of English presentation scripts for children at Speakpro Lab.\n"
        f"{theme_line}"
        f"Write a short talk for the learner \"{learner_name}\" at level {level}.\n\n"
        "RULES:\n"
        f"1. CONTENT: Describe this picture: \"{image_description}\".\n"
        f"2. WORDS THE LEARNER WANTS TO USE: \"{vocabulary_hints}\".\n"
        f"3. OUTPUT STANDARD (IMPORTANT): {level_instruction(level)}\n"
        f"4. Vocabulary translations must be in {translation_language}.\n\n"
        f"Return JSON:\n{SCRIPT_JSON_SHAPE}"
    )


def script_from_image_request(level: str, learner_name: str, translation_language: str) -> str:
    return (
        "You are an expert writer of English presentation scripts for children at Speakpro Lab.\n"
        f"Look at this picture and write a talk for the learner \"{learner_name}\" at level {level}.\n\n"
        "RULES (IMPORTANT):\n"
        "1. IF THE PICTURE CONTAINS LEGIBLE TEXT OR A SCRIPT (for example \"Hello everyone...\", "
        "\"Today I will talk about...\"): extract that text verbatim and use it as the script. "
        "Do not rewrite content that is already on the picture.\n"
        "2. IF THE PICTURE HAS NO TEXT: describe in detail what is happening in the picture at the learner's level.\n"
        f"3. OUTPUT STANDARD: {level_instruction(level)}\n"
        f"4. Vocabulary translations must be in {translation_language}.\n\n"
        "Return JSON (when extracting, take intro, points and conclusion from the picture text):\n"
        f"{SCRIPT_JSON_SHAPE}"
    )


def evaluation_request(target_script: str, level: str, feedback_language: str) -> str:
    return (
        "You are a Cambridge speaking examiner. Listen to the learner's recording and score it.\n"
        f"Target script: \"{target_script}\".\n"
        f"Learner level: {level}.\n\n"
        "STRICT AND FAIR SCORING:\n"
        "1. TRANSCRIBE FIRST: write down exactly what the learner actually said, independently. "
        "Do not assume the target script was read verbatim.\n"
        "2. TASK FULFILLMENT: compare the transcript with the target script. If many sentences "
        "were skipped, taskFulfillment must be low.\n"
        "3. ACCURACY: compare each spoken word with the script. Find mispronounced words, "
        "omissions, dropped final sounds and hesitations.\n"
        "4. SCORE each dimension on a 0-10 scale (one decimal): 9-10 near-native and complete; "
        "7-8 clear with minor slips; 5-6 understandable with noticeable errors; "
        "3-4 frequent errors that impede understanding; 0-2 little or no usable speech.\n"
        f"5. FEEDBACK, praise, mistake notes and suggestions must be in {feedback_language}.\n\n"
        "Return JSON with: transcript, pronunciation, fluency, intonation, vocabulary, grammar, "
        "taskFulfillment, feedback, teacherPraise, mistakes[{word, type "
        "(mispronunciation|omission|hesitation), feedback}], suggestions (3 items)."
    )


def _string_schema() -> types.Schema:
    return types.Schema(type=types.Type.STRING)


def _vocabulary_schema() -> types.Schema:
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "word": _string_schema(),
            "ipa": _string_schema(),
            "translation": _string_schema(),
            "icon": _string_schema(),
        },
        required=["word", "ipa", "translation", "icon"],
    )


def script_response_schema() -> types.Schema:
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "intro": _string_schema(),
            "points": types.Schema(type=types.Type.ARRAY, items=_string_schema()),
            "conclusion": _string_schema(),
            "lessonVocab": types.Schema(type=types.Type.ARRAY, items=_vocabulary_schema()),
        },
        required=["intro", "points", "conclusion", "lessonVocab"],
    )


def evaluation_response_schema() -> types.Schema:
    number = types.Schema(type=types.Type.NUMBER)
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "transcript": _string_schema(),
            "pronunciation": number,
            "fluency": number,
            "intonation": number,
            "vocabulary": number,
            "grammar": number,
            "taskFulfillment": number,
            "feedback": _string_schema(),
            "teacherPraise": _string_schema(),
            "mistakes": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(
                    type=types.Type.OBJECT,
                    properties={
                        "word": _string_schema(),
                        "type": types.Schema(
                            type=types.Type.STRING,
                            enum=["mispronunciation", "omission", "hesitation"],
                        ),
                        "feedback": _string_schema(),
                    },
                    required=["word", "type", "feedback"],
                ),
            ),
            "suggestions": types.Schema(type=types.Type.ARRAY, items=_string_schema()),
        },
        required=[
            "transcript",
            "pronunciation",
            "fluency",
            "intonation",
            "vocabulary",
            "grammar",
            "taskFulfillment",
            "feedback",
            "mistakes",
            "suggestions",
        ],
    )
