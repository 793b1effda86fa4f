"""
Prompt Templates - Category prompts and deterministic context modifiers.

NO DICTIONARIES - Callers receive PromptTemplate / ContextualPrompt dataclasses.
Templates are static module data and are never mutated.
"""

from dataclasses import replace
from datetime import date
from types import MappingProxyType

from structlog import get_logger

from auraflow.exceptions import InvalidCategoryError
from auraflow.models.api import MessageCategory, TimeOfDay, WeatherBucket
from auraflow.models.domain import ContextualPrompt, PromptTemplate

logger = get_logger(__name__)

DEFAULT_MAX_WORDS = 40

_TEMPLATES = MappingProxyType(
    {
        MessageCategory.MOTIVATIONAL: PromptTemplate(
            category=MessageCategory.MOTIVATIONAL,
            system_prompt=(
                "You are a wise, encouraging mentor who helps people overcome challenges and "
                "achieve their goals. Your responses should be uplifting, actionable, and "
                "inspiring. Focus on inner strength, resilience, and personal growth."
            ),
            user_prompt=(
                "Generate a motivational message that is exactly 40 words or fewer. The message "
                "should be encouraging, actionable, and help someone push through challenges. "
                "Make it personal and relatable."
            ),
            max_tokens=60,
            temperature=0.8,
        ),
        MessageCategory.MINDFULNESS: PromptTemplate(
            category=MessageCategory.MINDFULNESS,
            system_prompt=(
                "You are a mindfulness teacher who helps people find peace, presence, and "
                "awareness in their daily lives. Your responses should be calming, grounding, "
                "and focused on the present moment."
            ),
            user_prompt=(
                "Generate a mindfulness message that is exactly 40 words or fewer. The message "
                "should help someone become more present, aware, and peaceful. Focus on "
                "breathing, observation, or gentle awareness."
            ),
            max_tokens=60,
            temperature=0.7,
        ),
        MessageCategory.FITNESS: PromptTemplate(
            category=MessageCategory.FITNESS,
            system_prompt=(
                "You are an encouraging fitness coach who motivates people to move their bodies "
                "and prioritize their physical health. Your responses should be energizing, "
                "practical, and focused on movement and wellness."
            ),
            user_prompt=(
                "Generate a fitness message that is exactly 40 words or fewer. The message "
                "should motivate someone to move their body, exercise, or prioritize their "
                "physical health. Make it encouraging and actionable."
            ),
            max_tokens=60,
            temperature=0.8,
        ),
        MessageCategory.PHILOSOPHY: PromptTemplate(
            category=MessageCategory.PHILOSOPHY,
            system_prompt=(
                "You are a thoughtful philosopher who helps people reflect on life's deeper "
                "meanings and find wisdom in everyday experiences. Your responses should be "
                "contemplative, insightful, and thought-provoking."
            ),
            user_prompt=(
                "Generate a philosophical message that is exactly 40 words or fewer. The message "
                "should offer wisdom, provoke thoughtful reflection, or provide insight into "
                "life's deeper meanings. Make it contemplative and meaningful."
            ),
            max_tokens=60,
            temperature=0.9,
        ),
        MessageCategory.PRODUCTIVITY: PromptTemplate(
            category=MessageCategory.PRODUCTIVITY,
            system_prompt=(
                "You are a productivity expert who helps people focus, organize, and accomplish "
                "their goals efficiently. Your responses should be practical, actionable, and "
                "focused on getting things done."
            ),
            user_prompt=(
                "Generate a productivity message that is exactly 40 words or fewer. The message "
                "should help someone focus, organize their tasks, or work more efficiently. "
                "Make it practical and immediately actionable."
            ),
            max_tokens=60,
            temperature=0.7,
        ),
    }
)

_TIME_MODIFIERS = MappingProxyType(
    {
        TimeOfDay.MORNING: (
            "This is for someone starting their morning. Make it energizing and set a positive "
            "tone for the day ahead."
        ),
        TimeOfDay.EVENING: (
            "This is for someone ending their day. Make it reflective, calming, and help them "
            "wind down or reflect on their day."
        ),
    }
)

_WEATHER_MODIFIERS = MappingProxyType(
    {
        WeatherBucket.SUNNY: (
            "It's a beautiful sunny day. Reference the brightness, energy, and positivity that "
            "comes with sunshine."
        ),
        WeatherBucket.RAIN: (
            "It's a rainy day. Reference the cozy, reflective, or cleansing aspects of rain "
            "while maintaining positivity."
        ),
        WeatherBucket.COLD: (
            "It's cold outside. Reference warmth, comfort, or the invigorating aspects of crisp "
            "weather."
        ),
        WeatherBucket.HOT: (
            "It's hot outside. Reference staying cool, finding shade, or the energy that comes "
            "with warm weather."
        ),
    }
)

CHALLENGE_USER_PROMPT = (
    "Generate a simple, actionable daily challenge that takes 5-10 minutes to complete. "
    "Focus on mindfulness, gratitude, kindness, or personal growth. Make it exactly 25 words "
    "or fewer. Examples: \"Write down three things you're grateful for today\" or \"Take a "
    "5-minute walk and notice five beautiful things around you.\""
)


def _coerce_category(category: MessageCategory | str) -> MessageCategory:
    try:
        return MessageCategory(category)
    except ValueError:
        raise InvalidCategoryError(str(category)) from None


def get_template(category: MessageCategory | str) -> PromptTemplate:
    """
    Get the base prompt template for a category.

    Raises:
        InvalidCategoryError: If the category is not in the closed set
    """
    return replace(_TEMPLATES[_coerce_category(category)])


def build_contextual_prompt(
    category: MessageCategory | str,
    time_of_day: TimeOfDay | None = None,
    weather_context: WeatherBucket | None = None,
) -> ContextualPrompt:
    """Base prompt with the time-of-day clause, then the weather clause, appended."""
    template = get_template(category)
    user_prompt = template.user_prompt

    if time_of_day is not None:
        user_prompt += f" {_TIME_MODIFIERS[TimeOfDay(time_of_day)]}"

    if weather_context is not None:
        user_prompt += f" {_WEATHER_MODIFIERS[WeatherBucket(weather_context)]}"

    return ContextualPrompt(system_prompt=template.system_prompt, user_prompt=user_prompt)


def build_daily_drop_prompt(category: MessageCategory | str, day: date) -> ContextualPrompt:
    """Category prompt framed for a message shared with every user on `day`."""
    base = build_contextual_prompt(category)
    day_of_week = day.strftime("%A")
    return ContextualPrompt(
        system_prompt=base.system_prompt,
        user_prompt=(
            f"{base.user_prompt} This is a Daily Drop message that will be shared with "
            f"thousands of users on {day_of_week}. Make it universally inspiring and "
            "appropriate for a diverse global audience. Focus on themes that unite and uplift "
            "people regardless of their background."
        ),
    )


def build_challenge_prompt() -> ContextualPrompt:
    """Prompt for the day's short challenge, voiced by the mindfulness persona."""
    return ContextualPrompt(
        system_prompt=_TEMPLATES[MessageCategory.MINDFULNESS].system_prompt,
        user_prompt=CHALLENGE_USER_PROMPT,
    )


def available_categories() -> list[MessageCategory]:
    """All categories in declaration order."""
    return list(_TEMPLATES)


def is_valid_category(category: str) -> bool:
    """True if the string names a known category."""
    try:
        MessageCategory(category)
    except ValueError:
        return False
    return True


def enforce_word_limit(content: str, max_words: int = DEFAULT_MAX_WORDS) -> str:
    """
    Truncate content to at most max_words whitespace-separated words.

    Providers are asked for a word ceiling in the prompt but do not always honour
    it. Text within the limit is returned stripped and otherwise unchanged.
    """
    words = content.split()
    if len(words) <= max_words:
        return content.strip()

    logger.info("content_truncated", word_count=len(words), max_words=max_words)
    truncated = " ".join(words[:max_words]).rstrip(",;:-")
    if not truncated.endswith((".", "!", "?")):
        truncated += "."
    return truncated
