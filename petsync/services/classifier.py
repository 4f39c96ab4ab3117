"""
Эвристическая классификация объявлений: порода, возраст, пол, категория.

Все правила - упорядоченные таблицы, порядок важен (первое совпадение выигрывает)
и должен сохраняться, чтобы результат был воспроизводимым.
"""
import re
from dataclasses import dataclass

DEFAULT_BREED = "Mixed"
DEFAULT_GENDER = "Mixed"

# Фильтр релевантности: доски отдают все подряд, оставляем только животных
PET_KEYWORDS = (
    "dog", "puppy", "cat", "kitten", "bird", "parrot", "fish", "pet", "animal",
    "golden", "retriever", "labrador", "maltese", "persian", "siamese", "british",
    "shorthair", "canary", "budgie", "goldfish", "aquarium", "breed", "pedigree",
)

BREEDS = (
    "golden retriever", "labrador", "german shepherd", "maltese", "pomeranian",
    "beagle", "bulldog", "chihuahua", "husky", "persian", "siamese",
    "british shorthair", "maine coon", "ragdoll", "bengal", "russian blue",
    "canary", "budgie", "cockatiel", "lovebird", "parrot", "goldfish",
)

# (slug категории, ключевые слова) - проверяются строго в этом порядке
CATEGORY_RULES = (
    ("dogs", ("dog", "puppy", "puppies", "golden", "retriever", "labrador", "shepherd",
              "maltese", "pomeranian", "beagle", "bulldog", "chihuahua", "husky")),
    ("cats", ("cat", "kitten", "persian", "siamese", "british", "shorthair", "maine",
              "coon", "ragdoll", "bengal", "russian", "blue")),
    ("birds", ("bird", "parrot", "canary", "budgie", "cockatiel", "lovebird", "finch",
               "parakeet", "macaw", "conure")),
    ("fish", ("fish", "aquarium", "goldfish", "tropical", "marine", "freshwater", "tank")),
)

AGE_RE = re.compile(r"(\d+)\s*(week|month|year)s?", re.IGNORECASE)
MALE_RE = re.compile(r"\bmales?\b")
FEMALE_RE = re.compile(r"\bfemales?\b")

def _keyword_pattern(words) -> re.Pattern:
    # Совпадение с начала слова: "located" не должно давать "cat"
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + ")")

CATEGORY_PATTERNS = tuple((slug, _keyword_pattern(words)) for slug, words in CATEGORY_RULES)

@dataclass
class Classification:
    breed: str
    age: str | None
    gender: str
    category_slug: str | None
    category_id: int | None = None

def is_pet_title(title: str) -> bool:
    # Подстрока, а не начало слова: "French Bulldog", "tomcat" тоже объявления о животных
    text = title.lower()
    return any(keyword in text for keyword in PET_KEYWORDS)

def detect_breed(text: str) -> str:
    for breed in BREEDS:
        if breed in text:
            return breed.title()
    return DEFAULT_BREED

def detect_age(text: str) -> str | None:
    match = AGE_RE.search(text)
    if not match:
        return None
    number, unit = match.group(1), match.group(2).lower()
    return f"{number} {unit}{'' if number == '1' else 's'}"

def detect_gender(text: str) -> str:
    """Ровно одно из male/female - иначе Mixed (оба упомянуты = неоднозначно)"""
    has_male = bool(MALE_RE.search(text))
    has_female = bool(FEMALE_RE.search(text))
    if has_male and not has_female:
        return "Male"
    if has_female and not has_male:
        return "Female"
    return DEFAULT_GENDER

def detect_category(text: str) -> str | None:
    for slug, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return slug
    return None

def classify(title: str, description: str | None = None, breed_hint: str | None = None,
             categories: dict[str, int] | None = None) -> Classification:
    """
    categories: slug -> id из справочника. Нет совпадения - category_id None,
    это нормальное конечное состояние (объявление показывается без фильтра).
    """
    text = " ".join(part for part in (title, description, breed_hint) if part).lower()

    breed = detect_breed(text)
    category_text = text if breed == DEFAULT_BREED else f"{text} {breed.lower()}"
    slug = detect_category(category_text)

    return Classification(
        breed=breed,
        age=detect_age(text),
        gender=detect_gender(text),
        category_slug=slug,
        category_id=(categories or {}).get(slug) if slug else None,
    )
