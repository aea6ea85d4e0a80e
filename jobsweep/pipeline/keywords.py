"""Derive a searchable keyword set from a listing's text fields."""

import re

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would", "should",
    "could", "may", "might", "must", "can", "this", "that", "these", "those",
})

TECH_KEYWORDS = (
    "javascript", "typescript", "python", "java", "c++", "c#", "ruby", "php", "golang", "rust",
    "react", "angular", "vue", "node", "express", "django", "flask", "spring", "laravel",
    "aws", "azure", "gcp", "docker", "kubernetes", "jenkins", "git", "ci/cd",
    "sql", "nosql", "mongodb", "postgresql", "mysql", "redis", "elasticsearch",
    "rest", "graphql", "microservices", "agile", "scrum", "devops",
    "machine learning", "data science", "analytics", "big data",
)

# Title abbreviations expanded so "Sr Dev" is found by "senior developer".
_EXPANSIONS = {
    "sr": "senior",
    "jr": "junior",
    "dev": "developer",
    "eng": "engineer",
    "mgr": "manager",
}

_TITLE_TOKEN_RE = re.compile(r"[^a-z0-9\s+#.]")
_WORD_RE = re.compile(r"[a-z0-9+#]+")
_EXPERIENCE_RE = re.compile(r"(\d+)\+?\s*years?")


def extract_keywords(
    title: str,
    description: str = "",
    company: str = "",
    location: str = "",
    skills: list[str] | None = None,
) -> list[str]:
    """Return a sorted, de-duplicated list of lower-case keywords."""
    keywords: set[str] = set()
    keywords.update(_from_title(title))
    keywords.update(_from_description(description))
    keywords.update(_tokens(company))
    keywords.update(_tokens(location.replace(",", " ")))
    for skill in skills or []:
        normalized = " ".join(skill.lower().split())
        if normalized:
            keywords.add(normalized)
    return sorted(keywords)


def _from_title(title: str) -> list[str]:
    words = [w.strip(".") for w in _TITLE_TOKEN_RE.sub(" ", title.lower()).split()]
    result: list[str] = []
    for word in words:
        if len(word) < 2 or word in STOP_WORDS:
            continue
        result.append(word)
        if word in _EXPANSIONS:
            result.append(_EXPANSIONS[word])
    return result


def _from_description(description: str) -> list[str]:
    if not description:
        return []
    text = description.lower()
    padded = f" {' '.join(_WORD_RE.findall(text))} "
    found = [kw for kw in TECH_KEYWORDS if kw in text and (f" {kw} " in padded or not kw.isalpha())]
    match = _EXPERIENCE_RE.search(text)
    if match:
        found.append(f"{match.group(1)}years")
    return found


def _tokens(text: str) -> list[str]:
    return [w for w in _WORD_RE.findall(text.lower()) if len(w) > 1 and w not in STOP_WORDS]
