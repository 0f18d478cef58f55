"""Prompt templates and their ``{{variable}}`` rendering."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from src.utils.datetime_utils import utcnow

PromptCategory = Literal["search", "evaluation", "generation", "classification"]

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class PromptTemplateError(ValueError):
    """A template is unknown or cannot be fully rendered."""


class PromptTemplate(BaseModel):
    id: str = Field(min_length=1)
    name: str
    description: str = ""
    template: str
    variables: List[str] = Field(default_factory=list)
    category: PromptCategory
    version: str = "1.0.0"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


SEARCH_QUERY_TEMPLATE = """
You are a search specialist who follows software engineering news closely.
Write the most effective search queries for the reader described below.

# Reader profile
- Interests: {{user_interests}}
- Technical level: {{tech_level}}
- Recent topics: {{recent_topics}}
- Preferred content types: {{content_types}}
- Language: {{language}}

# Requirements
1. Target these sources: {{target_sources}}. Tag every query with the sources it suits.
2. Aim for information that is current as of {{current_date}}.
3. Avoid duplicates and cover several angles.
4. Give each query a priority from 1 (nice to have) to 10 (must read).
"""

TOPIC_QUERY_TEMPLATE = """
Write search queries that find in-depth material about "{{topic}}" for a
{{tech_level}} reader interested in {{user_interests}}.
Prefer tutorials, design write-ups and release notes over generic news.
Give each query a priority from 1 to 10.
"""

TRENDING_QUERY_TEMPLATE = """
Write search queries that surface what is trending in software engineering
over the last {{timeframe}}. Seed topics: {{base_topics}}.
Useful qualifiers for this window: {{keywords}}.
Give each query a priority from 1 to 10.
"""

CONTENT_QUALITY_TEMPLATE = """
You review technical content for quality. Score the item below from 1 to 10.

# Item
- Title: {{title}}
- Summary: {{summary}}
- Source: {{source}}
- Published: {{published_at}}
- Content type: {{content_type}}

# Rubric
1. accuracy (25%): factual reliability
2. relevance (20%): importance for current practice
3. freshness (20%): how current the information is
4. depth (20%): detail and expertise
5. readability (15%): clarity and structure

Report each factor from 1 to 10 under "factors". Use "flags" for concerns
such as "potential_bias" or "outdated_info".
"""

INTEREST_SCORE_TEMPLATE = """
You analyse what a specific reader finds interesting. Rate from 1 to 10 how
interesting the item below is for this reader.

# Item
{{content}}

# Reader profile
{{user_profile}}

# Recent activity
{{recent_activity}}

# Criteria
1. topic_relevance (50%): overlap with the reader's interests
2. novelty (30%): new information or perspective for this reader
3. actionability (20%): something the reader can apply
Also report difficulty_match. List the profile keywords the item matches
under "matched_keywords".
"""

CATEGORY_CLASSIFICATION_TEMPLATE = """
Classify the content below into the best matching category.

# Content
- Title: {{title}}
- Summary: {{summary}}

# Available categories
{{available_categories}}

# Rules
- Classify by the main topic.
- Pick exactly one category name from the list.
- Use "{{other_category}}" when nothing fits.
- Offer up to {{max_alternatives}} alternative categories with confidences.
"""

TAG_GENERATION_TEMPLATE = """
Generate tags for the content below.

# Content
- Title: {{title}}
- Summary: {{summary}}
- Body (excerpt): {{content}}

# Requirements
- At most {{max_tags}} tags.
- Cover technologies, concepts, difficulty and content type; set "type" to
  one of technology, topic, difficulty, content-type.
- Avoid tags that are too generic.
- Give each tag a relevance between 0 and 1.
"""

ARTICLE_GENERATION_TEMPLATE = """
You are an editor who curates technical reading lists.
Write a curation article that introduces each source below on its own.

# Sources
{{sources}}

# Reader profile
{{user_profile}}

# Article requirements
- Style: {{style}}
- Target length: {{target_length}} words
- Language: {{language}}
- Markdown body

# Instructions
1. The title abstracts what the sources have in common.
2. The introduction is about two sentences.
3. The body introduces every source in this form:

## [Source title](source URL)
One to three lines on what the reader learns and why it is useful.

4. No closing summary or conclusion.
5. Do not merge the sources into a single narrative.

List every source you used under "sources" with its URL and a relevance
between 0 and 1. Report word_count, reading_time, difficulty (beginner,
intermediate or advanced) and content_type under "metadata".
"""

ARTICLE_IMPROVEMENT_TEMPLATE = """
Revise the article below and return the complete replacement.

# Current article
Title: {{title}}
Summary: {{summary}}

{{content}}

# Requested improvements
{{improvements}}

# Reader comments
{{user_comments}}

Keep every source link that is still relevant. Keep the same JSON layout as
the original generation request.
"""


def _default_templates() -> Iterable[PromptTemplate]:
    yield PromptTemplate(
        id="search-query-generation",
        name="Search query generation",
        description="Source-specific search queries from a reader profile.",
        template=SEARCH_QUERY_TEMPLATE,
        variables=[
            "user_interests",
            "tech_level",
            "recent_topics",
            "content_types",
            "language",
            "target_sources",
            "current_date",
        ],
        category="search",
    )
    yield PromptTemplate(
        id="topic-query-generation",
        name="Topic query generation",
        description="Deep-dive queries about one topic.",
        template=TOPIC_QUERY_TEMPLATE,
        variables=["topic", "tech_level", "user_interests"],
        category="search",
    )
    yield PromptTemplate(
        id="trending-query-generation",
        name="Trending query generation",
        description="Queries for what is trending in a time window.",
        template=TRENDING_QUERY_TEMPLATE,
        variables=["timeframe", "base_topics", "keywords"],
        category="search",
    )
    yield PromptTemplate(
        id="content-quality-evaluation",
        name="Content quality evaluation",
        description="Rubric-based 1-10 quality score.",
        template=CONTENT_QUALITY_TEMPLATE,
        variables=["title", "summary", "source", "published_at", "content_type"],
        category="evaluation",
    )
    yield PromptTemplate(
        id="interest-score-calculation",
        name="Interest score calculation",
        description="How well an item fits one reader.",
        template=INTEREST_SCORE_TEMPLATE,
        variables=["content", "user_profile", "recent_activity"],
        category="evaluation",
    )
    yield PromptTemplate(
        id="category-classification",
        name="Category classification",
        description="One taxonomy label plus alternatives.",
        template=CATEGORY_CLASSIFICATION_TEMPLATE,
        variables=[
            "title",
            "summary",
            "available_categories",
            "other_category",
            "max_alternatives",
        ],
        category="classification",
    )
    yield PromptTemplate(
        id="tag-generation",
        name="Tag generation",
        description="Typed, relevance-scored tags.",
        template=TAG_GENERATION_TEMPLATE,
        variables=["title", "summary", "content", "max_tags"],
        category="classification",
    )
    yield PromptTemplate(
        id="article-generation",
        name="Article generation",
        description="Curation article from several sources.",
        template=ARTICLE_GENERATION_TEMPLATE,
        variables=["sources", "user_profile", "target_length", "style", "language"],
        category="generation",
    )
    yield PromptTemplate(
        id="article-improvement",
        name="Article improvement",
        description="Full replacement of an article given reader feedback.",
        template=ARTICLE_IMPROVEMENT_TEMPLATE,
        variables=["title", "summary", "content", "improvements", "user_comments"],
        category="generation",
    )


class PromptManager:
    """Registry of prompt templates, one per stage prompt."""

    def __init__(self, templates: Optional[Iterable[PromptTemplate]] = None) -> None:
        self._templates: Dict[str, PromptTemplate] = {}
        for template in templates if templates is not None else _default_templates():
            self._templates[template.id] = template

    def get(self, template_id: str) -> Optional[PromptTemplate]:
        return self._templates.get(template_id)

    def all(self) -> List[PromptTemplate]:
        return list(self._templates.values())

    def by_category(self, category: PromptCategory) -> List[PromptTemplate]:
        return [template for template in self._templates.values() if template.category == category]

    def render(self, template_id: str, variables: Mapping[str, Any]) -> str:
        """
        Substitute every declared variable into the template.

        Raises:
            PromptTemplateError: unknown template, a declared variable missing
                from ``variables`` or a placeholder left unresolved.
        """
        template = self.get(template_id)
        if template is None:
            raise PromptTemplateError(f"Template not found: {template_id}")

        missing = [name for name in template.variables if variables.get(name) is None]
        if missing:
            raise PromptTemplateError(
                f"Required variables {', '.join(missing)} not provided for template '{template_id}'"
            )

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name not in template.variables:
                return match.group(0)
            return str(variables[name])

        rendered = _PLACEHOLDER.sub(substitute, template.template)
        unresolved = _PLACEHOLDER.findall(rendered)
        if unresolved:
            raise PromptTemplateError(
                f"Unresolved variables in template '{template_id}': {', '.join(unresolved)}"
            )
        return rendered.strip()

    def add(self, template: PromptTemplate) -> None:
        now = utcnow()
        self._templates[template.id] = template.model_copy(
            update={"created_at": now, "updated_at": now}
        )

    def update(self, template_id: str, **changes: Any) -> PromptTemplate:
        existing = self.get(template_id)
        if existing is None:
            raise PromptTemplateError(f"Template not found: {template_id}")
        changes.pop("id", None)
        changes.pop("created_at", None)
        updated = PromptTemplate.model_validate(
            {**existing.model_dump(), **changes, "updated_at": utcnow()}
        )
        self._templates[template_id] = updated
        return updated


__all__ = [
    "PromptCategory",
    "PromptManager",
    "PromptTemplate",
    "PromptTemplateError",
]
