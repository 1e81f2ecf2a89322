"""AI categorization of review comments, and the quality aggregates built from it.

Categories:

- ``cosmetic``: style, formatting, naming, typos
- ``logic``: bugs, correctness, edge cases, error handling
- ``structural``: architecture, design, refactoring
- ``nit``: minor suggestions, nice-to-haves
- ``question``: clarifying questions

Quality score (1-10): 1-3 brief or superficial, 4-6 standard helpful
feedback, 7-10 detailed and insightful.
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from openai import OpenAI
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from review_royale.config import get_settings
from review_royale.models import ReviewComment
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules
from review_royale.processor.scoring import QualityAggregate

logger = logging.getLogger(__name__)

MAX_COMMENT_CHARS = 500

SYSTEM_PROMPT = """You are a code review comment classifier. Analyze each review comment and classify it.

Categories:
- cosmetic: Style, formatting, naming conventions, typos
- logic: Bug fixes, correctness issues, edge cases, error handling
- structural: Architecture, design patterns, refactoring, code organization
- nit: Minor suggestions, nice-to-haves, opinions
- question: Clarifying questions, understanding requests

Quality score (1-10):
- 1-3: Brief/superficial (e.g., "nit: typo", "LGTM")
- 4-6: Standard helpful feedback with clear reasoning
- 7-10: Detailed, insightful, educational, catches subtle bugs

Respond with valid JSON only. Format:
{
  "results": [
    {"index": 0, "category": "logic", "quality_score": 7},
    {"index": 1, "category": "nit", "quality_score": 3}
  ]
}
"""


class Category(str, enum.Enum):
    COSMETIC = "cosmetic"
    LOGIC = "logic"
    STRUCTURAL = "structural"
    NIT = "nit"
    QUESTION = "question"


@dataclass
class Classification:
    index: int
    category: Category
    quality_score: int


@dataclass
class CategorizeStats:
    processed: int = 0
    skipped: int = 0
    errors: int = 0


class CategorizeError(Exception):
    """The classifier could not be reached or returned an unusable answer"""


class CommentClassifier(Protocol):
    async def classify(self, bodies: List[str]) -> List[Classification]:
        ...


def build_prompt(bodies: Iterable[str]) -> str:
    content = "Classify these code review comments:\n\n"
    for i, body in enumerate(bodies):
        if len(body) > MAX_COMMENT_CHARS:
            body = body[:MAX_COMMENT_CHARS] + "..."
        content += f"[{i}] {body}\n\n"
    return content


def parse_classifications(content: str) -> List[Classification]:
    """Parse the classifier's JSON answer; entries with an unknown category are dropped."""
    try:
        payload = json.loads(content)
        entries = payload["results"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise CategorizeError(f"JSON parse error: {e} - content: {content[:200]}") from e

    results = []
    for entry in entries:
        try:
            results.append(
                Classification(
                    index=int(entry["index"]),
                    category=Category(entry["category"]),
                    quality_score=int(entry["quality_score"]),
                )
            )
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed classification: {entry}")
    return results


class OpenAIClassifier:
    """Classifies comments with an OpenAI-compatible chat completions endpoint."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        settings = get_settings()
        if client is None:
            if not settings.openai_api_key:
                raise CategorizeError("OpenAI API key not configured")
            client = OpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        self.client = client
        self.model = model or settings.openai_model_id

    async def classify(self, bodies: List[str]) -> List[Classification]:
        def _call_openai() -> str:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(bodies)},
                ],
                temperature=0.3,
                response_format={"type": "json_object"},
            )
            if not resp.choices:
                return ""
            return resp.choices[0].message.content or ""

        try:
            content = await asyncio.to_thread(_call_openai)
        except Exception as e:
            raise CategorizeError(f"OpenAI request failed: {e}") from e
        return parse_classifications(content)


async def categorize_batch(
    session_factory: async_sessionmaker,
    classifier: CommentClassifier,
    batch_size: int = 50,
) -> CategorizeStats:
    """Categorize up to ``batch_size`` uncategorized comments, newest first."""
    stats = CategorizeStats()

    async with session_factory() as db:
        result = await db.execute(
            select(ReviewComment)
            .where(ReviewComment.category.is_(None))
            .order_by(ReviewComment.created_at.desc())
            .limit(batch_size)
        )
        comments = result.scalars().all()
        if not comments:
            logger.info("No uncategorized comments to process")
            return stats

        logger.info(f"Processing {len(comments)} uncategorized comments")
        classifications = await classifier.classify([c.body for c in comments])

        for item in classifications:
            if not 0 <= item.index < len(comments):
                logger.warning(f"Invalid index {item.index} in classifier response")
                stats.errors += 1
                continue
            comment = comments[item.index]
            comment.category = item.category.value
            comment.quality_score = min(max(item.quality_score, 1), 10)
            stats.processed += 1

        await db.commit()

    stats.skipped = max(len(comments) - stats.processed - stats.errors, 0)
    logger.info(
        f"Categorization complete: {stats.processed} processed, "
        f"{stats.skipped} skipped, {stats.errors} errors"
    )
    return stats


def aggregate_quality(
    comments: Iterable[ReviewComment],
    rules: ScoringRules = DEFAULT_RULES,
) -> Optional[QualityAggregate]:
    """Tier and category counts over categorized comments; None when none are categorized."""
    low = medium = high = logic = structural = other = categorized = 0
    for comment in comments:
        if comment.quality_score is not None:
            if comment.quality_score >= rules.high_quality_min:
                high += 1
            elif comment.quality_score >= rules.medium_quality_min:
                medium += 1
            else:
                low += 1
        if comment.category is None:
            continue
        categorized += 1
        if comment.category == Category.LOGIC.value:
            logic += 1
        elif comment.category == Category.STRUCTURAL.value:
            structural += 1
        else:
            other += 1

    if not categorized:
        return None
    return QualityAggregate(
        low=low,
        medium=medium,
        high=high,
        logic=logic,
        structural=structural,
        other=other,
        categorized_count=categorized,
    )


def group_comments(comments: Iterable[ReviewComment]) -> Dict[Tuple[int, int], List[ReviewComment]]:
    """Comments keyed by (pull_request_id, user_id)."""
    groups: Dict[Tuple[int, int], List[ReviewComment]] = {}
    for comment in comments:
        groups.setdefault((comment.pull_request_id, comment.user_id), []).append(comment)
    return groups


async def quality_for(
    db: AsyncSession,
    pull_request_id: int,
    user_id: int,
    rules: ScoringRules = DEFAULT_RULES,
) -> Optional[QualityAggregate]:
    """Quality aggregate of one reviewer's comments on one pull request."""
    result = await db.execute(
        select(ReviewComment).where(
            ReviewComment.pull_request_id == pull_request_id,
            ReviewComment.user_id == user_id,
            ReviewComment.category.is_not(None),
        )
    )
    return aggregate_quality(result.scalars().all(), rules)
