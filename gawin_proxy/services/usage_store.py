import logging
from typing import Any, Dict, List

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.db_models import ChatUsageRecord
from .chat_pipeline import PipelineOutcome
from .terminal_responder import FALLBACK_PROVIDER

logger = logging.getLogger("Gawin.UsageStore")


class UsageStore:
    """Writes one ChatUsageRecord per chat request and answers admin queries."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def record(self, request_id: str, outcome: PipelineOutcome) -> None:
        result = outcome.result
        usage = result.usage
        async with self.session_maker() as session:
            session.add(ChatUsageRecord(
                request_id=request_id,
                route=outcome.route,
                provider=result.provider,
                model_used=result.model_used,
                fallback_used=outcome.fallback_used,
                attempts="; ".join(outcome.fallback_reasons),
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ))
            await session.commit()
        logger.debug(f"RID-{request_id}: usage record stored for route '{outcome.route}'.")


async def recent_usage(db: AsyncSession, limit: int = 50) -> List[Dict[str, Any]]:
    rows = await db.execute(
        select(ChatUsageRecord).order_by(ChatUsageRecord.created_at.desc(), ChatUsageRecord.id.desc()).limit(limit)
    )
    return [
        {
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "request_id": r.request_id,
            "route": r.route,
            "provider": r.provider,
            "model_used": r.model_used,
            "fallback_used": bool(r.fallback_used),
            "attempts": [a for a in (r.attempts or "").split("; ") if a],
            "usage": {
                "prompt_tokens": r.prompt_tokens or 0,
                "completion_tokens": r.completion_tokens or 0,
                "total_tokens": r.total_tokens or 0,
            },
        }
        for r in rows.scalars().all()
    ]


async def usage_summary(db: AsyncSession) -> Dict[str, Any]:
    total = (await db.execute(select(func.count()).select_from(ChatUsageRecord))).scalar() or 0
    with_fallback = (await db.execute(
        select(func.count()).select_from(ChatUsageRecord).where(ChatUsageRecord.fallback_used.is_(True))
    )).scalar() or 0
    template_answers = (await db.execute(
        select(func.count()).select_from(ChatUsageRecord).where(ChatUsageRecord.provider == FALLBACK_PROVIDER)
    )).scalar() or 0
    per_provider = await db.execute(
        select(ChatUsageRecord.provider, func.count())
        .where(or_(ChatUsageRecord.provider.is_(None), ChatUsageRecord.provider != FALLBACK_PROVIDER))
        .group_by(ChatUsageRecord.provider)
        .order_by(func.count().desc())
    )
    return {
        "chat_requests": total,
        "fallback_requests": with_fallback,
        "fallback_rate": round(with_fallback / total, 4) if total else 0.0,
        "template_responses": template_answers,
        "provider_successes": {provider or "unknown": count for provider, count in per_provider.all()},
    }
