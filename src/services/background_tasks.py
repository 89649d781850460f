"""src.services.background_tasks.py
캐시 유지보수를 주기적으로 실행하는 백그라운드 작업 모듈입니다.
- 만료된 행 삭제
- 보존 기간이 지난 행 삭제
"""

import asyncio
import logging

from src.services.cache import ContentCache

logger = logging.getLogger(__name__)


async def run_cache_maintenance_once(cache: ContentCache, retention_days: int) -> int:
    """만료 행과 보존 기간이 지난 행을 삭제하고 삭제 수를 반환합니다."""
    expired = await cache.delete_expired()
    aged = await cache.cleanup(older_than_days=retention_days)
    logger.info(f"[Maintenance] 캐시 정리: 만료 {expired}행, {retention_days}일 경과 {aged}행")
    return expired + aged


async def run_cache_maintenance(cache: ContentCache, interval_hours: float, retention_days: int) -> None:
    """
    interval_hours마다 캐시를 정리합니다. 취소될 때까지 반복하며, 한 번의 실패는 로그만 남기고 계속합니다.
    """
    interval_seconds = max(interval_hours * 3600, 1)
    logger.info(f"[Maintenance] 시작: {interval_hours}시간 주기, 보존 {retention_days}일")
    while True:
        try:
            await run_cache_maintenance_once(cache, retention_days)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[Maintenance] 캐시 정리 중 예외 발생")
        await asyncio.sleep(interval_seconds)
