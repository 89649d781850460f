"""src.apis.place_router
장소 추출 API 라우터 (Spring의 PlaceController와 유사한 역할)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.core.exceptions import CustomError, ExtractionParseError, InvalidSource
from src.models import CacheStats, PlaceExtractionRequest, ProcessContentResponse
from src.services.cache import ContentCache
from src.services.workflow import ContentWorkflow
from src.utils.common import verify_api_key

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["AI 서버 API"])


def get_workflow(request: Request) -> ContentWorkflow:
    return request.app.state.workflow


def get_cache(request: Request) -> ContentCache:
    return request.app.state.cache


@router.post("/extract-places", response_model=ProcessContentResponse, status_code=200)
async def extract_places(
    request: PlaceExtractionRequest,
    api_key: str = Depends(verify_api_key),
    workflow: ContentWorkflow = Depends(get_workflow),
):
    """
    인증(API Key): 필요

    기능
    SNS 콘텐츠 URL을 입력받아 장소 추출 파이프라인을 실행하고 보강된 장소 리스트를 반환합니다.
    같은 콘텐츠를 TTL 안에 다시 요청하면 외부 호출 없이 캐시 결과(cached=true)를 반환합니다.

    ------------------------------------------------------------
    요청 파라미터 (PlaceExtractionRequest)
    - snsUrl (string): SNS 원본 URL (YouTube, Instagram, TikTok, Reddit)

    ------------------------------------------------------------
    반환값 (ProcessContentResponse)
    - ExtractionResult 필드 (summary, videoType, destination, places, discoveryIntent, itinerary ...)
    - cached, hitCount, analysisPath, 콘텐츠 메타데이터

    ------------------------------------------------------------
    에러 코드
    - 400 BAD_REQUEST: 지원하지 않는 URL (InvalidSource)
    - 401 UNAUTHORIZED: API Key 누락 또는 불일치
    - 502 BAD_GATEWAY: 모델 응답 해석 실패 (ExtractionParseError, 재시도 가능)
    - 503 SERVICE_UNAVAILABLE: 기타 일시적 오류 (재시도 가능)
    """
    logger.info(f"extract-places 요청 수신: url={request.snsUrl}")

    try:
        result = await workflow.process_content(request.snsUrl)
    except InvalidSource as e:
        logger.info(f"지원하지 않는 URL: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except ExtractionParseError as e:
        logger.error(f"장소 추출 실패: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except CustomError as e:
        logger.error(f"파이프라인 오류: {e.message}", exc_info=True)
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info(
        f"extract-places 완료: {result.platform}/{result.externalId} "
        f"places={len(result.places)} cached={result.cached}"
    )
    return result


@router.get("/cache/stats", response_model=CacheStats)
async def cache_stats(
    api_key: str = Depends(verify_api_key),
    cache: ContentCache = Depends(get_cache),
):
    """
    인증(API Key): 필요

    캐시된 콘텐츠 수와 총 히트 수를 반환합니다.
    """
    return await cache.stats()


@router.post("/cache/cleanup")
async def cache_cleanup(
    olderThanDays: int = Query(default=90, ge=0, description="생성 후 경과 일수"),
    api_key: str = Depends(verify_api_key),
    cache: ContentCache = Depends(get_cache),
):
    """
    인증(API Key): 필요

    생성 후 olderThanDays일이 지난 행과 만료된 행을 삭제합니다.
    """
    deleted = await cache.cleanup(older_than_days=olderThanDays)
    return {"deleted": deleted}


@router.get("/fetchers/usage")
async def fetcher_usage(
    api_key: str = Depends(verify_api_key),
    workflow: ContentWorkflow = Depends(get_workflow),
):
    """
    인증(API Key): 필요

    콘텐츠 유형별 fetcher의 최근 1시간 tier 사용 횟수를 반환합니다.
    fallback tier(oembed 등) 비중이 커지면 상위 tier 장애를 의심할 수 있습니다.
    """
    return workflow.router.tier_usage()
