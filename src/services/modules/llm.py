"""src.services.modules.llm
콘텐츠의 텍스트 또는 영상을 기반으로 Gemini를 통해 장소 정보를 구조적으로 추출합니다.

- 응답은 ExtractionResult JSON 스키마로 강제하고 model_validate_json으로 엄격하게 디코딩합니다.
- 디코딩 실패(비JSON, 스키마 불일치, 빈 응답, SDK 오류)는 fallback 모델로 정확히 1회 재시도하고,
  그래도 실패하면 ExtractionParseError를 발생시킵니다.
"""
import asyncio
import logging
import time
from typing import Optional

import httpx
from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from src.core.exceptions import CustomError, ExtractionParseError
from src.models import (
    DiscoveryIntent,
    ExtractionContext,
    ExtractionResult,
    GroundedSuggestion,
    MediaReference,
)
from src.services.modules.prompts import build_suggestion_prompt, build_text_prompt, build_vision_prompt
from src.services.preprocess.video import downloaded_media

logger = logging.getLogger(__name__)

YOUTUBE_MIME_TYPE = "video/youtube"


class GroundedSuggestionList(BaseModel):
    suggestions: list[GroundedSuggestion] = Field(default_factory=list, description="추천 업체 리스트")


class GeminiExtractionService:
    """
    Gemini 기반 AIExtractionService 구현

    Args:
        client: genai.Client (aio 인터페이스 사용)
        media_client: vision 미디어 다운로드용 httpx 클라이언트 (proxy 설정 가능)
    """

    def __init__(
        self,
        client: genai.Client,
        media_client: httpx.AsyncClient,
        text_model: str = "gemini-2.5-flash",
        vision_model: str = "gemini-2.5-flash",
        fallback_model: str = "gemini-2.0-flash",
        temperature: float = 0.1,
        timeout: float = 120,
        media_timeout: float = 60,
        poll_seconds: float = 2,
    ):
        self._client = client
        self._media_client = media_client
        self.text_model = text_model
        self.vision_model = vision_model
        self.fallback_model = fallback_model
        self.temperature = temperature
        self.timeout = timeout
        self.media_timeout = media_timeout
        self.poll_seconds = poll_seconds

    # =============================================
    # LLM 호출 함수
    # =============================================
    async def _generate(self, model: str, contents: list, schema: type[BaseModel] = ExtractionResult):
        response = await asyncio.wait_for(
            self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config={
                    "temperature": self.temperature,
                    "response_mime_type": "application/json",
                    "response_json_schema": schema.model_json_schema(),
                },
            ),
            timeout=self.timeout,
        )
        if not response.text:
            raise ValueError("빈 응답")
        logger.info(f"[Gemini] 응답 수신 완료 ({model}, {len(response.text)}자)")
        return schema.model_validate_json(response.text)

    async def _generate_with_fallback(self, model: str, contents: list, label: str) -> ExtractionResult:
        try:
            return await self._generate(model, contents)
        except Exception as e:
            logger.warning(
                f"[Gemini] {label} 응답 처리 실패 ({model}): {type(e).__name__}: {e} "
                f"→ fallback 모델로 재시도 ({self.fallback_model})"
            )

        try:
            result = await self._generate(self.fallback_model, contents)
        except Exception as e:
            logger.error(f"[Gemini] {label} fallback 재시도 실패 ({self.fallback_model}): {type(e).__name__}: {e}")
            raise ExtractionParseError(f"{label} 추출 결과를 해석하지 못했습니다: {type(e).__name__}") from e

        logger.info(f"[Gemini] {label} fallback 재시도 성공")
        return result

    # =============================================
    # Text path
    # =============================================
    async def extract_text(self, text: str, context: ExtractionContext) -> ExtractionResult:
        prompt = build_text_prompt(text, context)
        logger.info(f"[Gemini] text 추출 요청 ({context.platform}/{context.contentType}, {len(text)}자)")
        result = await self._generate_with_fallback(self.text_model, [prompt], "text")
        logger.info(f"[Gemini] text 추출 결과: videoType={result.videoType}, places={len(result.places)}")
        return result

    # =============================================
    # Vision path
    # =============================================
    async def extract_vision(self, media: MediaReference, context: ExtractionContext) -> ExtractionResult:
        prompt = build_vision_prompt(context)

        # YouTube는 URL을 직접 분석 (다운로드 없음)
        if media.is_youtube:
            logger.info(f"[Gemini] vision 추출 요청 (YouTube 직접 분석): {media.url}")
            part = types.Part(file_data=types.FileData(file_uri=media.url, mime_type=YOUTUBE_MIME_TYPE))
            return await self._generate_with_fallback(self.vision_model, [part, prompt], "vision")

        async with downloaded_media(self._media_client, media.url, timeout=self.media_timeout) as local:
            uploaded = await self._files_call(
                self._client.aio.files.upload(file=local.path, config={"mime_type": local.mime_type}),
                "업로드",
            )
            logger.info(f"[Gemini] 파일 업로드 완료: {uploaded.name}")
            try:
                uploaded = await self._wait_until_active(uploaded)
                part = types.Part(
                    file_data=types.FileData(
                        file_uri=uploaded.uri,
                        mime_type=uploaded.mime_type or local.mime_type,
                    )
                )
                return await self._generate_with_fallback(self.vision_model, [part, prompt], "vision")
            finally:
                await self._delete_remote(uploaded.name)

    async def _files_call(self, call, label: str):
        try:
            return await asyncio.wait_for(call, timeout=self.media_timeout)
        except asyncio.TimeoutError as e:
            raise CustomError(f"Files API {label} 시간 초과 ({self.media_timeout}s)") from e

    async def _wait_until_active(self, file: types.File) -> types.File:
        deadline = time.monotonic() + self.media_timeout
        while _state_name(file) == "PROCESSING":
            if time.monotonic() > deadline:
                raise CustomError(f"업로드 파일 처리 시간 초과: {file.name}")
            await asyncio.sleep(self.poll_seconds)
            file = await self._files_call(self._client.aio.files.get(name=file.name), "상태 조회")

        if _state_name(file) == "FAILED":
            raise CustomError(f"업로드 파일 처리 실패: {file.name}")
        return file

    async def _delete_remote(self, name: Optional[str]) -> None:
        if not name:
            return
        try:
            await self._files_call(self._client.aio.files.delete(name=name), "삭제")
            logger.info(f"[Gemini] 업로드 파일 삭제: {name}")
        except Exception as e:
            logger.warning(f"[Gemini] 업로드 파일 삭제 실패 ({name}): {e}")

    # =============================================
    # Grounded suggestions
    # =============================================
    async def suggest_for_intent(self, intent: DiscoveryIntent) -> list[GroundedSuggestion]:
        """일반 지식 기반 추천 업체. 장소 API로 검증하지 않으므로 모두 verified=False"""
        try:
            result = await self._generate(self.text_model, [build_suggestion_prompt(intent)], GroundedSuggestionList)
        except Exception as e:
            logger.warning(f"[Gemini] 추천 업체 생성 실패: {type(e).__name__}: {e}")
            return []
        return [s.model_copy(update={"verified": False}) for s in result.suggestions[:5]]


def _state_name(file: types.File) -> Optional[str]:
    state = getattr(file, "state", None)
    if state is None:
        return None
    return getattr(state, "name", str(state))
