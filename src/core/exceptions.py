"""src.core.exceptions
커스텀 예외 정의 (Spring CustomException 스타일)

파이프라인 오류 분류:
- InvalidSource: 인식할 수 없는 URL (4xx, 재시도 불가)
- SourceUnavailable: 모든 fetch tier 실패 (부분 결과로 계속 진행)
- ExtractionParseError: 1회 재시도 후에도 모델 응답 파싱 실패 (실행 실패)
- EnrichmentDegraded: 일부 장소 보강 실패 (로그만 남김)
- CacheWriteFailed: 캐시 저장 실패 (로그만 남김)
"""


class CustomError(Exception):
    """
    커스텀 예외 (Spring의 CustomException 스타일)

    간단하게 에러 메시지만 전달하여 사용합니다.

    Examples:
        >>> raise CustomError("자막 트랙을 찾지 못했습니다")
        >>> raise InvalidSource("지원하지 않는 플랫폼입니다: example.com")

    Usage:
        try:
            await workflow.process_content(url)
        except CustomError as e:
            logger.error(f"처리 실패: {e.message}", exc_info=True)
    """
    status_code: int = 503
    retryable: bool = True

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self):
        return self.message


class InvalidSource(CustomError):
    """URL이 지원 플랫폼의 콘텐츠 참조로 해석되지 않음"""
    status_code = 400
    retryable = False


class SourceUnavailable(CustomError):
    """플랫폼의 모든 fetch tier가 실패함"""


class ExtractionParseError(CustomError):
    """fallback 모델 재시도 후에도 구조화 응답을 해석하지 못함"""
    status_code = 502


class EnrichmentDegraded(CustomError):
    """장소 보강 실패. 해당 장소는 보강 전 형태로 유지됩니다."""

    def __init__(self, message: str, place_name: str | None = None):
        super().__init__(message)
        self.place_name = place_name


class CacheWriteFailed(CustomError):
    """캐시 저장 실패. 결과는 그대로 반환됩니다."""
