"""
App layer: 캐시 관리 HTTP API (FastAPI).

역할:
- 캐시 통계/조회/삭제/정리 엔드포인트
- ⚠️ 캐시 로직 없음 (src/cache에 위임)
"""
