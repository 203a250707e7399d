"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uvicorn src.app.main:app --reload
- 프로덕션: uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from src.app.routes import cache
from src.cache.config import CacheConfig, load_cache_config
from src.cache.manager import CacheManager

logger = logging.getLogger(__name__)

# 프로젝트 루트의 default.yaml
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "default.yaml"


# =============================================================================
# App Factory
# =============================================================================


def create_app(config: CacheConfig | None = None) -> FastAPI:
    """
    앱 생성.

    Args:
        config: 캐시 설정 (None이면 default.yaml에서 로드)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        애플리케이션 생명주기 관리.

        시작 시: 설정 로드, CacheManager 생성, 유지보수 태스크 시작
        종료 시: CacheManager.destroy()
        """
        # Startup
        if config is None:
            load_dotenv()
        cache_config = config or load_cache_config(DEFAULT_CONFIG_PATH)
        async with CacheManager(cache_config) as manager:
            app.state.cache_config = cache_config
            app.state.cache = manager
            logger.info(f"Template cache ready at {cache_config.cache_dir}")

            yield

        # Shutdown: async with 종료 시 destroy() 호출됨

    app = FastAPI(
        title="scaffold-kit",
        description="Template cache management for project scaffolding",
        version="0.1.0",
        lifespan=lifespan,
    )

    # API 라우트
    app.include_router(cache.api_router, prefix="/api/cache", tags=["Cache API"])

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """헬스 체크."""
        manager: CacheManager | None = getattr(app.state, "cache", None)
        if manager is None or manager.destroyed:
            return {"status": "starting"}
        return {"status": "ok", "cache_dir": str(manager.config.cache_dir)}

    return app


app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
