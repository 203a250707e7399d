"""
Templates layer: 캐시를 사용하는 템플릿 소비자.

역할:
- 템플릿 소스 제공자 (providers.py)
- 캐시된 템플릿 → 프로젝트 생성 (scaffolder.py)
"""

from .providers import (
    LocalDirectoryProvider,
    SourceProvider,
)
from .scaffolder import (
    ProjectScaffolder,
    ScaffoldError,
    ScaffoldResult,
    detect_placeholders,
    render_placeholders,
)

__all__ = [
    # providers
    "SourceProvider",
    "LocalDirectoryProvider",
    # scaffolder
    "ProjectScaffolder",
    "ScaffoldError",
    "ScaffoldResult",
    "detect_placeholders",
    "render_placeholders",
]
