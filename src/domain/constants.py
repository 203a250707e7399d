"""
Domain Constants: 캐시 전역 상수.

디스크 레이아웃, 기본 정책값 등 시스템 전반에서 사용되는 값들.
"""

# =============================================================================
# On-Disk Layout (디스크 레이아웃)
# =============================================================================
# <cache_dir>/
# ├── <template_id>@<version>/            # 템플릿 트리
# ├── <template_id>@<version>.meta.json   # 메타데이터
# └── .staging/                           # 복사 중인 임시 트리 (목록에서 제외)

CACHE_KEY_SEPARATOR = "@"
META_FILE_SUFFIX = ".meta.json"
STAGING_DIR_NAME = ".staging"
METADATA_SCHEMA_VERSION = "1.0"

# =============================================================================
# Default Policies (기본 정책)
# =============================================================================

DEFAULT_TTL_MILLIS = 24 * 60 * 60 * 1000  # 24시간
DEFAULT_MAX_SIZE_BYTES = 100 * 1024 * 1024  # 100MB
DEFAULT_MAX_ENTRIES = 100
DEFAULT_LRU_SIZE = 50
DEFAULT_CLEANUP_INTERVAL_SECONDS = 60 * 60  # 1시간
DEFAULT_CACHE_DIR = "~/.scaffold-kit/cache"

# =============================================================================
# Performance Samples (성능 샘플 보관 한도)
# =============================================================================

ENTRY_SAMPLE_LIMIT = 10  # 엔트리별 최근 접근 시간
MANAGER_SAMPLE_LIMIT = 100  # 매니저 전체 최근 접근 시간
RECENT_SAMPLE_COUNT = 10

# =============================================================================
# Prune Reasons (정리 사유)
# =============================================================================

PRUNE_REASON_EXPIRED = "expired"
PRUNE_REASON_MISSING_DIRECTORY = "missing_directory"
PRUNE_REASON_CORRUPTED = "corrupted_metadata"
PRUNE_REASON_ORPHANED = "orphaned"
PRUNE_REASON_SIZE_LIMIT = "size_limit"
PRUNE_REASON_ENTRY_LIMIT = "entry_limit"

# =============================================================================
# Scaffolding (프로젝트 생성)
# =============================================================================

# 숨김 파일은 복사하지 않되 예외로 허용할 파일
SCAFFOLD_ALLOWED_DOTFILES = (".gitignore",)

# =============================================================================
# Integrity Check (무결성 검사 결과)
# =============================================================================

INTEGRITY_OK = "ok"
INTEGRITY_CHECKSUM_MISMATCH = "checksum_mismatch"
INTEGRITY_MISSING_DIRECTORY = "missing_directory"
INTEGRITY_NOT_CACHED = "not_cached"
INTEGRITY_CORRUPTED = "corrupted_metadata"
