from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SNAPSHOT_DB_PATH = ".data/studyloop.sqlite3"
# SM-2 の EF 下限。SrsState のバリデーションもこの値を使う。
SM2_EASE_FLOOR = 1.3


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    環境変数から読み込まれるエンジン設定クラス。
    - srs_*: 間隔反復スケジューラの定数
    - session_*: セッション履歴の保持件数
    - snapshot_db_path: スナップショット保存先（SQLiteSink 利用時）
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    log_level: str = Field(
        default="INFO",
        description="stdlib logging level for structlog output / ログレベル",
    )

    # --- SRS（復習）スケジューラ ---
    srs_default_ease_factor: float = Field(
        default=2.5,
        description="Ease factor assigned to new items / 新規項目の初期 EF",
    )
    srs_min_ease_factor: float = Field(
        default=SM2_EASE_FLOOR,
        description="Lower bound for the ease factor / EF の下限",
    )
    srs_max_interval_days: int = Field(
        default=365,
        description="Upper bound for scheduled intervals (days) / 復習間隔の上限(日)",
    )
    srs_mastery_interval_days: int = Field(
        default=21,
        description="Interval at which an item counts as mastered / 習得とみなす間隔(日)",
    )
    srs_daily_review_goal: int = Field(
        default=20,
        description="Default daily review goal / 1日の復習目標件数",
    )

    # --- セッション履歴 ---
    session_history_limit: int = Field(
        default=100,
        description="Max in-memory session records (most recent first) / 履歴の最大保持件数",
    )
    session_history_persist_limit: int = Field(
        default=50,
        description="Max session records written to a snapshot / スナップショットへ保存する履歴件数",
    )

    snapshot_db_path: str = Field(
        default=DEFAULT_SNAPSHOT_DB_PATH,
        description="Path to snapshot SQLite database / スナップショット用SQLite DBパス",
    )

    # Pydantic v2 settings config
    # - env_file: .env を読み込む
    # - extra: 未使用キーを無視
    # - case_sensitive: 環境変数キーの大小文字を区別しない
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        """Reject scheduler constants that would break SRS invariants.

        EF の下限が初期値を超えていたり、上限・保持件数が 0 以下だと
        スケジュール計算が破綻するため、読み込み時点で拒否する。
        """

        if self.srs_min_ease_factor < SM2_EASE_FLOOR:
            raise ValueError(f"SRS_MIN_EASE_FACTOR must be at least {SM2_EASE_FLOOR}")
        if self.srs_min_ease_factor > self.srs_default_ease_factor:
            raise ValueError(
                "SRS_MIN_EASE_FACTOR must not exceed SRS_DEFAULT_EASE_FACTOR",
            )
        for name in (
            "srs_max_interval_days",
            "srs_mastery_interval_days",
            "session_history_limit",
            "session_history_persist_limit",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be a positive integer")
        if self.srs_max_interval_days < 6:
            raise ValueError("SRS_MAX_INTERVAL_DAYS must allow the 6-day second step")
        return self


settings = Settings()
