import re
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.host_config import get_settings_files

# rsync itemize field ("%i") is always 11 characters wide, e.g. ">f+++++++++"
ITEMIZE_WIDTH = 11
SHORT_OPTION_CLUSTER = re.compile(r"-[A-Za-z0-9]+")

# rsync's own layout for -i/--itemize-changes without --out-format
DEFAULT_ITEMIZE_FORMAT = "%i %n%L"

DEFAULT_DISCOVERY_OPTIONS = ["--archive", "--dry-run", "--out-format=%i %n"]
DEFAULT_TRANSFER_OPTIONS = ["--archive"]


def discovery_output_format(options: List[str]) -> Optional[str]:
    """
    The per-file output layout rsync uses with these discovery options.

    ``--out-format`` wins when present; otherwise ``-i``/``--itemize-changes``
    uses rsync's default layout. Returns None when lines are bare paths.
    """
    out_format = None
    itemize = False
    for option in options:
        if option.startswith("--out-format="):
            out_format = option.split("=", 1)[1]
        elif option == "--itemize-changes" or (
            SHORT_OPTION_CLUSTER.fullmatch(option) and "i" in option
        ):
            itemize = True

    if out_format is not None:
        return out_format
    return DEFAULT_ITEMIZE_FORMAT if itemize else None


def itemize_prefix_length(options: List[str]) -> int:
    """
    Derive the byte length of the metadata prefix rsync writes before each
    path, from the discovery options.
    """
    out_format = discovery_output_format(options)
    if out_format and out_format.startswith("%i") and "%n" in out_format:
        return ITEMIZE_WIDTH + len(out_format[2 : out_format.index("%n")])
    return 0


def has_link_suffix(options: List[str]) -> bool:
    """True when each path is followed by "%L" (" -> target" for symlinks)."""
    out_format = discovery_output_format(options)
    return bool(out_format) and out_format.endswith("%n%L")


class Settings(BaseSettings):
    # Kilder og destination
    sources: List[str] = Field(..., min_length=1)
    destination: str

    # Finder/syncer topology
    finders: Optional[int] = None  # Always normalized to len(sources)
    syncers_per_finder: int = Field(2, ge=1)
    worker_exit_scope: Literal["run", "source"] = "run"

    # Batching
    batch_size: int = Field(1000, ge=1)
    queue_size: int = Field(0, ge=0)  # 0 = batch_size * 10
    batch_timeout_seconds: float = Field(5.0, gt=0)

    # External rsync invocation
    rsync_binary: str = "rsync"
    discovery_options: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DISCOVERY_OPTIONS)
    )
    transfer_options: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TRANSFER_OPTIONS)
    )
    discovery_prefix_length: Optional[int] = Field(None, ge=0)
    verbose: bool = False

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = ""  # Empty = console only
    log_retention_days: int = 30

    model_config = SettingsConfigDict(
        env_prefix="STREAMSYNC_",
        env_file=get_settings_files(),
        extra="ignore",
        frozen=True,
    )

    @field_validator("sources")
    @classmethod
    def _reject_blank_sources(cls, sources: List[str]) -> List[str]:
        if any(not source.strip() for source in sources):
            raise ValueError("source paths must not be empty")
        return sources

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, log_level: str) -> str:
        return log_level.upper()

    @model_validator(mode="after")
    def _check_queue_capacity(self) -> "Settings":
        if self.queue_size and self.queue_size < self.batch_size:
            raise ValueError(
                f"queue_size ({self.queue_size}) must be at least batch_size ({self.batch_size})"
            )
        return self

    @property
    def finder_count(self) -> int:
        """One finder per source, regardless of the requested finder count."""
        return len(self.sources)

    @property
    def queue_capacity(self) -> int:
        """Queue occupancy at which discovery gets paused."""
        return self.queue_size or self.batch_size * 10

    @property
    def prefix_length(self) -> int:
        if self.discovery_prefix_length is not None:
            return self.discovery_prefix_length
        return itemize_prefix_length(self.discovery_options)

    @property
    def itemized_output(self) -> bool:
        """True when discovery lines start with an rsync itemize field."""
        return (
            self.discovery_prefix_length is None
            and self.prefix_length >= ITEMIZE_WIDTH
        )

    @property
    def link_suffix(self) -> bool:
        """True when discovery lines may end in a " -> target" link suffix."""
        return self.itemized_output and has_link_suffix(self.discovery_options)

    @property
    def log_directory(self) -> Optional[Path]:
        """Returnerer log directory som Path objekt"""
        if not self.log_file_path:
            return None
        return Path(self.log_file_path).parent

    @property
    def config_file_info(self) -> dict:
        """Return information about which configuration files are in use."""
        from .utils.host_config import get_hostname, list_all_settings_files

        return {
            "hostname": get_hostname(),
            "settings_files": list(get_settings_files()),
            "all_available_configs": list_all_settings_files(),
        }
