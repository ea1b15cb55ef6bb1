"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.availability import validate_rule
from .domain.exceptions import UnknownHost
from .domain.models import AvailabilityRule, EventType, Host, LocalTime, resolve_timezone

DAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


class AvailabilityRuleConfig(BaseModel):
    """One weekly availability block as written in the config file."""
    day_of_week: int  # 0=Sunday ... 6=Saturday, day names accepted
    start: str
    end: str

    @field_validator("day_of_week", mode="before")
    @classmethod
    def parse_day(cls, value: Union[int, str]) -> int:
        """Accept day names as well as numbers."""
        if isinstance(value, str) and not value.strip().isdigit():
            name = value.strip().lower()
            if name not in DAY_NAMES:
                raise ValueError(f"Unknown day name: {value!r}")
            return DAY_NAMES.index(name)
        return value

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {value}")
        return value

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate HH:MM and normalize zero padding."""
        return str(LocalTime.parse(value))

    @model_validator(mode="after")
    def validate_order(self) -> "AvailabilityRuleConfig":
        """Hosts cannot save a block that does not start before it ends."""
        validate_rule(self.to_rule())
        return self

    def to_rule(self) -> AvailabilityRule:
        return AvailabilityRule(
            day_of_week=self.day_of_week,
            local_start=LocalTime.parse(self.start),
            local_end=LocalTime.parse(self.end),
        )


class HostConfig(BaseModel):
    """A host and their weekly schedule."""
    id: str
    username: str = ""
    timezone: str = "UTC"
    availability: List[AvailabilityRuleConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        resolve_timezone(value)
        return value

    def to_host(self) -> Host:
        return Host(
            id=self.id,
            username=self.username or self.id,
            timezone=self.timezone,
            rules=[rule.to_rule() for rule in self.availability],
        )


class EventTypeConfig(BaseModel):
    """A bookable event type."""
    id: str
    host: str
    title: str = ""
    slug: str = ""
    duration_minutes: int = 30
    minimum_notice_hours: int = Field(default=0, ge=0)
    maximum_notice_days: int = Field(default=30, gt=0)
    max_bookings_per_week: Optional[int] = Field(default=None, gt=0)

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure meeting duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value


class GraphConfig(BaseModel):
    """Microsoft Graph calendar sync settings."""
    client_id: str
    tenant_id: str
    calendar_sync: bool = False

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class EmailConfig(BaseModel):
    """Resend email notification settings."""
    api_key: str
    from_address: str = "onboarding@resend.dev"
    notify_address: str
    enabled: bool = True


class AppConfig(BaseModel):
    """Application configuration."""
    hosts: List[HostConfig] = Field(default_factory=list)
    event_types: List[EventTypeConfig] = Field(default_factory=list)
    bookings_file: Path = Path("bookings.json")
    graph: Optional[GraphConfig] = None
    email: Optional[EmailConfig] = None
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def validate_references(self) -> "AppConfig":
        """Ensure ids are unique and every event type names a known host."""
        host_ids = [host.id for host in self.hosts]
        duplicate_hosts = sorted({h for h in host_ids if host_ids.count(h) > 1})
        if duplicate_hosts:
            raise ValueError(f"Duplicate host id(s): {', '.join(duplicate_hosts)}")

        event_ids = [event.id for event in self.event_types]
        duplicate_events = sorted({e for e in event_ids if event_ids.count(e) > 1})
        if duplicate_events:
            raise ValueError(f"Duplicate event type id(s): {', '.join(duplicate_events)}")

        unknown = sorted({e.host for e in self.event_types if e.host not in host_ids})
        if unknown:
            raise ValueError(f"Event types reference unknown host(s): {', '.join(unknown)}")
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Relative ``bookings_file`` paths are resolved against the config
        file's directory.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if not config.bookings_file.is_absolute():
            config.bookings_file = config_path.parent / config.bookings_file
        return config

    def build_hosts(self) -> Dict[str, Host]:
        return {host.id: host.to_host() for host in self.hosts}

    def get_host(self, host_id: str) -> HostConfig:
        for host in self.hosts:
            if host.id == host_id:
                return host
        raise UnknownHost(f"Host not found: {host_id}")

    def build_event_types(self) -> Dict[str, EventType]:
        """Build domain event types keyed by id, sharing one Host per host id."""
        hosts = self.build_hosts()
        return {
            event.id: EventType(
                id=event.id,
                host=hosts[self.get_host(event.host).id],
                duration_minutes=event.duration_minutes,
                minimum_notice_hours=event.minimum_notice_hours,
                maximum_notice_days=event.maximum_notice_days,
                max_bookings_per_week=event.max_bookings_per_week,
                title=event.title,
                slug=event.slug,
            )
            for event in self.event_types
        }

    def find_event_type(self, identifier: str) -> Optional[EventTypeConfig]:
        """Find an event type by id or slug."""
        for event in self.event_types:
            if identifier in (event.id, event.slug):
                return event
        return None


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        config_path = Path(__file__).parent.parent / "config.yaml"

    return config_path
