"""
Module: delivery.py
Description: Delivery policy configuration.

DeliveryOptions validates what callers pass to configure(); the
DeliveryConfiguration holder keeps the resulting policy and is shared by
reference with the queue, retry ledger, transport and durable buffer, so
a later configure() call is visible to all of them.

Key Components:
- DeliveryOptions: Pydantic model for configure() input (snake_case or camelCase)
- DeliveryConfiguration: Mutable, process-wide policy holder

Dependencies: pydantic, typing
"""

from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from telemetry_relay.errors import ConfigurationError
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.config.settings import RelaySettings

logger = get_logger(__name__)

DEFAULT_HEADERS = {"Content-Type": "application/json"}


class DeliveryOptions(BaseModel):
    """
    Options accepted by DeliveryConfiguration.configure().

    Delays and the batch timeout are in milliseconds; the HTTP timeout is
    in seconds.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        arbitrary_types_allowed=True
    )

    endpoint: Optional[str] = Field(
        default=None,
        description="Collector endpoint URL"
    )
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra request headers, merged over the defaults"
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        description="Queue size that triggers an immediate flush"
    )
    batch_timeout: Optional[float] = Field(
        default=None,
        ge=0,
        description="Flush timer in ms; unset means errors only"
    )
    max_retries: int = Field(
        default=5,
        ge=1,
        description="Delivery attempts before a batch is dropped"
    )
    base_delay: float = Field(
        default=1000,
        gt=0,
        description="First retry delay in ms"
    )
    max_delay: float = Field(
        default=30000,
        gt=0,
        description="Retry delay cap in ms"
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP timeout in seconds"
    )
    use_persistent_buffer: bool = Field(
        default=False,
        description="Persist failed batches in the durable buffer"
    )
    encrypt: Optional[Callable[[Any], Any]] = Field(
        default=None,
        description="Hook applied to every submitted payload"
    )

    @field_validator('endpoint')
    @classmethod
    def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """Validate the endpoint is an HTTP(S) URL."""
        if v is None or v == "":
            return None
        if not v.startswith(('http://', 'https://')):
            raise ValueError("endpoint must be a valid HTTP/HTTPS URL")
        return v

    @field_validator('batch_timeout')
    @classmethod
    def validate_batch_timeout(cls, v: Optional[float]) -> Optional[float]:
        """A zero timeout means no timer, same as leaving it unset."""
        return v or None


class DeliveryConfiguration:
    """
    Process-wide delivery policy.

    Starts disabled with no endpoint. configure() applies options once at
    startup; every component holds a reference to the same instance.

    Attributes:
        endpoint: Collector URL, None while disabled
        headers: Request headers
        batch_size: Queue size that triggers a flush
        batch_timeout: Flush timer in ms, None for errors only
        max_retries: Delivery attempts per batch
        base_delay: First retry delay in ms
        max_delay: Retry delay cap in ms
        timeout: HTTP timeout in seconds
        use_persistent_buffer: Durable buffer enabled
        encrypt: Optional payload hook
        is_enabled: True only when an endpoint is configured
        send_breadcrumbs: True only when a batch timeout is configured
    """

    def __init__(self):
        self.endpoint: Optional[str] = None
        self.headers: Dict[str, str] = dict(DEFAULT_HEADERS)
        self.batch_size = 10
        self.batch_timeout: Optional[float] = None
        self.max_retries = 5
        self.base_delay = 1000.0
        self.max_delay = 30000.0
        self.timeout = 10.0
        self.use_persistent_buffer = False
        self.encrypt: Optional[Callable[[Any], Any]] = None
        self.is_enabled = False
        self.send_breadcrumbs = False

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "DeliveryConfiguration":
        """Build a configuration from environment settings."""
        config = cls()
        if settings.endpoint:
            config.configure(settings.delivery_options())
        return config

    def configure(
        self,
        options: Union[DeliveryOptions, Mapping[str, Any], None] = None,
        **overrides: Any
    ) -> bool:
        """
        Apply delivery options.

        Endpoint and batch timeout are always replaced (omitting the
        endpoint disables delivery); headers are merged; the remaining
        numeric settings only change when given.

        Args:
            options: DeliveryOptions or a mapping of option names
            **overrides: Extra options, snake_case or camelCase

        Returns:
            True if delivery is enabled afterwards
        """
        try:
            if isinstance(options, DeliveryOptions) and not overrides:
                validated = options
            else:
                raw = options.model_dump(exclude_unset=True) if isinstance(options, DeliveryOptions) else dict(options or {})
                raw.update(overrides)
                validated = DeliveryOptions.model_validate(raw)

        except ValidationError as e:
            error = ConfigurationError(f"invalid delivery options: {e.error_count()} error(s)")
            logger.error(
                "Delivery configuration rejected, delivery disabled",
                error=str(error),
                details=[
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]
            )
            self.disable()
            return False

        self.endpoint = validated.endpoint
        self.headers = {**self.headers, **validated.headers}
        for name in ("batch_size", "max_retries", "base_delay", "max_delay", "timeout"):
            if name in validated.model_fields_set:
                setattr(self, name, getattr(validated, name))
        self.batch_timeout = validated.batch_timeout
        self.encrypt = validated.encrypt
        self.use_persistent_buffer = validated.use_persistent_buffer

        self.is_enabled = bool(self.endpoint)
        self.send_breadcrumbs = bool(self.batch_timeout)

        if self.max_delay < self.base_delay:
            # Every retry then waits max_delay.
            logger.warning(
                "max_delay is below base_delay",
                base_delay=self.base_delay,
                max_delay=self.max_delay
            )

        logger.info(
            "Delivery configured",
            endpoint=self.endpoint,
            is_enabled=self.is_enabled,
            batch_size=self.batch_size,
            batch_timeout=self.batch_timeout,
            max_retries=self.max_retries,
            use_persistent_buffer=self.use_persistent_buffer,
            encryption=self.encrypt is not None
        )

        return self.is_enabled

    def disable(self) -> None:
        """Turn delivery off; other settings are kept."""
        self.endpoint = None
        self.is_enabled = False
        self.send_breadcrumbs = False

    def is_agent_enabled(self) -> bool:
        return self.is_enabled

    def should_send_breadcrumbs(self) -> bool:
        return self.send_breadcrumbs

    def get_config(self) -> Dict[str, Any]:
        """Return a snapshot of the current policy."""
        return {
            "endpoint": self.endpoint,
            "headers": dict(self.headers),
            "batch_size": self.batch_size,
            "batch_timeout": self.batch_timeout,
            "is_enabled": self.is_enabled,
            "send_breadcrumbs": self.send_breadcrumbs,
            "encrypt": self.encrypt,
            "use_persistent_buffer": self.use_persistent_buffer,
            "max_retries": self.max_retries,
            "base_delay": self.base_delay,
            "max_delay": self.max_delay,
            "timeout": self.timeout,
        }
