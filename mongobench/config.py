from __future__ import annotations

import dataclasses
import random
from dataclasses import dataclass

DEFAULT_OPERATION = "simple"
DEFAULT_MIN_SLEEP = 0
DEFAULT_MAX_SLEEP = 5
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 27017
DEFAULT_DATABASE = "mongobench_test"
DEFAULT_COLLECTION = "mongobench_test_data"
DEFAULT_DURATION = 300
DEFAULT_THREADS = 1
DEFAULT_DOCUMENTS = 20_000
DEFAULT_ITERATIONS = 0


class MongoBenchError(Exception):
    """Base class for errors raised by the benchmark tools."""


class ConfigurationError(MongoBenchError, ValueError):
    """Raised when a configuration is rejected before any worker starts."""


class UnknownOperationError(ConfigurationError):
    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = sorted(available)
        super().__init__(
            f"Invalid test {name}. Valid choices are: {', '.join(self.available)}"
        )


@dataclass(frozen=True)
class ConnectionConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    database: str = DEFAULT_DATABASE
    collection: str = DEFAULT_COLLECTION

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def validate(self) -> None:
        if not self.host:
            raise ConfigurationError("host must not be empty")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port must be in 1..65535, got {self.port}")
        if not self.database:
            raise ConfigurationError("database name must not be empty")
        if not self.collection:
            raise ConfigurationError("collection name must not be empty")


@dataclass(frozen=True)
class SleepBounds:
    """Jitter bounds in whole seconds: a pause is ``floor(uniform[0, max)) + min``."""

    min_seconds: int = DEFAULT_MIN_SLEEP
    max_seconds: int = DEFAULT_MAX_SLEEP

    def validate(self) -> None:
        if self.min_seconds < 0 or self.max_seconds < 0:
            raise ConfigurationError("sleep bounds must be non-negative")
        if self.min_seconds > self.max_seconds:
            raise ConfigurationError(
                f"minimum sleep ({self.min_seconds}s) is greater than maximum sleep ({self.max_seconds}s)"
            )

    def draw(self, rng: random.Random | None = None) -> int:
        rng = rng or random
        if self.max_seconds <= 0:
            return self.min_seconds
        return rng.randrange(self.max_seconds) + self.min_seconds


@dataclass(frozen=True)
class RunConfig:
    """Benchmark run settings, resolved once at startup and never mutated."""

    operation: str = DEFAULT_OPERATION
    sleep: SleepBounds = SleepBounds()
    threads: int = DEFAULT_THREADS
    duration_seconds: float = DEFAULT_DURATION
    iterations: int = DEFAULT_ITERATIONS
    documents: int = DEFAULT_DOCUMENTS
    connection: ConnectionConfig = ConnectionConfig()

    @property
    def min_sleep(self) -> int:
        return self.sleep.min_seconds

    @property
    def max_sleep(self) -> int:
        return self.sleep.max_seconds

    def validate(self, available_operations: list[str] | None = None) -> None:
        if available_operations is not None and self.operation not in available_operations:
            raise UnknownOperationError(self.operation, available_operations)
        self.sleep.validate()
        if self.threads <= 0:
            raise ConfigurationError(f"thread count must be positive, got {self.threads}")
        if self.duration_seconds < 0:
            raise ConfigurationError("run time must not be negative")
        if self.iterations < 0:
            raise ConfigurationError("iteration count must not be negative")
        if self.duration_seconds == 0 and self.iterations == 0:
            raise ConfigurationError(
                "either a run time or an iteration count must be given; both are 0"
            )
        if self.documents < 0:
            raise ConfigurationError("document count must not be negative")
        self.connection.validate()

    def to_dict(self) -> dict[str, object]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class LoadConfig:
    """Settings for the dummy document read/write loop."""

    sleep: SleepBounds = SleepBounds()
    iterations: int = 0
    connection: ConnectionConfig = ConnectionConfig()

    def validate(self) -> None:
        self.sleep.validate()
        if self.iterations < 0:
            raise ConfigurationError("iteration count must not be negative")
        self.connection.validate()

