import json
import os

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from portmapper.exceptions import InvalidNameError, InvalidPortError, ServiceDecodeError

HOST_ENV_VAR = "HOSTNAME"

MIN_PORT = 1
MAX_PORT = 65535


class ServiceRecord(BaseModel):
    """A (name, port, host) triple advertised in the registry.

    The model does not enforce name or port constraints; :meth:`validate_record`
    checks them. The host is stored on the wire under ``hostname``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    port: int
    host: str = Field(default="", alias="hostname")

    @classmethod
    def create(cls, name: str, port: int, host: str | None = None,
               host_env_var: str = HOST_ENV_VAR) -> "ServiceRecord":
        """Build a record, reading the host from the environment when not given."""
        if host is None:
            host = os.getenv(host_env_var, "")
        return cls(name=name, port=port, host=host)

    @property
    def instance_id(self) -> str:
        return f"{self.name}:{self.port}"

    def validate_record(self) -> None:
        """Raise InvalidNameError or InvalidPortError when the record is unusable."""
        if not self.name:
            raise InvalidNameError(data=repr(self))
        if self.port < MIN_PORT or self.port > MAX_PORT:
            raise InvalidPortError(data=repr(self))

    def key(self, registry_root: str) -> str:
        """Return the store key ``{root}/{name}:{port}``; host is not part of it."""
        root = registry_root[:-1] if registry_root.endswith("/") else registry_root
        return f"{root}/{self.name}:{self.port}"

    def encode(self) -> bytes:
        payload: dict[str, object] = {"name": self.name, "port": self.port}
        if self.host:
            payload["hostname"] = self.host
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    @classmethod
    def decode(cls, data: bytes | str) -> "ServiceRecord":
        """Parse a stored value. Does not run :meth:`validate_record`."""
        try:
            # strict: a stored port of "2000" is malformed, not coerced
            return cls.model_validate_json(data, strict=True)
        except PydanticValidationError as exc:
            errors = exc.errors()
            detail = errors[0]["msg"] if errors else None
            raise ServiceDecodeError(data=detail, cause=exc) from exc

    def __repr__(self) -> str:
        return f"ServiceRecord(name={self.name!r}, port={self.port}, host={self.host!r})"
