from pydantic import BaseModel, ConfigDict, Field


class CPUUsage(BaseModel):
    user: float = Field(0.0, ge=0, le=100)
    system: float = Field(0.0, ge=0, le=100)
    idle: float = Field(0.0, ge=0, le=100)


class MemoryUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    used: float = Field(0.0, ge=0, le=100)
    cached: float = Field(0.0, ge=0, le=100)
    free: float = Field(0.0, ge=0, le=100)
    swap_used: float | None = Field(None, ge=0, le=100, alias="swap-used")
    swap_free: float | None = Field(None, ge=0, le=100, alias="swap-free")


class NetworkUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="device")
    rx: float = Field(ge=0)
    tx: float = Field(ge=0)


class DataRates(BaseModel):
    rx: float = Field(0.0, ge=0)
    tx: float = Field(0.0, ge=0)


class PeerRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    internal_ip: str = Field(alias="internal-ip")
    external_ip: str = Field(alias="external-ip")
    latest_handshake: int = Field(0, ge=0, alias="latest-handshake")
    data_rates: DataRates = Field(default_factory=DataRates, alias="data-rates")


class HostSnapshot(BaseModel):
    hostname: str
    uptime: int = Field(0, ge=0)
    cpu: CPUUsage = Field(default_factory=CPUUsage)
    memory: MemoryUsage = Field(default_factory=MemoryUsage)
    network: list[NetworkUsage] = Field(default_factory=list)
    wireguard: list[PeerRecord] = Field(default_factory=list)


class UptimeResponse(BaseModel):
    uptime: int = Field(ge=0)


class ErrorResponse(BaseModel):
    error: str

