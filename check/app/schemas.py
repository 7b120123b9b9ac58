from pydantic import BaseModel, ConfigDict, Field


class CPUUsage(BaseModel):
    user: float
    system: float
    idle: float


class MemoryUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    used: float
    cached: float
    free: float
    swap_used: float | None = Field(None, alias="swap-used")
    swap_free: float | None = Field(None, alias="swap-free")


class NetworkUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="device")
    rx: float
    tx: float


class DataRates(BaseModel):
    rx: float
    tx: float


class PeerRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    internal_ip: str = Field(alias="internal-ip")
    external_ip: str = Field(alias="external-ip")
    latest_handshake: int = Field(alias="latest-handshake")
    data_rates: DataRates = Field(alias="data-rates")


class Uptime(BaseModel):
    uptime: int
