"""Configuration system using pydantic-settings with environment variable loading."""

from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import urlparse

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from gas_tracker.exceptions import ConfigError
from gas_tracker.models import Network

API_KEY_PLACEHOLDER = "{api_key}"


class RpcSettings(BaseSettings):
    """Per-network WebSocket RPC endpoints and transport timing."""

    model_config = SettingsConfigDict(env_prefix="RPC_")

    infura_api_key: SecretStr = SecretStr("")
    ethereum_url: str = "wss://mainnet.infura.io/ws/v3/{api_key}"
    polygon_url: str = "wss://polygon-rpc.com"
    arbitrum_url: str = "wss://arb1.arbitrum.io/ws"
    request_timeout: float = 10.0  # seconds per JSON-RPC call
    heartbeat: float = 20.0  # websocket ping interval
    reconnect_delay: float = 2.0  # fixed delay, no backoff

    def endpoint_for(self, network: Network) -> str:
        """Return the configured endpoint with the API key substituted in."""
        url = getattr(self, f"{network.value}_url")
        api_key = self.infura_api_key.get_secret_value()
        if API_KEY_PLACEHOLDER in url and api_key:
            url = url.replace(API_KEY_PLACEHOLDER, api_key)
        return url


class TelemetrySettings(BaseSettings):
    """Fee telemetry engine parameters."""

    model_config = SettingsConfigDict(env_prefix="TELEMETRY_")

    networks: str = "ethereum,polygon,arbitrum"  # comma-separated
    retention_window_seconds: int = 24 * 60 * 60
    bucket_width_seconds: int = 15 * 60
    fallback_poll_interval: float = 6.0
    shutdown_timeout: float = 5.0
    sort_history_by_timestamp: bool = False  # False keeps arrival order for open/close
    demo_mode: bool = False
    demo_block_interval: float = 6.0


class PricingSettings(BaseSettings):
    """USD reference price and cost estimation parameters."""

    model_config = SettingsConfigDict(env_prefix="PRICING_")

    uniswap_pool: str = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"  # ETH/USDC 0.05%
    poll_interval: float = 30.0
    gas_limit_floor: int = 21000
    default_transaction_value: Decimal | None = None


class DashboardSettings(BaseSettings):
    """Dashboard server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True
    update_interval: int = 5  # seconds between WebSocket pushes


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" for production
    rpc: RpcSettings = RpcSettings()
    telemetry: TelemetrySettings = TelemetrySettings()
    pricing: PricingSettings = PricingSettings()
    dashboard: DashboardSettings = DashboardSettings()


@dataclass(frozen=True)
class NetworkConfig:
    """Resolved configuration for a single tracked network.

    Built by build_network_configs(); validated by the engine at start so a bad
    entry only takes down its own network.
    """

    network: Network
    endpoint: str
    retention_window_ms: int = 24 * 60 * 60 * 1000
    bucket_width_ms: int = 15 * 60 * 1000
    fallback_poll_interval: float = 6.0
    request_timeout: float = 10.0
    heartbeat: float = 20.0
    reconnect_delay: float = 2.0
    shutdown_timeout: float = 5.0
    demo: bool = False
    demo_block_interval: float = 6.0

    @property
    def capacity(self) -> int:
        """Retention ring size: one slot per bucket in the retention window."""
        return self.retention_window_ms // self.bucket_width_ms

    def validate(self) -> None:
        """Raise ConfigError if this network cannot be started."""
        if self.bucket_width_ms <= 0:
            raise ConfigError(f"{self.network.value}: bucket width must be positive")
        if self.retention_window_ms <= 0:
            raise ConfigError(f"{self.network.value}: retention window must be positive")
        if self.capacity < 1:
            raise ConfigError(
                f"{self.network.value}: retention window shorter than one bucket"
            )
        if self.fallback_poll_interval <= 0:
            raise ConfigError(f"{self.network.value}: fallback poll interval must be positive")
        if self.demo:
            return
        if API_KEY_PLACEHOLDER in self.endpoint:
            raise ConfigError(
                f"{self.network.value}: endpoint requires an API key (set RPC_INFURA_API_KEY)"
            )
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("ws", "wss") or not parsed.netloc:
            raise ConfigError(
                f"{self.network.value}: endpoint must be a ws:// or wss:// URL, got {self.endpoint!r}"
            )


def parse_networks(raw: str) -> list[Network]:
    """Parse a comma-separated network list into Network members.

    Raises:
        ConfigError: If a name is not a supported network.
    """
    networks: list[Network] = []
    for name in raw.split(","):
        name = name.strip().lower()
        if not name:
            continue
        try:
            network = Network(name)
        except ValueError:
            supported = ", ".join(n.value for n in Network)
            raise ConfigError(f"unknown network {name!r} (supported: {supported})") from None
        if network not in networks:
            networks.append(network)
    return networks


def build_network_configs(settings: AppSettings) -> list[NetworkConfig]:
    """Resolve AppSettings into one NetworkConfig per tracked network."""
    telemetry = settings.telemetry
    return [
        NetworkConfig(
            network=network,
            endpoint=settings.rpc.endpoint_for(network),
            retention_window_ms=telemetry.retention_window_seconds * 1000,
            bucket_width_ms=telemetry.bucket_width_seconds * 1000,
            fallback_poll_interval=telemetry.fallback_poll_interval,
            request_timeout=settings.rpc.request_timeout,
            heartbeat=settings.rpc.heartbeat,
            reconnect_delay=settings.rpc.reconnect_delay,
            shutdown_timeout=telemetry.shutdown_timeout,
            demo=telemetry.demo_mode,
            demo_block_interval=telemetry.demo_block_interval,
        )
        for network in parse_networks(telemetry.networks)
    ]
