"""Cross-chain gas tracker -- live fee telemetry for Ethereum, Polygon and Arbitrum."""
