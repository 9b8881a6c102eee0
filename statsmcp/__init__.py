"""Statistics aggregator exposing e-Stat, World Bank, OECD and Eurostat data as MCP tools."""

__version__ = "1.0.0"
