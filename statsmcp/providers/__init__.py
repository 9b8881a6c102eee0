from .base import BaseProvider
from .estat import EStatProvider
from .eurostat import EurostatProvider
from .oecd import OECDProvider
from .worldbank import WorldBankProvider

__all__ = [
    "BaseProvider",
    "EStatProvider",
    "EurostatProvider",
    "OECDProvider",
    "WorldBankProvider",
]
